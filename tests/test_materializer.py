"""
tests/test_materializer.py
──────────────────────────
Tests for alarm construction and threshold range formatting.
"""
from shipwatch.alarm.formatting import format_limit, format_threshold_range
from shipwatch.alarm.materializer import materialize
from shipwatch.models import AlarmSeverity, AlarmStatus, MetricType


class TestFormatThresholdRange:
    def test_upper_then_lower(self):
        assert format_threshold_range(650, 580, "V") == "上限: 650V, 下限: 580V"

    def test_only_defined_bounds(self):
        assert format_threshold_range(702.9, None, "V") == "上限: 702.9V"
        assert format_threshold_range(None, 564.3, "V") == "下限: 564.3V"

    def test_no_bounds(self):
        assert format_threshold_range(None, None, "V") == ""

    def test_missing_unit(self):
        assert format_threshold_range(0, None, None) == "上限: 0"

    def test_format_limit_trims_zeros(self):
        assert format_limit(693.0) == "693"
        assert format_limit(3.50) == "3.5"
        assert format_limit(-10.0) == "-10"
        assert format_limit(0.1) == "0.1"


class TestMaterialize:
    def test_copies_rule_and_reading_fields(self, make_rule, make_reading, t0):
        rule = make_rule(lower_limit=693.0, fault_name="总压欠压", recommended_action="显示报警")
        alarm = materialize(make_reading(690), rule)
        assert alarm.threshold_id == rule.id
        assert alarm.equipment_id == "SYS-BAT-001"
        assert alarm.abnormal_metric_type == MetricType.VOLTAGE
        assert alarm.monitoring_point == "总电压"
        assert alarm.abnormal_value == 690
        assert alarm.severity == AlarmSeverity.CRITICAL
        assert alarm.fault_name == "总压欠压"
        assert alarm.recommended_action == "显示报警"
        assert alarm.upper_limit is None
        assert alarm.lower_limit == 693.0
        assert alarm.triggered_at == t0
        assert alarm.created_at == t0

    def test_production_status_is_pending(self, make_rule, make_reading):
        alarm = materialize(make_reading(700), make_rule(upper_limit=650))
        assert alarm.status == AlarmStatus.PENDING
        assert alarm.handler is None
        assert alarm.handled_at is None
        assert alarm.handle_note is None

    def test_threshold_range_keeps_both_bounds(self, make_rule, make_reading):
        alarm = materialize(make_reading(700), make_rule(upper_limit=650, lower_limit=580))
        assert alarm.threshold_range == "上限: 650V, 下限: 580V"

    def test_unit_falls_back_to_standard_unit(self, make_rule, make_reading):
        reading = make_reading(95, metric_type=MetricType.TEMPERATURE, unit=None)
        alarm = materialize(reading, make_rule(metric_type=MetricType.TEMPERATURE, upper_limit=90))
        assert alarm.unit == "°C"

    def test_each_alarm_gets_its_own_id(self, make_rule, make_reading):
        rule = make_rule(upper_limit=650)
        reading = make_reading(700)
        assert materialize(reading, rule).id != materialize(reading, rule).id

    def test_rule_text_fields_copied_verbatim(self, make_rule, make_reading):
        rule = make_rule(upper_limit=650, fault_name="", recommended_action="")
        alarm = materialize(make_reading(700), rule)
        assert alarm.fault_name == "" and alarm.recommended_action == ""
        assert materialize(make_reading(700), make_rule(upper_limit=650, recommended_action=None)).recommended_action is None
