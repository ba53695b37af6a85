"""
tests/test_batch.py
───────────────────
Tests for the batch alarm driver: full replace, idempotence, fail-soft parsing,
persistence failures.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from shipwatch.alarm.base import MostSevereOnlyPolicy
from shipwatch.alarm.batch import AlarmBatchDriver, parse_readings
from shipwatch.models import AlarmSeverity, AlarmStatus, MetricType

from .conftest import InMemoryAlarmSink


def _raw(t0, value, offset_s=0, **overrides):
    data = {
        "equipment_id": "SYS-BAT-001",
        "timestamp": t0 + timedelta(seconds=offset_s),
        "metric_type": "voltage",
        "monitoring_point": "总电压",
        "value": value,
        "unit": "V",
    }
    data.update(overrides)
    return data


def _transient():
    return OperationalError("INSERT INTO alarm_records", {}, Exception("database is locked"))


@pytest.fixture
def driver():
    return AlarmBatchDriver(enforce_duration=False, max_attempts=3, base_delay=0, sleep=lambda s: None)


class TestParseReadings:
    def test_skips_unparseable_values(self, t0):
        readings, skipped = parse_readings([
            _raw(t0, 700),
            _raw(t0, "not-a-number"),
            _raw(t0, float("nan")),
            _raw(t0, None),
            _raw(t0, "650.5"),
        ])
        assert [r.value for r in readings] == [700, 650.5]
        assert skipped == 3

    def test_passes_through_parsed_readings(self, make_reading):
        reading = make_reading(1)
        readings, skipped = parse_readings([reading])
        assert readings == [reading] and skipped == 0


class TestAlarmBatchDriver:
    def test_generates_one_alarm_per_breached_tier(self, driver, make_rule, t0):
        low = make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW)
        critical = make_rule(upper_limit=702.9)
        result = driver.generate([_raw(t0, 710), _raw(t0, 690, 10), _raw(t0, 600, 20)], [low, critical])
        assert result.evaluated == 3
        assert result.triggered == 3
        assert sorted(a.threshold_id for a in result.alarms) == sorted([low.id, low.id, critical.id])

    def test_alarm_invariant_holds(self, driver, make_rule, t0):
        rules = [make_rule(upper_limit=650), make_rule(lower_limit=580, severity=AlarmSeverity.HIGH)]
        by_id = {r.id: r for r in rules}
        result = driver.generate([_raw(t0, v, i) for i, v in enumerate([500, 600, 700, 650, 580])], rules)
        assert result.triggered == 2
        for alarm in result.alarms:
            rule = by_id[alarm.threshold_id]
            assert (alarm.equipment_id, alarm.abnormal_metric_type, alarm.monitoring_point) == (
                rule.equipment_id, rule.metric_type, rule.monitoring_point)
            assert (rule.upper_limit is not None and alarm.abnormal_value > rule.upper_limit) or (
                rule.lower_limit is not None and alarm.abnormal_value < rule.lower_limit)
            assert alarm.status == AlarmStatus.PENDING

    def test_full_replace(self, driver, make_rule, t0):
        sink = InMemoryAlarmSink()
        rules = [make_rule(upper_limit=650)]
        first = driver.run([_raw(t0, 700), _raw(t0, 710, 1)], rules, sink)
        assert first.cleared == 0 and first.written == 2
        second = driver.run([_raw(t0, 720)], rules, sink)
        assert second.cleared == 2
        assert [a.abnormal_value for a in sink.alarms] == [720]

    def test_idempotent_on_unchanged_snapshot(self, make_rule, t0):
        rules = [
            make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW, duration=5000),
            make_rule(upper_limit=702.9, duration=5000),
            make_rule(lower_limit=584.1, severity=AlarmSeverity.LOW),
        ]
        raw = [_raw(t0, v, i * 5) for i, v in enumerate([640, 690, 705, 710, 650, 570, 560, 640])]
        sink = InMemoryAlarmSink()
        driver = AlarmBatchDriver(sleep=lambda s: None)

        def snapshot():
            return sorted((a.threshold_id, a.abnormal_value, a.triggered_at) for a in sink.alarms)

        driver.run(raw, rules, sink)
        first = snapshot()
        driver.run(list(reversed(raw)), rules, sink)
        assert first and snapshot() == first

    def test_fail_soft_parsing(self, driver, make_rule, t0):
        sink = InMemoryAlarmSink()
        result = driver.run([_raw(t0, "bad"), _raw(t0, 700, 1)], [make_rule(upper_limit=650)], sink)
        assert result.skipped == 1
        assert result.evaluated == 1
        assert len(sink.alarms) == 1

    def test_transient_failure_is_retried(self, driver, make_rule, t0):
        sink = InMemoryAlarmSink(failures=[_transient(), _transient()])
        result = driver.run([_raw(t0, 700)], [make_rule(upper_limit=650)], sink)
        assert result.written == 1 and result.failed == 0
        assert sink.writes == 3

    def test_permanent_failure_does_not_abort_batch(self, driver, make_rule, t0):
        integrity = IntegrityError("INSERT INTO alarm_records", {}, Exception("constraint failed"))
        sink = InMemoryAlarmSink(failures=[integrity])
        result = driver.run([_raw(t0, 700), _raw(t0, 710, 1)], [make_rule(upper_limit=650)], sink)
        assert result.failed == 1
        assert result.written == 1
        assert len(sink.alarms) == 1

    def test_exhausted_retries_are_counted(self, driver, make_rule, t0):
        sink = InMemoryAlarmSink(failures=[_transient()] * 3)
        result = driver.run([_raw(t0, 700)], [make_rule(upper_limit=650)], sink)
        assert result.failed == 1 and result.written == 0

    def test_duration_enforced_by_timestamp_order(self, make_rule, t0):
        rule = make_rule(upper_limit=650, duration=10000)
        driver = AlarmBatchDriver(enforce_duration=True)
        # newest first, as loaded from the time-series table
        raw = [_raw(t0, 700, 20), _raw(t0, 700, 10), _raw(t0, 700, 0)]
        result = driver.generate(raw, [rule])
        assert len(result.alarms) == 1
        assert result.alarms[0].triggered_at == t0 + timedelta(seconds=10)

    def test_short_spike_is_suppressed(self, make_rule, t0):
        rule = make_rule(upper_limit=650, duration=5000)
        result = AlarmBatchDriver(enforce_duration=True).generate(
            [_raw(t0, 700), _raw(t0, 600, 2), _raw(t0, 700, 4)], [rule]
        )
        assert result.alarms == []

    def test_most_severe_policy(self, make_rule, t0):
        low = make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW)
        critical = make_rule(upper_limit=702.9)
        driver = AlarmBatchDriver(policy=MostSevereOnlyPolicy(), enforce_duration=False)
        result = driver.generate([_raw(t0, 710), _raw(t0, 690, 1)], [low, critical])
        assert [(a.abnormal_value, a.severity) for a in result.alarms] == [
            (710, AlarmSeverity.CRITICAL), (690, AlarmSeverity.LOW)]

    def test_most_severe_keeps_tracking_lower_tier(self, make_rule, t0):
        # value stays above the low tier while touching the critical tier every other sample
        low = make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW, duration=5000)
        critical = make_rule(upper_limit=702.9, duration=5000)
        raw = [_raw(t0, 710 if i % 2 == 0 else 690, i * 3) for i in range(21)]
        driver = AlarmBatchDriver(policy=MostSevereOnlyPolicy(), enforce_duration=True)
        result = driver.generate(raw, [low, critical])
        assert [(a.severity, a.triggered_at) for a in result.alarms] == [
            (AlarmSeverity.LOW, t0 + timedelta(seconds=6))]

    def test_most_severe_applies_to_released_tiers(self, make_rule, t0):
        low = make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW, duration=5000)
        critical = make_rule(upper_limit=702.9, duration=5000)
        driver = AlarmBatchDriver(policy=MostSevereOnlyPolicy(), enforce_duration=True)
        result = driver.generate([_raw(t0, 710, s) for s in (0, 3, 6, 9)], [low, critical])
        assert [a.severity for a in result.alarms] == [AlarmSeverity.CRITICAL]

    def test_decorate_hook(self, make_rule, t0):
        driver = AlarmBatchDriver(
            enforce_duration=False,
            decorate=lambda d: d.model_copy(update={"status": AlarmStatus.IGNORED}),
        )
        result = driver.generate([_raw(t0, 700)], [make_rule(upper_limit=650)])
        assert result.alarms[0].status == AlarmStatus.IGNORED

    def test_no_rules(self, driver, t0):
        result = driver.generate([_raw(t0, 700, metric_type=MetricType.CURRENT.value)], [])
        assert result.triggered == 0 and result.trigger_rate == 0.0
