"""
tests/test_data_quality.py
──────────────────────────
Tests for ingest-time data quality marking: plausible ranges, edge band,
timestamp and unit checks.
"""
from datetime import timedelta

import pytest

from shipwatch.models import METRIC_RANGES, DataQuality, MetricType
from shipwatch.services.data_quality import check_quality


@pytest.fixture
def now(t0):
    return t0


class TestValueRange:
    @pytest.mark.parametrize("value", [-0.01, 1000.5])
    def test_outside_range_is_abnormal(self, now, value):
        check = check_quality(MetricType.VOLTAGE, value, now, now=now)
        assert check.quality == DataQuality.ABNORMAL
        assert "超出合理范围" in check.errors[0]

    @pytest.mark.parametrize("value", [0, 49.9, 950.1, 1000])
    def test_edge_band_is_suspicious(self, now, value):
        assert check_quality(MetricType.VOLTAGE, value, now, now=now).quality == DataQuality.SUSPICIOUS

    @pytest.mark.parametrize("value", [50, 640, 950])
    def test_inside_range_is_normal(self, now, value):
        check = check_quality(MetricType.VOLTAGE, value, now, now=now)
        assert check.quality == DataQuality.NORMAL
        assert check.reasons == ""

    def test_temperature_range_allows_negative(self, now):
        assert check_quality(MetricType.TEMPERATURE, -20, now, now=now).quality == DataQuality.NORMAL
        assert check_quality(MetricType.TEMPERATURE, -51, now, now=now).quality == DataQuality.ABNORMAL

    @pytest.mark.parametrize("value, expected", [
        (0, DataQuality.NORMAL),
        (1, DataQuality.NORMAL),
        (2, DataQuality.ABNORMAL),
    ])
    def test_switch_has_no_edge_band(self, now, value, expected):
        assert check_quality(MetricType.SWITCH, value, now, now=now).quality == expected

    def test_every_metric_has_a_range(self):
        assert set(METRIC_RANGES) == set(MetricType)


class TestTimestampAndUnit:
    def test_future_timestamp(self, now):
        check = check_quality(MetricType.VOLTAGE, 640, now + timedelta(minutes=6), now=now)
        assert check.quality == DataQuality.SUSPICIOUS
        assert check_quality(MetricType.VOLTAGE, 640, now + timedelta(minutes=4), now=now).quality == DataQuality.NORMAL

    def test_stale_timestamp(self, now):
        old = check_quality(MetricType.VOLTAGE, 640, now - timedelta(days=366), now=now)
        backfill = check_quality(MetricType.VOLTAGE, 640, now - timedelta(days=30), now=now)
        assert old.quality == DataQuality.SUSPICIOUS
        assert backfill.quality == DataQuality.NORMAL

    def test_unit_mismatch(self, now):
        check = check_quality(MetricType.VOLTAGE, 640, now, unit="kV", now=now)
        assert check.quality == DataQuality.SUSPICIOUS
        assert "单位不匹配" in check.reasons
        assert check_quality(MetricType.VOLTAGE, 640, now, unit="V", now=now).quality == DataQuality.NORMAL

    def test_errors_outrank_warnings(self, now):
        check = check_quality(MetricType.VOLTAGE, 2000, now + timedelta(hours=1), unit="kV", now=now)
        assert check.quality == DataQuality.ABNORMAL
        assert len(check.warnings) == 2
