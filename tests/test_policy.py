"""
tests/test_policy.py
────────────────────
Tests for breach policies.
"""
import pytest

from shipwatch.alarm.base import MostSevereOnlyPolicy, ReportAllPolicy, get_policy
from shipwatch.models import AlarmSeverity


@pytest.fixture
def tiers(make_rule):
    return [
        make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW),
        make_rule(upper_limit=693.0, severity=AlarmSeverity.MEDIUM),
        make_rule(upper_limit=702.9, severity=AlarmSeverity.CRITICAL),
    ]


class TestReportAllPolicy:
    def test_keeps_every_tier(self, tiers, make_reading):
        assert ReportAllPolicy().select(make_reading(710), tiers) == tiers

    def test_returns_a_new_list(self, tiers, make_reading):
        selected = ReportAllPolicy().select(make_reading(710), tiers)
        selected.pop()
        assert len(tiers) == 3


class TestMostSevereOnlyPolicy:
    def test_keeps_only_top_tier(self, tiers, make_reading):
        selected = MostSevereOnlyPolicy().select(make_reading(710), tiers)
        assert [r.severity for r in selected] == [AlarmSeverity.CRITICAL]

    def test_ties_are_all_kept(self, make_rule, make_reading):
        a = make_rule(upper_limit=90, severity=AlarmSeverity.HIGH)
        b = make_rule(lower_limit=100, severity=AlarmSeverity.HIGH)
        c = make_rule(upper_limit=80, severity=AlarmSeverity.LOW)
        assert MostSevereOnlyPolicy().select(make_reading(95), [a, b, c]) == [a, b]

    def test_empty(self, make_reading):
        assert MostSevereOnlyPolicy().select(make_reading(1), []) == []


class TestGetPolicy:
    def test_names(self):
        assert isinstance(get_policy("all"), ReportAllPolicy)
        assert isinstance(get_policy(" Most_Severe "), MostSevereOnlyPolicy)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_policy("first")
