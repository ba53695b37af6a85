"""
tests/test_stream.py
────────────────────
Tests for the streaming evaluator and its rule index cache.
"""
import threading

import pytest
from sqlalchemy.exc import OperationalError

from shipwatch.alarm.base import MostSevereOnlyPolicy
from shipwatch.alarm.stream import RuleIndexCache, StreamEvaluator
from shipwatch.models import AlarmSeverity, AlarmStatus

from .conftest import InMemoryAlarmSink


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRuleIndexCache:
    def test_loads_once_within_ttl(self, make_rule):
        calls = []
        rule = make_rule(upper_limit=650)
        clock = FakeClock()
        cache = RuleIndexCache(lambda: calls.append(1) or [rule], ttl_seconds=30, clock=clock)
        cache.get()
        clock.now = 29
        cache.get()
        assert len(calls) == 1
        clock.now = 30
        cache.get()
        assert len(calls) == 2

    def test_invalidate_forces_reload(self, make_rule):
        rules = [make_rule(upper_limit=650)]
        cache = RuleIndexCache(lambda: list(rules), ttl_seconds=3600)
        assert sum(len(v) for v in cache.get().values()) == 1
        rules.append(make_rule(upper_limit=700, severity=AlarmSeverity.LOW))
        assert sum(len(v) for v in cache.get().values()) == 1
        cache.invalidate()
        assert sum(len(v) for v in cache.get().values()) == 2

    def test_failed_reload_keeps_previous_index(self, make_rule):
        state = {"fail": False}
        rule = make_rule(upper_limit=650)

        def loader():
            if state["fail"]:
                raise OperationalError("SELECT", {}, Exception("gone"))
            return [rule]

        clock = FakeClock()
        cache = RuleIndexCache(loader, ttl_seconds=1, clock=clock)
        first = cache.get()
        state["fail"] = True
        clock.now = 5
        assert cache.get() is first

    def test_first_load_failure_propagates(self):
        def loader():
            raise RuntimeError("no database")

        with pytest.raises(RuntimeError):
            RuleIndexCache(loader, ttl_seconds=1).get()


@pytest.fixture
def evaluator_factory():
    created = []

    def _make(rules, sink, **kwargs):
        kwargs.setdefault("lanes", 4)
        kwargs.setdefault("enforce_duration", True)
        kwargs.setdefault("base_delay", 0)
        evaluator = StreamEvaluator(RuleIndexCache(lambda: list(rules), ttl_seconds=3600), sink, **kwargs)
        created.append(evaluator)
        return evaluator

    yield _make
    for evaluator in created:
        evaluator.shutdown()


class TestStreamEvaluator:
    def test_submit_returns_written_alarms(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        rule = make_rule(upper_limit=650)
        evaluator = evaluator_factory([rule], sink)
        alarms = evaluator.submit(make_reading(700)).result(timeout=5)
        assert [a.threshold_id for a in alarms] == [rule.id]
        assert alarms[0].status == AlarmStatus.PENDING
        assert sink.alarms == alarms

    def test_append_only(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        evaluator = evaluator_factory([make_rule(upper_limit=650)], sink, enforce_duration=False)
        for i in range(3):
            evaluator.submit(make_reading(700 + i, i * 1000))
        evaluator.drain(timeout=5)
        assert len(sink.alarms) == 3

    def test_lane_is_stable_per_equipment(self, evaluator_factory, sink):
        evaluator = evaluator_factory([], sink)
        assert evaluator.lane_count == 4
        lanes = {evaluator.lane_for("SYS-BAT-001") for _ in range(10)}
        assert len(lanes) == 1
        assert all(0 <= evaluator.lane_for(f"EQ-{i}") < 4 for i in range(50))

    def test_same_equipment_alarms_stay_ordered(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        rule = make_rule(upper_limit=650)
        evaluator = evaluator_factory([rule], sink, enforce_duration=False)
        values = [651 + i for i in range(50)]
        for i, value in enumerate(values):
            evaluator.submit(make_reading(value, i))
        evaluator.drain(timeout=10)
        assert [a.abnormal_value for a in sink.alarms] == values

    def test_duration_tracked_across_submissions(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        evaluator = evaluator_factory([make_rule(upper_limit=650, duration=5000)], sink)
        results = [evaluator.submit(make_reading(700, offset)).result(timeout=5) for offset in (0, 2500, 5000, 7500)]
        assert [len(r) for r in results] == [0, 0, 1, 0]

    def test_most_severe_keeps_tracking_lower_tier(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        low = make_rule(upper_limit=683.1, severity=AlarmSeverity.LOW, duration=5000)
        critical = make_rule(upper_limit=702.9, duration=5000)
        evaluator = evaluator_factory([low, critical], sink, lanes=1, policy=MostSevereOnlyPolicy())
        for i in range(10):
            evaluator.submit(make_reading(710 if i % 2 == 0 else 690, i * 3000))
        evaluator.drain(timeout=5)
        assert [a.severity for a in sink.alarms] == [AlarmSeverity.LOW]

    def test_evaluation_error_does_not_stop_lane(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink()
        evaluator = evaluator_factory([make_rule(upper_limit=650)], sink, lanes=1, enforce_duration=False)
        real_select = evaluator.policy.select
        calls = {"n": 0}

        def flaky_select(reading, breached):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            return real_select(reading, breached)

        evaluator.policy.select = flaky_select
        assert evaluator.submit(make_reading(700)).result(timeout=5) == []
        assert len(evaluator.submit(make_reading(701, 1)).result(timeout=5)) == 1

    def test_failed_write_is_dropped(self, evaluator_factory, make_rule, make_reading):
        sink = InMemoryAlarmSink(failures=[ValueError("bad row")])
        evaluator = evaluator_factory([make_rule(upper_limit=650)], sink, enforce_duration=False)
        assert evaluator.submit(make_reading(700)).result(timeout=5) == []
        assert len(evaluator.submit(make_reading(701, 1)).result(timeout=5)) == 1

    def test_devices_evaluate_in_parallel(self, evaluator_factory, make_rule, make_reading):
        ids = [f"EQ-{i}" for i in range(40)]
        rules = [make_rule(equipment_id=eid, upper_limit=650) for eid in ids]
        sink = InMemoryAlarmSink()
        lock = threading.Lock()
        original_write = sink.write

        def locked_write(draft):
            with lock:
                original_write(draft)

        sink.write = locked_write
        evaluator = evaluator_factory(rules, sink, enforce_duration=False)
        for eid in ids:
            evaluator.submit(make_reading(700, equipment_id=eid))
        evaluator.drain(timeout=10)
        assert sorted(a.equipment_id for a in sink.alarms) == sorted(ids)
