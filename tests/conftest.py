"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the ShipWatch test suite.
"""
import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Configuration is read at import time, set it before importing shipwatch
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("STREAM_LANES", "1")
os.environ.setdefault("ALARM_RETRY_BASE_DELAY", "0")
os.environ.setdefault("LOG_LEVEL", "warning")

from shipwatch import models  # noqa: E402
from shipwatch.db import Base  # noqa: E402
from shipwatch.models import CST, AlarmSeverity, MetricType, RuleStatus  # noqa: E402
from shipwatch.schemas import AlarmDraft, Reading, ThresholdRule  # noqa: E402


class InMemoryAlarmSink:
    """Alarm sink that keeps drafts in a list; failures can be injected per write call."""

    def __init__(self, failures=None):
        self.alarms = []
        self.writes = 0
        self._failures = list(failures or [])

    def clear(self) -> int:
        count = len(self.alarms)
        self.alarms.clear()
        return count

    def write(self, draft: AlarmDraft) -> None:
        self.writes += 1
        if self._failures:
            exc = self._failures.pop(0)
            if exc is not None:
                raise exc
        self.alarms.append(draft)


@pytest.fixture
def t0() -> datetime:
    return datetime(2025, 1, 1, 10, 0, 0, tzinfo=CST)


@pytest.fixture
def make_rule():
    counter = {"n": 0}

    def _make(**overrides) -> ThresholdRule:
        counter["n"] += 1
        data = dict(
            id=f"rule-{counter['n']}",
            equipment_id="SYS-BAT-001",
            metric_type=MetricType.VOLTAGE,
            monitoring_point="总电压",
            fault_name="总压过压",
            upper_limit=None,
            lower_limit=None,
            duration=0,
            severity=AlarmSeverity.CRITICAL,
            recommended_action="显示；报警；切断输出",
            rule_status=RuleStatus.ENABLED,
        )
        data.update(overrides)
        return ThresholdRule(**data)

    return _make


@pytest.fixture
def make_reading(t0):
    def _make(value, offset_ms: int = 0, **overrides) -> Reading:
        data = dict(
            equipment_id="SYS-BAT-001",
            timestamp=t0 + timedelta(milliseconds=offset_ms),
            metric_type=MetricType.VOLTAGE,
            monitoring_point="总电压",
            value=value,
            unit="V",
        )
        data.update(overrides)
        return Reading(**data)

    return _make


@pytest.fixture
def sink() -> InMemoryAlarmSink:
    return InMemoryAlarmSink()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def equipment(db) -> models.Equipment:
    eq = models.Equipment(id="SYS-BAT-001", name="电池系统", device_type="battery", location="机舱电池间")
    db.add(eq)
    db.commit()
    return eq


@pytest.fixture
def client(engine, session_factory):
    from fastapi.testclient import TestClient

    from shipwatch.db import get_db
    from shipwatch.main import create_app

    app = create_app(session_factory, bind=engine)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
