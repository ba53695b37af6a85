"""
ShipWatch 告警数据服务层

本模块负责告警核心与数据库之间的读写：

主要功能：
- 加载启用的阈值规则（排除已软删除的规则）
- 按设备/时间范围加载时序监测数据（pandas DataFrame）
- 把 DataFrame 转换为告警评估可用的记录
- 告警存储：全量清空、逐条写入（每条独立事务）

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .. import models
from ..schemas import AlarmDraft, ThresholdRule

log = logging.getLogger(__name__)

READING_COLUMNS = [
    "equipment_id", "timestamp", "metric_type", "monitoring_point",
    "value", "unit", "quality", "source",
]


def load_enabled_rules(session: Session, equipment_id: Optional[str] = None) -> List[ThresholdRule]:
    """
    加载参与评估的阈值规则

    Args:
        session: 数据库会话
        equipment_id: 设备ID（可选，只加载该设备的规则）

    Returns:
        启用且未删除的规则列表
    """
    stmt = select(models.ThresholdConfig).where(
        models.ThresholdConfig.rule_status == models.RuleStatus.ENABLED,
        models.ThresholdConfig.deleted_at.is_(None),
    )
    if equipment_id:
        stmt = stmt.where(models.ThresholdConfig.equipment_id == equipment_id)
    rows = session.execute(stmt.order_by(models.ThresholdConfig.created_at)).scalars().all()
    return [ThresholdRule.model_validate(row) for row in rows]


def load_readings_frame(
    session: Session,
    equipment_id: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
) -> pd.DataFrame:
    """
    加载时序监测数据

    Args:
        session: 数据库会话
        equipment_id: 设备ID（可选）
        start_time: 开始时间（可选，闭区间）
        end_time: 结束时间（可选，闭区间）

    Returns:
        按时间倒序排列的 DataFrame，列见 READING_COLUMNS；没有数据时返回空表（列齐全）
    """
    stmt = select(models.TimeSeriesData)
    if equipment_id:
        stmt = stmt.where(models.TimeSeriesData.equipment_id == equipment_id)
    if start_time:
        stmt = stmt.where(models.TimeSeriesData.timestamp >= start_time)
    if end_time:
        stmt = stmt.where(models.TimeSeriesData.timestamp <= end_time)
    stmt = stmt.order_by(models.TimeSeriesData.timestamp.desc(), models.TimeSeriesData.id.desc())

    rows = session.execute(stmt).scalars().all()
    return pd.DataFrame(
        [{
            "equipment_id": r.equipment_id,
            "timestamp": r.timestamp,
            "metric_type": r.metric_type.value if r.metric_type else None,
            "monitoring_point": r.monitoring_point,
            "value": r.value,
            "unit": r.unit,
            "quality": r.quality.value if r.quality else None,
            "source": r.source.value if r.source else None,
        } for r in rows],
        columns=READING_COLUMNS,
    )


def frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    DataFrame 转换为记录列表

    缺失值（NaN/NaT）统一转换为 None，时间戳转换为标准 datetime；
    数值缺失的记录会在评估时因解析失败被跳过。
    """
    if frame.empty:
        return []
    cleaned = frame.astype(object).where(pd.notna(frame), None)
    records = cleaned.to_dict(orient="records")
    for record in records:
        ts = record.get("timestamp")
        if isinstance(ts, pd.Timestamp):
            record["timestamp"] = ts.to_pydatetime()
    return records


def make_rule_loader(session_factory: Callable[[], Session]) -> Callable[[], List[ThresholdRule]]:
    """为流式评估的索引缓存创建规则加载函数（每次加载使用独立会话）"""

    def _load() -> List[ThresholdRule]:
        with session_factory() as session:
            return load_enabled_rules(session)

    return _load


class SqlAlarmSink:
    """
    基于数据库的告警存储

    write 每条告警使用独立会话和事务，单条失败不影响其他告警。
    指定设备或时间范围时，clear 只删除该范围内（按触发时间）的告警，
    范围外的告警及其处理状态保持不变。
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        equipment_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> None:
        self._session_factory = session_factory
        self.equipment_id = equipment_id
        self.start_time = start_time
        self.end_time = end_time

    def clear(self) -> int:
        """删除范围内的告警记录（未指定范围时删除全部），返回删除条数"""
        stmt = delete(models.AlarmRecord)
        if self.equipment_id:
            stmt = stmt.where(models.AlarmRecord.equipment_id == self.equipment_id)
        if self.start_time:
            stmt = stmt.where(models.AlarmRecord.triggered_at >= self.start_time)
        if self.end_time:
            stmt = stmt.where(models.AlarmRecord.triggered_at <= self.end_time)
        with self._session_factory() as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount or 0

    def write(self, draft: AlarmDraft) -> None:
        with self._session_factory() as session:
            session.add(models.AlarmRecord(**draft.model_dump()))
            session.commit()
