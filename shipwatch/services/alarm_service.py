"""
ShipWatch 告警服务

提供告警记录的查询和处理：

- find_all: 按设备、严重程度、处理状态、触发时间范围分页查询，按触发时间倒序
- find_one: 查询单条告警
- update_status: 操作员处理告警（带乐观锁）
- count_pending: 待处理告警数量（通知角标）

告警记录由告警生成器写入，本服务不创建告警。

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models
from ..exceptions import AlarmConflictError, AlarmNotFoundError
from ..models import CST, AlarmStatus, now_cst
from ..schemas import AlarmQuery, AlarmRead, Page, UpdateAlarmStatus

log = logging.getLogger(__name__)


def _from_millis(ms: int) -> datetime:
    """Unix时间戳（毫秒）转中国标准时间"""
    return datetime.fromtimestamp(ms / 1000, tz=CST)


def find_all(db: Session, query: AlarmQuery) -> Page[AlarmRead]:
    """
    分页查询告警记录

    Args:
        db: 数据库会话
        query: 查询条件（设备ID、严重程度、处理状态、开始/结束时间、分页参数）

    Returns:
        Page[AlarmRead]: 分页结果，按触发时间倒序
    """
    conditions = []
    if query.equipment_id:
        conditions.append(models.AlarmRecord.equipment_id == query.equipment_id)
    if query.severity:
        conditions.append(models.AlarmRecord.severity == query.severity)
    if query.status:
        conditions.append(models.AlarmRecord.status == query.status)
    if query.start_time is not None:
        conditions.append(models.AlarmRecord.triggered_at >= _from_millis(query.start_time))
    if query.end_time is not None:
        conditions.append(models.AlarmRecord.triggered_at <= _from_millis(query.end_time))

    total = db.execute(
        select(func.count()).select_from(models.AlarmRecord).where(*conditions)
    ).scalar_one()

    stmt = (
        select(models.AlarmRecord)
        .where(*conditions)
        .order_by(models.AlarmRecord.triggered_at.desc(), models.AlarmRecord.id)
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
    )
    rows = db.execute(stmt).scalars().all()
    items = [AlarmRead.model_validate(r) for r in rows]
    return Page[AlarmRead].build(items, total, query.page, query.page_size)


def _get(db: Session, alarm_id: str) -> models.AlarmRecord:
    alarm = db.get(models.AlarmRecord, alarm_id)
    if alarm is None:
        raise AlarmNotFoundError(f"告警记录不存在: {alarm_id}")
    return alarm


def find_one(db: Session, alarm_id: str) -> AlarmRead:
    """
    查询单条告警

    Raises:
        AlarmNotFoundError: 告警记录不存在
    """
    return AlarmRead.model_validate(_get(db, alarm_id))


def update_status(
    db: Session,
    alarm_id: str,
    payload: UpdateAlarmStatus,
    user_id: Optional[str] = None,
) -> AlarmRead:
    """
    更新告警处理状态

    设置处理状态、处理说明（空字符串也会写入）、处理人（提供用户ID时）和处理时间。

    Args:
        db: 数据库会话
        alarm_id: 告警记录ID
        payload: 状态更新请求（status, handle_note, version）
        user_id: 操作员ID（可选）

    Returns:
        AlarmRead: 更新后的告警记录

    Raises:
        AlarmNotFoundError: 告警记录不存在
        AlarmConflictError: 请求的版本号与当前版本不一致，或提交时记录已被其他操作修改
    """
    alarm = _get(db, alarm_id)
    if payload.version is not None and payload.version != alarm.version:
        raise AlarmConflictError(
            f"告警已被其他操作员修改: {alarm_id}（请求版本 {payload.version}，当前版本 {alarm.version}）"
        )

    alarm.status = payload.status
    if payload.handle_note is not None:
        alarm.handle_note = payload.handle_note
    if user_id:
        alarm.handler = user_id
    alarm.handled_at = now_cst()

    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise AlarmConflictError(f"告警已被其他操作员修改: {alarm_id}") from e

    db.refresh(alarm)
    log.info(
        "告警状态已更新: 告警=%s, 设备=%s, 状态=%s, 处理人=%s",
        alarm.id, alarm.equipment_id, alarm.status.value, alarm.handler,
    )
    return AlarmRead.model_validate(alarm)


def count_pending(db: Session, equipment_id: Optional[str] = None) -> int:
    """待处理告警数量，可按设备过滤"""
    stmt = select(func.count()).select_from(models.AlarmRecord).where(
        models.AlarmRecord.status == AlarmStatus.PENDING
    )
    if equipment_id:
        stmt = stmt.where(models.AlarmRecord.equipment_id == equipment_id)
    return db.execute(stmt).scalar_one()
