"""
ShipWatch 阈值配置服务

阈值配置的增删改查。删除为软删除（记录 deleted_at），
已删除的规则不再出现在查询结果中，也不参与告警评估。

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import models
from ..exceptions import EquipmentNotFoundError, ThresholdNotFoundError, ThresholdValidationError
from ..models import RuleStatus, now_cst
from ..schemas import Page, ThresholdCreate, ThresholdQuery, ThresholdRead, ThresholdUpdate, check_limits

log = logging.getLogger(__name__)


def _ensure_equipment(db: Session, equipment_id: str) -> None:
    if db.get(models.Equipment, equipment_id) is None:
        raise EquipmentNotFoundError(f"设备不存在: {equipment_id}")


def _active():
    return select(models.ThresholdConfig).where(models.ThresholdConfig.deleted_at.is_(None))


def _get(db: Session, threshold_id: str) -> models.ThresholdConfig:
    row = db.execute(
        _active().where(models.ThresholdConfig.id == threshold_id)
    ).scalar_one_or_none()
    if row is None:
        raise ThresholdNotFoundError(f"阈值配置不存在: {threshold_id}")
    return row


def create(db: Session, payload: ThresholdCreate, user_id: Optional[str] = None) -> ThresholdRead:
    """
    创建阈值配置

    Raises:
        EquipmentNotFoundError: 设备不存在
    """
    _ensure_equipment(db, payload.equipment_id)

    row = models.ThresholdConfig(
        id=str(uuid.uuid4()),
        creator=user_id,
        modifier=user_id,
        **payload.model_dump(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info(
        "创建阈值配置: 设备=%s, 监测点=%s, 指标=%s, 严重程度=%s",
        row.equipment_id, row.monitoring_point, row.metric_type.value, row.severity.value,
    )
    return ThresholdRead.model_validate(row)


def find_all(db: Session, query: ThresholdQuery) -> Page[ThresholdRead]:
    """分页查询阈值配置（按创建时间倒序）"""
    stmt = _active()
    if query.equipment_id:
        stmt = stmt.where(models.ThresholdConfig.equipment_id == query.equipment_id)
    if query.monitoring_point:
        stmt = stmt.where(models.ThresholdConfig.monitoring_point == query.monitoring_point)
    if query.metric_type:
        stmt = stmt.where(models.ThresholdConfig.metric_type == query.metric_type)
    if query.rule_status:
        stmt = stmt.where(models.ThresholdConfig.rule_status == query.rule_status)

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = db.execute(
        stmt.order_by(models.ThresholdConfig.created_at.desc(), models.ThresholdConfig.id)
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
    ).scalars().all()
    return Page[ThresholdRead].build(
        [ThresholdRead.model_validate(r) for r in rows], total, query.page, query.page_size
    )


def find_one(db: Session, threshold_id: str) -> ThresholdRead:
    return ThresholdRead.model_validate(_get(db, threshold_id))


def update(
    db: Session,
    threshold_id: str,
    payload: ThresholdUpdate,
    user_id: Optional[str] = None,
) -> ThresholdRead:
    """
    更新阈值配置（部分更新）

    只更新请求中提供的字段，合并后的上下限按创建时的规则校验。

    Raises:
        ThresholdNotFoundError: 阈值配置不存在或已删除
        EquipmentNotFoundError: 更换的设备不存在
        ThresholdValidationError: 合并后的上下限不合法
    """
    row = _get(db, threshold_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("equipment_id") and changes["equipment_id"] != row.equipment_id:
        _ensure_equipment(db, changes["equipment_id"])

    try:
        check_limits(
            changes.get("lower_limit", row.lower_limit),
            changes.get("upper_limit", row.upper_limit),
        )
    except ValueError as e:
        raise ThresholdValidationError(str(e)) from e

    for key, value in changes.items():
        if value is None and key in ("equipment_id", "metric_type", "severity", "rule_status", "duration"):
            continue
        setattr(row, key, value)
    if user_id:
        row.modifier = user_id

    db.commit()
    db.refresh(row)
    log.info("更新阈值配置: %s, 字段=%s", row.id, ",".join(sorted(changes)))
    return ThresholdRead.model_validate(row)


def remove(db: Session, threshold_id: str, user_id: Optional[str] = None) -> None:
    """
    删除阈值配置（软删除）

    已生成的告警记录保留，其中的规则ID仍指向该配置。
    """
    row = _get(db, threshold_id)
    row.deleted_at = now_cst()
    if user_id:
        row.modifier = user_id
    db.commit()
    log.info("删除阈值配置: %s (设备=%s)", threshold_id, row.equipment_id)


def find_enabled_by_equipment(db: Session, equipment_id: str) -> List[ThresholdRead]:
    """查询设备所有启用的阈值配置"""
    rows = db.execute(
        _active().where(
            models.ThresholdConfig.equipment_id == equipment_id,
            models.ThresholdConfig.rule_status == RuleStatus.ENABLED,
        ).order_by(models.ThresholdConfig.created_at)
    ).scalars().all()
    return [ThresholdRead.model_validate(r) for r in rows]
