"""
ShipWatch 阈值配置API路由模块

本模块提供阈值配置的RESTful API接口：
- 创建、查询、更新、删除（软删除）阈值配置
- 查询设备所有启用的阈值配置

阈值配置变更后使流式告警评估的规则缓存失效，新规则在下一条监测数据到达时生效。

Author: ShipWatch Team
License: MIT
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from .. import schemas
from ..db import get_db
from ..exceptions import EquipmentNotFoundError, ThresholdNotFoundError, ThresholdValidationError
from ..models import MetricType, RuleStatus
from ..services import threshold_service

router = APIRouter(prefix="/api/thresholds", tags=["阈值配置"])


def _invalidate_rules(request: Request) -> None:
    rule_cache = getattr(request.app.state, "rule_cache", None)
    if rule_cache is not None:
        rule_cache.invalidate()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.ThresholdRead)
def create_threshold(
    payload: schemas.ThresholdCreate,
    request: Request,
    x_user_id: Optional[str] = Header(None, description="操作员ID"),
    db: Session = Depends(get_db),
):
    """
    创建阈值配置

    同一 (设备, 指标, 监测点) 可以创建多条不同严重程度的规则。

    Raises:
        HTTPException 404: 设备不存在
        HTTPException 422: 上下限都未设置，或下限大于上限

    Example:
        ```json
        POST /api/thresholds
        {
            "equipment_id": "SYS-BAT-001",
            "metric_type": "voltage",
            "monitoring_point": "总电压",
            "fault_name": "总电压过压",
            "upper_limit": 650,
            "severity": "critical"
        }
        ```
    """
    try:
        result = threshold_service.create(db, payload, x_user_id)
    except EquipmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    _invalidate_rules(request)
    return result


@router.get("", response_model=schemas.Page[schemas.ThresholdRead])
def list_thresholds(
    equipment_id: Optional[str] = Query(None, description="设备ID"),
    monitoring_point: Optional[str] = Query(None, max_length=100, description="监测点名称"),
    metric_type: Optional[MetricType] = Query(None, description="指标类型"),
    rule_status: Optional[RuleStatus] = Query(None, description="规则状态"),
    page: int = Query(1, ge=1, description="页码（从1开始）"),
    page_size: int = Query(20, ge=1, le=100, description="每页条数"),
    db: Session = Depends(get_db),
):
    """分页查询阈值配置"""
    query = schemas.ThresholdQuery(
        equipment_id=equipment_id,
        monitoring_point=monitoring_point,
        metric_type=metric_type,
        rule_status=rule_status,
        page=page,
        page_size=page_size,
    )
    return threshold_service.find_all(db, query)


@router.get("/equipment/{equipment_id}/enabled", response_model=List[schemas.ThresholdRead])
def list_enabled_thresholds(equipment_id: str, db: Session = Depends(get_db)):
    """查询设备所有启用的阈值配置（按创建时间排序，不分页）"""
    return threshold_service.find_enabled_by_equipment(db, equipment_id)


@router.get("/{threshold_id}", response_model=schemas.ThresholdRead)
def get_threshold(threshold_id: str, db: Session = Depends(get_db)):
    try:
        return threshold_service.find_one(db, threshold_id)
    except ThresholdNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{threshold_id}", response_model=schemas.ThresholdRead)
def update_threshold(
    threshold_id: str,
    payload: schemas.ThresholdUpdate,
    request: Request,
    x_user_id: Optional[str] = Header(None, description="操作员ID"),
    db: Session = Depends(get_db),
):
    """
    更新阈值配置（部分更新）

    Raises:
        HTTPException 404: 阈值配置或设备不存在
        HTTPException 422: 合并后的上下限不合法
    """
    try:
        result = threshold_service.update(db, threshold_id, payload, x_user_id)
    except (ThresholdNotFoundError, EquipmentNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ThresholdValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    _invalidate_rules(request)
    return result


@router.delete("/{threshold_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_threshold(
    threshold_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None, description="操作员ID"),
    db: Session = Depends(get_db),
):
    """删除阈值配置（软删除），已生成的告警记录保留"""
    try:
        threshold_service.remove(db, threshold_id, x_user_id)
    except ThresholdNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    _invalidate_rules(request)
