"""
ShipWatch 告警API路由模块

本模块提供告警记录的RESTful API接口：
- 分页查询告警（按设备、严重程度、处理状态、触发时间过滤）
- 查询单条告警
- 更新告警处理状态（乐观锁，版本冲突返回409）
- 待处理告警数量

响应中包含阈值范围描述（threshold_range）和中文严重程度/处理状态（severity_text/status_text）。

Author: ShipWatch Team
License: MIT
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..db import get_db
from ..exceptions import AlarmConflictError, AlarmNotFoundError
from ..models import AlarmSeverity, AlarmStatus
from ..services import alarm_service

router = APIRouter(prefix="/api/alarms", tags=["告警管理"])


@router.get("", response_model=schemas.Page[schemas.AlarmRead])
def list_alarms(
    equipment_id: Optional[str] = Query(None, description="设备ID"),
    severity: Optional[AlarmSeverity] = Query(None, description="严重程度"),
    status_: Optional[AlarmStatus] = Query(None, alias="status", description="处理状态"),
    start_time: Optional[int] = Query(None, ge=0, description="开始时间（Unix时间戳毫秒）"),
    end_time: Optional[int] = Query(None, ge=0, description="结束时间（Unix时间戳毫秒）"),
    page: int = Query(1, ge=1, description="页码（从1开始）"),
    page_size: int = Query(20, ge=1, le=100, description="每页条数"),
    db: Session = Depends(get_db),
):
    """
    分页查询告警记录

    按触发时间倒序返回。

    Example:
        ```bash
        GET /api/alarms?equipment_id=SYS-BAT-001&status=pending&page=1&page_size=20
        ```
    """
    query = schemas.AlarmQuery(
        equipment_id=equipment_id,
        severity=severity,
        status=status_,
        start_time=start_time,
        end_time=end_time,
        page=page,
        page_size=page_size,
    )
    return alarm_service.find_all(db, query)


@router.get("/pending/count", response_model=schemas.PendingCount)
def pending_count(
    equipment_id: Optional[str] = Query(None, description="设备ID"),
    db: Session = Depends(get_db),
):
    """待处理告警数量，用于通知角标"""
    return schemas.PendingCount(
        equipment_id=equipment_id,
        pending=alarm_service.count_pending(db, equipment_id),
    )


@router.get("/{alarm_id}", response_model=schemas.AlarmRead)
def get_alarm(alarm_id: str, db: Session = Depends(get_db)):
    try:
        return alarm_service.find_one(db, alarm_id)
    except AlarmNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{alarm_id}/status", response_model=schemas.AlarmRead)
def update_alarm_status(
    alarm_id: str,
    payload: schemas.UpdateAlarmStatus,
    x_user_id: Optional[str] = Header(None, description="操作员ID"),
    db: Session = Depends(get_db),
):
    """
    更新告警处理状态

    Args:
        alarm_id (str): 告警记录ID
        payload (UpdateAlarmStatus): 请求体，包含：
            - status: 处理状态（pending/processing/resolved/ignored）
            - handle_note: 处理说明（可选）
            - version: 读取时的告警版本号（可选，提供时进行冲突检测）
        x_user_id (str): 操作员ID（请求头 X-User-Id，可选）

    Raises:
        HTTPException 404: 告警记录不存在
        HTTPException 409: 告警已被其他操作员修改
    """
    try:
        return alarm_service.update_status(db, alarm_id, payload, x_user_id)
    except AlarmNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlarmConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
