"""
ShipWatch 设备管理API路由模块

本模块提供设备登记相关的RESTful API接口，包括：
- 登记设备
- 查询设备列表

阈值配置和监测数据上报时会校验设备是否已登记。

Author: ShipWatch Team
License: MIT
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db import get_db

router = APIRouter(prefix="/equipment", tags=["设备管理"])


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.EquipmentRead)
def create_equipment(payload: schemas.EquipmentCreate, db: Session = Depends(get_db)):
    """
    登记设备

    Args:
        payload (EquipmentCreate): 设备登记请求体，包含：
            - id: 设备ID（必填，如"SYS-BAT-001"）
            - name: 设备名称（必填）
            - device_type: 设备类型/子系统（可选）
            - location: 安装位置（可选）
            - status: 设备状态（可选，默认"running"）
        db (Session): 数据库会话（自动注入）

    Returns:
        EquipmentRead: 登记成功的设备信息

    Raises:
        HTTPException 400: 设备已存在

    Example:
        ```json
        POST /equipment/
        {
            "id": "SYS-BAT-001",
            "name": "电池系统",
            "device_type": "battery",
            "location": "机舱"
        }
        ```
    """
    if db.get(models.Equipment, payload.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"设备 {payload.id} 已存在"
        )

    equipment = models.Equipment(
        id=payload.id,
        name=payload.name,
        device_type=payload.device_type,
        location=payload.location,
        status=payload.status or "running",
    )
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    return equipment


@router.get("/", response_model=List[schemas.EquipmentRead])
def list_equipment(db: Session = Depends(get_db)):
    """
    列出所有已登记设备

    返回所有设备，无论状态如何。
    """
    stmt = select(models.Equipment).order_by(models.Equipment.id)
    return db.execute(stmt).scalars().all()
