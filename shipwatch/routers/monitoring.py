"""
ShipWatch 监测数据上报API路由模块

本模块提供监测数据上报接口：
- 单条上报：POST /api/monitoring/data
- 批量上报：POST /api/monitoring/data/batch（同一设备，最多1000条）

未指定数据质量时按指标合理范围、时间戳和单位自动标记（见 services/data_quality.py）。
数据先写入 time_series_data，再提交到流式告警评估；接口不等待评估完成。

Author: ShipWatch Team
License: MIT
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..db import get_db
from ..models import DataQuality, DataSource
from ..services.data_quality import check_quality

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitoring", tags=["监测数据"])


def _to_reading(equipment_id: str, item: schemas.ReadingItem) -> schemas.Reading:
    reading = schemas.Reading(
        equipment_id=equipment_id,
        timestamp=item.timestamp,
        metric_type=item.metric_type,
        monitoring_point=item.monitoring_point,
        value=item.value,
        unit=item.unit or item.metric_type.standard_unit,
        quality=item.quality or DataQuality.NORMAL,
        source=item.source or DataSource.SENSOR_UPLOAD,
    )
    if item.quality is None:
        check = check_quality(item.metric_type, item.value, reading.timestamp, item.unit)
        if check.quality != DataQuality.NORMAL:
            log.warning(
                "数据质量异常: %s, 值=%s, 质量=%s, 原因=%s",
                reading.full_identifier(), reading.value, check.quality.value, check.reasons,
            )
            reading = reading.model_copy(update={"quality": check.quality})
    return reading


def _ingest(request: Request, db: Session, equipment_id: str, items: List[schemas.ReadingItem]) -> schemas.IngestResponse:
    if db.get(models.Equipment, equipment_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"设备不存在: {equipment_id}"
        )

    readings = [_to_reading(equipment_id, item) for item in items]
    db.add_all(models.TimeSeriesData(**r.model_dump()) for r in readings)
    db.commit()

    queued = 0
    evaluator = getattr(request.app.state, "stream_evaluator", None)
    if evaluator is not None:
        for reading in readings:
            evaluator.submit(reading)
            queued += 1
    else:
        log.warning("流式告警评估未启动，数据仅保存: 设备=%s, 条数=%d", equipment_id, len(readings))

    return schemas.IngestResponse(received=len(readings), queued_for_evaluation=queued)


@router.post("/data", status_code=status.HTTP_201_CREATED, response_model=schemas.IngestResponse)
def upload_reading(payload: schemas.ReadingCreate, request: Request, db: Session = Depends(get_db)):
    """
    上报单条监测数据

    Example:
        ```json
        POST /api/monitoring/data
        {
            "equipment_id": "SYS-BAT-001",
            "timestamp": "2025-01-01T10:00:00+08:00",
            "metric_type": "voltage",
            "monitoring_point": "总电压",
            "value": 702.9
        }
        ```
    """
    return _ingest(request, db, payload.equipment_id, [payload])


@router.post("/data/batch", status_code=status.HTTP_201_CREATED, response_model=schemas.IngestResponse)
def upload_readings(payload: schemas.ReadingBatchCreate, request: Request, db: Session = Depends(get_db)):
    """
    批量上报同一设备的监测数据

    单次最多1000条；数据按请求中的顺序提交评估。
    """
    return _ingest(request, db, payload.equipment_id, payload.data)
