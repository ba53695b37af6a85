"""
ShipWatch 数据验证模型

本模块定义了告警核心使用的领域模型，以及所有API接口的请求和响应模型，
使用Pydantic进行数据验证。

主要模型分类：
- 领域模型：Reading（监测数据）、ThresholdRule（阈值规则）、AlarmDraft（待写入告警）
- 设备管理模型：设备创建、查询
- 监测数据上报模型：单条/批量上报
- 阈值配置模型：创建、更新、查询
- 告警模型：查询、状态更新、分页结果

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .alarm.formatting import format_threshold_range
from .models import (
    CST,
    AlarmSeverity,
    AlarmStatus,
    DataQuality,
    DataSource,
    MetricType,
    RuleStatus,
)

T = TypeVar("T")


def to_cst(value: datetime) -> datetime:
    """统一时间为中国标准时间；不带时区的时间视为中国标准时间"""
    if value.tzinfo is None:
        return value.replace(tzinfo=CST)
    return value.astimezone(CST)


def check_limits(lower_limit: Optional[float], upper_limit: Optional[float]) -> None:
    """
    阈值规则创建/更新时的上下限校验

    Raises:
        ValueError: 上下限都未设置，或下限大于上限
    """
    if lower_limit is None and upper_limit is None:
        raise ValueError("至少需要设置上限值或下限值之一")
    if lower_limit is not None and upper_limit is not None and lower_limit > upper_limit:
        raise ValueError(f"下限值({lower_limit})不能大于上限值({upper_limit})")


# ========== 领域模型 ==========

class Reading(BaseModel):
    """
    时序监测数据点

    value 必须能解析为有限数值，否则校验失败（批量评估时该条数据被跳过）。
    """
    model_config = ConfigDict(from_attributes=True)

    equipment_id: str
    timestamp: datetime
    metric_type: MetricType
    monitoring_point: Optional[str] = None
    value: float = Field(..., allow_inf_nan=False)
    unit: Optional[str] = None
    quality: DataQuality = DataQuality.NORMAL
    source: DataSource = DataSource.SENSOR_UPLOAD

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, v: datetime) -> datetime:
        return to_cst(v)

    def full_identifier(self) -> str:
        """完整监测标识，格式："设备ID-监测点-指标类型"，无监测点时为"设备ID-指标类型" """
        if self.monitoring_point and self.monitoring_point.strip():
            return f"{self.equipment_id}-{self.monitoring_point}-{self.metric_type.value}"
        return f"{self.equipment_id}-{self.metric_type.value}"


class ThresholdRule(BaseModel):
    """阈值规则（评估时只读）"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    equipment_id: str
    metric_type: MetricType
    monitoring_point: Optional[str] = None
    fault_name: Optional[str] = None
    lower_limit: Optional[float] = None
    upper_limit: Optional[float] = None
    duration: int = 0
    severity: AlarmSeverity
    recommended_action: Optional[str] = None
    rule_status: RuleStatus = RuleStatus.ENABLED


class AlarmDraft(BaseModel):
    """
    告警生成器产出的告警记录（尚未持久化）

    字段与 alarm_records 表一一对应。
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    equipment_id: str
    threshold_id: Optional[str] = None
    abnormal_metric_type: MetricType
    monitoring_point: Optional[str] = None
    fault_name: Optional[str] = None
    recommended_action: Optional[str] = None
    abnormal_value: float
    upper_limit: Optional[float] = None
    lower_limit: Optional[float] = None
    unit: Optional[str] = None
    triggered_at: datetime
    severity: AlarmSeverity
    status: AlarmStatus = AlarmStatus.PENDING
    handler: Optional[str] = None
    handled_at: Optional[datetime] = None
    handle_note: Optional[str] = None
    created_at: datetime

    @property
    def threshold_range(self) -> str:
        return format_threshold_range(self.upper_limit, self.lower_limit, self.unit)


# ========== 设备相关模型 ==========

class EquipmentCreate(BaseModel):
    """创建设备请求模型"""
    id: str = Field(..., max_length=36, description="设备ID，例如：'SYS-BAT-001'")
    name: str = Field(..., description="设备名称")
    device_type: Optional[str] = Field(None, description="设备类型/子系统")
    location: Optional[str] = Field(None, description="安装位置")
    status: Optional[str] = Field("running", description="设备状态：running/maintenance/stopped")


class EquipmentRead(BaseModel):
    """设备查询响应模型"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    device_type: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None


# ========== 监测数据上报模型 ==========

class ReadingItem(BaseModel):
    """批量上报中的单条数据"""
    timestamp: datetime
    metric_type: MetricType
    monitoring_point: Optional[str] = Field(None, max_length=100, description="监测点名称，如'总电压'")
    value: float = Field(..., allow_inf_nan=False)
    unit: Optional[str] = Field(None, max_length=20, description="数据单位，未提供时使用指标类型标准单位")
    quality: Optional[DataQuality] = None
    source: Optional[DataSource] = None


class ReadingCreate(ReadingItem):
    """单条监测数据上报请求模型"""
    equipment_id: str = Field(..., description="设备ID")


class ReadingBatchCreate(BaseModel):
    """批量监测数据上报请求模型（同一设备）"""
    equipment_id: str = Field(..., description="设备ID")
    data: List[ReadingItem] = Field(..., min_length=1, max_length=1000)


class IngestResponse(BaseModel):
    """监测数据上报响应模型"""
    received: int = Field(..., description="成功保存的数据条数")
    queued_for_evaluation: int = Field(..., description="已提交告警评估的数据条数")


# ========== 阈值配置模型 ==========

class ThresholdCreate(BaseModel):
    """
    创建阈值配置请求模型

    创建时校验：至少设置上限或下限之一，且下限不大于上限。
    """
    equipment_id: str = Field(..., description="设备ID")
    metric_type: MetricType = Field(..., description="监测指标类型")
    monitoring_point: Optional[str] = Field(None, max_length=100, description="监测点名称")
    fault_name: Optional[str] = Field(None, max_length=100, description="故障名称")
    upper_limit: Optional[float] = Field(None, description="上限值（超过此值触发告警）")
    lower_limit: Optional[float] = Field(None, description="下限值（低于此值触发告警）")
    duration: int = Field(0, ge=0, description="持续时间（毫秒），超过阈值并持续该时间后才触发告警")
    severity: AlarmSeverity = Field(..., description="严重程度")
    recommended_action: Optional[str] = Field(None, description="处理措施")
    rule_status: RuleStatus = Field(RuleStatus.ENABLED, description="规则状态")

    @model_validator(mode="after")
    def _validate_limits(self) -> "ThresholdCreate":
        check_limits(self.lower_limit, self.upper_limit)
        return self


class ThresholdUpdate(BaseModel):
    """更新阈值配置请求模型（部分更新，上下限在合并后校验）"""
    equipment_id: Optional[str] = None
    metric_type: Optional[MetricType] = None
    monitoring_point: Optional[str] = Field(None, max_length=100)
    fault_name: Optional[str] = Field(None, max_length=100)
    upper_limit: Optional[float] = None
    lower_limit: Optional[float] = None
    duration: Optional[int] = Field(None, ge=0)
    severity: Optional[AlarmSeverity] = None
    recommended_action: Optional[str] = None
    rule_status: Optional[RuleStatus] = None


class ThresholdRead(ThresholdRule):
    """阈值配置查询响应模型"""
    creator: Optional[str] = None
    modifier: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def threshold_range(self) -> str:
        return format_threshold_range(self.upper_limit, self.lower_limit)


class ThresholdQuery(BaseModel):
    """阈值配置查询条件"""
    equipment_id: Optional[str] = None
    monitoring_point: Optional[str] = None
    metric_type: Optional[MetricType] = None
    rule_status: Optional[RuleStatus] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


# ========== 告警模型 ==========

class AlarmQuery(BaseModel):
    """
    告警记录查询条件

    start_time / end_time 为 Unix 时间戳（毫秒），按触发时间过滤，闭区间。
    """
    equipment_id: Optional[str] = None
    severity: Optional[AlarmSeverity] = None
    status: Optional[AlarmStatus] = None
    start_time: Optional[int] = Field(None, ge=0, description="开始时间（Unix时间戳毫秒）")
    end_time: Optional[int] = Field(None, ge=0, description="结束时间（Unix时间戳毫秒）")
    page: int = Field(1, ge=1, description="页码（从1开始）")
    page_size: int = Field(20, ge=1, le=100, description="每页条数")


class AlarmRead(BaseModel):
    """告警记录响应模型"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    equipment_id: str
    threshold_id: Optional[str] = None
    abnormal_metric_type: MetricType
    monitoring_point: Optional[str] = None
    fault_name: Optional[str] = None
    recommended_action: Optional[str] = None
    abnormal_value: float
    upper_limit: Optional[float] = None
    lower_limit: Optional[float] = None
    unit: Optional[str] = None
    triggered_at: datetime
    severity: AlarmSeverity
    status: AlarmStatus
    handler: Optional[str] = None
    handled_at: Optional[datetime] = None
    handle_note: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int

    @field_validator("triggered_at", "handled_at", "created_at")
    @classmethod
    def _normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_cst(v) if v is not None else None

    @computed_field
    @property
    def threshold_range(self) -> str:
        return format_threshold_range(self.upper_limit, self.lower_limit, self.unit)

    @computed_field
    @property
    def severity_text(self) -> str:
        return self.severity.label

    @computed_field
    @property
    def status_text(self) -> str:
        return self.status.label


class UpdateAlarmStatus(BaseModel):
    """
    更新告警状态请求模型

    version 为客户端读取到的告警版本号；提供时若与当前版本不一致则返回冲突。
    """
    status: AlarmStatus = Field(..., description="处理状态")
    handle_note: Optional[str] = Field(None, description="处理说明")
    version: Optional[int] = Field(None, ge=1, description="乐观锁版本号")


class PendingCount(BaseModel):
    """待处理告警数量（通知角标）"""
    equipment_id: Optional[str] = None
    pending: int


class Page(BaseModel, Generic[T]):
    """分页查询结果"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], total: int, page: int, page_size: int) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if page_size else 0,
        )
