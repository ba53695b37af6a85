"""
ShipWatch 数据模型定义

本模块定义了系统的核心数据模型：
- 设备登记：equipment
- 时序监测数据：time_series_data
- 阈值配置：threshold_configs
- 告警记录：alarm_records

所有模型均基于SQLAlchemy ORM。时序数据在生产环境中按月分区存储，
分区属于存储层职责，不影响本模块的表定义。

Author: ShipWatch Team
License: MIT
"""
import enum
from datetime import datetime
from typing import Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base

# 时区配置：使用中国标准时间
CST = ZoneInfo("Asia/Shanghai")


def now_cst() -> datetime:
    """获取当前中国标准时间（带时区）"""
    return datetime.now(CST)


def _enum_column(enum_cls, **kwargs):
    # 数据库中存储枚举的值（如 "voltage"），而不是成员名（如 "VOLTAGE"）
    return Column(
        Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=32),
        **kwargs,
    )


# ============================================================================
# 枚举定义
# ============================================================================

class MetricType(str, enum.Enum):
    """
    指标类型枚举

    表示物理测量类型，为封闭集合：新增指标类型必须在此处登记，
    同时在 STANDARD_UNITS 中给出标准单位、在 METRIC_RANGES 中给出合理范围。
    """
    VIBRATION = "vibration"      # 振动
    TEMPERATURE = "temperature"  # 温度
    PRESSURE = "pressure"        # 压力
    HUMIDITY = "humidity"        # 湿度
    SPEED = "speed"              # 速度/转速
    CURRENT = "current"          # 电流
    VOLTAGE = "voltage"          # 电压
    POWER = "power"              # 功率
    FREQUENCY = "frequency"      # 频率
    LEVEL = "level"              # 液位
    RESISTANCE = "resistance"    # 电阻
    SWITCH = "switch"            # 开关状态

    @property
    def standard_unit(self) -> str:
        return STANDARD_UNITS[self]

    @property
    def plausible_range(self) -> Tuple[float, float]:
        return METRIC_RANGES[self]


STANDARD_UNITS = {
    MetricType.VIBRATION: "mm/s",
    MetricType.TEMPERATURE: "°C",
    MetricType.PRESSURE: "MPa",
    MetricType.HUMIDITY: "%",
    MetricType.SPEED: "rpm",
    MetricType.CURRENT: "A",
    MetricType.VOLTAGE: "V",
    MetricType.POWER: "kW",
    MetricType.FREQUENCY: "Hz",
    MetricType.LEVEL: "mm",
    MetricType.RESISTANCE: "Ω/V",
    MetricType.SWITCH: "",
}

# 各指标类型的合理数值范围（最小值, 最大值），超出范围的数据标记为 abnormal
METRIC_RANGES = {
    MetricType.VIBRATION: (0.0, 100.0),
    MetricType.TEMPERATURE: (-50.0, 200.0),
    MetricType.PRESSURE: (0.0, 50.0),
    MetricType.HUMIDITY: (0.0, 100.0),
    MetricType.SPEED: (0.0, 10000.0),
    MetricType.CURRENT: (0.0, 1000.0),
    MetricType.VOLTAGE: (0.0, 1000.0),
    MetricType.POWER: (0.0, 10000.0),
    MetricType.FREQUENCY: (0.0, 100.0),
    MetricType.LEVEL: (0.0, 10000.0),
    MetricType.RESISTANCE: (0.0, 10000.0),
    MetricType.SWITCH: (0.0, 1.0),
}


class DataQuality(str, enum.Enum):
    """数据质量标记"""
    NORMAL = "normal"          # 数据通过所有验证
    ABNORMAL = "abnormal"      # 数值无效或超出合理范围
    SUSPICIOUS = "suspicious"  # 疑似故障（时间戳异常、设备离线期间数据等）


class DataSource(str, enum.Enum):
    """数据来源"""
    SENSOR_UPLOAD = "sensor-upload"  # 传感器实时上报
    FILE_IMPORT = "file-import"      # 历史数据文件导入
    MANUAL_ENTRY = "manual-entry"    # 人工补录


class AlarmSeverity(str, enum.Enum):
    """
    告警严重程度

    rank 用于"仅上报最严重"策略中的比较，数值越大越严重。
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]

    @property
    def label(self) -> str:
        return SEVERITY_LABELS[self]


SEVERITY_RANK = {
    AlarmSeverity.LOW: 1,
    AlarmSeverity.MEDIUM: 2,
    AlarmSeverity.HIGH: 3,
    AlarmSeverity.CRITICAL: 4,
}

SEVERITY_LABELS = {
    AlarmSeverity.LOW: "低",
    AlarmSeverity.MEDIUM: "中",
    AlarmSeverity.HIGH: "高",
    AlarmSeverity.CRITICAL: "严重",
}


class RuleStatus(str, enum.Enum):
    """规则状态，只有 enabled 的规则参与评估"""
    ENABLED = "enabled"
    DISABLED = "disabled"


class AlarmStatus(str, enum.Enum):
    """告警处理状态"""
    PENDING = "pending"        # 待处理
    PROCESSING = "processing"  # 处理中
    RESOLVED = "resolved"      # 已解决
    IGNORED = "ignored"        # 已忽略

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    AlarmStatus.PENDING: "待处理",
    AlarmStatus.PROCESSING: "处理中",
    AlarmStatus.RESOLVED: "已解决",
    AlarmStatus.IGNORED: "已忽略",
}


# ============================================================================
# 设备登记
# ============================================================================

class Equipment(Base):
    """
    设备表

    核心评估逻辑只把设备ID当作不透明标识使用；本表用于阈值配置时
    校验所引用的设备是否存在。

    Attributes:
        id: 设备唯一标识（主键），如"SYS-BAT-001"
        name: 设备名称，如"电池系统"
        device_type: 设备类型/子系统，如 battery、propulsion、inverter
        location: 安装位置，如"机舱左舷"
        status: 设备状态：running(运行)/maintenance(维修中)/stopped(停机)
    """
    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, comment="设备ID")
    name = Column(String(100), nullable=False, comment="设备名称")
    device_type = Column(String(50), comment="设备类型/子系统")
    location = Column(String(100), comment="安装位置")
    status = Column(String(20), default="running", comment="设备状态")
    created_at = Column(DateTime(timezone=True), default=now_cst, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=now_cst, onupdate=now_cst, comment="更新时间")


# ============================================================================
# 时序监测数据
# ============================================================================

class TimeSeriesData(Base):
    """
    时序监测数据表

    每条记录是某设备某监测点某指标在某时刻的一次观测，写入后不再修改。

    Attributes:
        id: 自增主键
        equipment_id: 设备ID（必填）
        timestamp: 数据时间戳（必填，毫秒精度）
        metric_type: 指标类型（必填）
        monitoring_point: 监测点名称，用于区分相同物理类型但业务含义不同的测量值（如"总电压" vs "单体电压"）
        value: 指标数值，DECIMAL(10,2)
        unit: 数据单位，未提供时使用指标类型的标准单位
        quality: 数据质量标记
        source: 数据来源
    """
    __tablename__ = "time_series_data"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="自增主键")
    equipment_id = Column(String(36), ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, comment="设备ID")
    timestamp = Column(DateTime(timezone=True), nullable=False, comment="数据时间戳")
    metric_type = _enum_column(MetricType, nullable=False, comment="指标类型")
    monitoring_point = Column(String(100), comment="监测点名称")
    value = Column(Numeric(10, 2, asdecimal=False), nullable=False, comment="指标数值")
    unit = Column(String(20), comment="数据单位")
    quality = _enum_column(DataQuality, nullable=False, default=DataQuality.NORMAL, comment="数据质量标记")
    source = _enum_column(DataSource, nullable=False, default=DataSource.SENSOR_UPLOAD, comment="数据来源")
    created_at = Column(DateTime(timezone=True), default=now_cst, comment="创建时间")

    equipment = relationship("Equipment", backref="time_series")

    __table_args__ = (
        Index("idx_equipment_time", "equipment_id", "timestamp"),
        Index("idx_equipment_metric_time", "equipment_id", "metric_type", "timestamp"),
        Index("idx_equipment_monitoring_time", "equipment_id", "monitoring_point", "timestamp"),
    )


# ============================================================================
# 阈值配置
# ============================================================================

class ThresholdConfig(Base):
    """
    阈值配置表

    定义设备监测指标的告警阈值规则。同一 (设备, 指标, 监测点) 可以有多条规则，
    分别对应不同的严重程度分级（例如 low 档和 critical 档是两行独立记录）。

    Attributes:
        upper_limit: 上限值，监测值超过此值触发告警
        lower_limit: 下限值，监测值低于此值触发告警
        duration: 持续时间（毫秒），超过阈值并持续该时间后才触发告警
        severity: 严重程度
        rule_status: 规则状态，只有 enabled 参与评估
        deleted_at: 软删除时间，非空表示已删除
    """
    __tablename__ = "threshold_configs"

    id = Column(String(36), primary_key=True, comment="阈值配置ID")
    equipment_id = Column(String(36), ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, comment="设备ID")
    metric_type = _enum_column(MetricType, nullable=False, comment="监测指标类型")
    monitoring_point = Column(String(100), comment="监测点名称，为空表示不区分监测点")
    fault_name = Column(String(100), comment="故障名称")
    upper_limit = Column(Numeric(10, 2, asdecimal=False), comment="上限值")
    lower_limit = Column(Numeric(10, 2, asdecimal=False), comment="下限值")
    duration = Column(Integer, nullable=False, default=0, comment="持续时间(毫秒)")
    severity = _enum_column(AlarmSeverity, nullable=False, comment="严重程度")
    recommended_action = Column(Text, comment="处理措施")
    rule_status = _enum_column(RuleStatus, nullable=False, default=RuleStatus.ENABLED, comment="规则状态")
    creator = Column(String(36), comment="创建人ID")
    modifier = Column(String(36), comment="修改人ID")
    created_at = Column(DateTime(timezone=True), default=now_cst, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=now_cst, onupdate=now_cst, comment="更新时间")
    deleted_at = Column(DateTime(timezone=True), comment="软删除时间")

    equipment = relationship("Equipment", backref="thresholds")

    __table_args__ = (
        Index("idx_threshold_equipment_metric", "equipment_id", "metric_type"),
        Index("idx_threshold_status", "rule_status"),
    )


# ============================================================================
# 告警记录
# ============================================================================

class AlarmRecord(Base):
    """
    告警记录表

    由告警生成器在监测值越限时写入，之后只有操作员的状态处理会修改记录。
    除了反规范化的故障名称、处理措施、监测点外，还保存触发规则的原始上下限数值和单位，
    阈值范围描述在展示层由这些字段生成。

    version 为乐观锁版本号：多个操作员同时处理同一告警时，后提交者会收到冲突错误。
    """
    __tablename__ = "alarm_records"

    id = Column(String(36), primary_key=True, comment="告警记录ID")
    equipment_id = Column(String(36), nullable=False, comment="设备ID")
    threshold_id = Column(String(36), ForeignKey("threshold_configs.id", ondelete="SET NULL"), comment="触发的阈值配置ID")
    abnormal_metric_type = _enum_column(MetricType, nullable=False, comment="异常指标类型")
    monitoring_point = Column(String(100), comment="监测点名称")
    fault_name = Column(String(100), comment="故障名称")
    recommended_action = Column(Text, comment="处理措施")
    abnormal_value = Column(Numeric(10, 2, asdecimal=False), nullable=False, comment="异常值")
    upper_limit = Column(Numeric(10, 2, asdecimal=False), comment="触发时的上限值")
    lower_limit = Column(Numeric(10, 2, asdecimal=False), comment="触发时的下限值")
    unit = Column(String(20), comment="数据单位")
    triggered_at = Column(DateTime(timezone=True), nullable=False, comment="触发时间")
    severity = _enum_column(AlarmSeverity, nullable=False, comment="严重程度")
    status = _enum_column(AlarmStatus, nullable=False, default=AlarmStatus.PENDING, comment="处理状态")
    handler = Column(String(36), comment="处理人ID")
    handled_at = Column(DateTime(timezone=True), comment="处理时间")
    handle_note = Column(Text, comment="处理说明")
    created_at = Column(DateTime(timezone=True), default=now_cst, comment="创建时间")
    version = Column(Integer, nullable=False, default=1, comment="乐观锁版本号")

    threshold = relationship("ThresholdConfig")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_alarm_equipment", "equipment_id"),
        Index("idx_alarm_threshold", "threshold_id"),
        Index("idx_alarm_severity", "severity"),
        Index("idx_alarm_status", "status"),
        Index("idx_alarm_triggered_at", "triggered_at"),
        Index("idx_alarm_equipment_status", "equipment_id", "status"),
    )
