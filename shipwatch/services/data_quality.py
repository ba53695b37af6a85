"""
ShipWatch 数据质量检查

监测数据入库前标记数据质量（quality 字段）：

- abnormal: 数值超出指标类型的合理范围（见 models.METRIC_RANGES）
- suspicious: 数值落在合理范围两端 5% 的边界带内、时间戳在未来（超过5分钟）
  或过于陈旧（超过1年）、上报单位与指标标准单位不一致
- normal: 通过以上全部检查

质量标记只用于数据追溯，不影响阈值评估。

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from ..models import DataQuality, MetricType, now_cst
from ..schemas import to_cst

EDGE_BAND_RATIO = 0.05
FUTURE_TOLERANCE = timedelta(minutes=5)
MAX_AGE = timedelta(days=365)


@dataclass
class QualityCheck:
    """数据质量检查结果"""
    quality: DataQuality = DataQuality.NORMAL
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def reasons(self) -> str:
        return "; ".join(self.errors + self.warnings)


def _check_value(metric_type: MetricType, value: float, check: QualityCheck) -> None:
    low, high = metric_type.plausible_range
    unit = metric_type.standard_unit
    if value < low or value > high:
        check.errors.append(f"数值超出合理范围: {value} (合理范围: {low:g} ~ {high:g} {unit})")
        return
    # 开关量只有0/1两个取值，不做边界带判断
    if metric_type == MetricType.SWITCH:
        return
    band = (high - low) * EDGE_BAND_RATIO
    if value < low + band or value > high - band:
        check.warnings.append(f"数值接近边界，可能存在异常: {value} {unit}")


def _check_timestamp(timestamp: datetime, now: datetime, check: QualityCheck) -> None:
    if timestamp > now + FUTURE_TOLERANCE:
        check.warnings.append(f"时间戳在未来: {timestamp.isoformat()}")
    elif timestamp < now - MAX_AGE:
        check.warnings.append(f"时间戳过于陈旧: {timestamp.isoformat()} (超过1年)")


def check_quality(
    metric_type: MetricType,
    value: float,
    timestamp: datetime,
    unit: Optional[str] = None,
    now: Optional[datetime] = None,
) -> QualityCheck:
    """
    检查单条监测数据的质量

    Args:
        metric_type: 指标类型
        value: 数值
        timestamp: 数据时间戳
        unit: 上报的单位（未上报时不检查单位）
        now: 当前时间，默认取中国标准时间

    Returns:
        QualityCheck: 有错误时为 abnormal，只有警告时为 suspicious
    """
    check = QualityCheck()
    _check_value(metric_type, value, check)
    _check_timestamp(to_cst(timestamp), to_cst(now or now_cst()), check)
    if unit and unit != metric_type.standard_unit:
        check.warnings.append(f"单位不匹配: 期望{metric_type.standard_unit}, 实际{unit}")

    if check.errors:
        check.quality = DataQuality.ABNORMAL
    elif check.warnings:
        check.quality = DataQuality.SUSPICIOUS
    return check
