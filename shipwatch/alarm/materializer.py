"""
告警生成器

把 (监测数据, 越限规则) 组合构造成告警记录：

- abnormal_value 取监测数据的数值
- triggered_at 取监测数据的时间戳（"异常被观测到的时间"，而不是计算告警的时间），
  created_at 与之相同
- 严重程度、故障名称、处理措施、监测点从规则复制
- 保留规则的原始上下限和数据单位，阈值范围描述在展示层生成
- 状态固定为 pending，没有处理人

本模块不做持久化，由调用方负责写入。
"""
from __future__ import annotations

from ..models import AlarmStatus
from ..schemas import AlarmDraft, Reading, ThresholdRule
from .formatting import format_threshold_range

__all__ = ["materialize", "format_threshold_range"]


def materialize(reading: Reading, rule: ThresholdRule) -> AlarmDraft:
    """
    构造告警记录

    Args:
        reading: 越限的监测数据
        rule: 被越过的阈值规则

    Returns:
        待写入的告警记录
    """
    unit = reading.unit if reading.unit is not None else reading.metric_type.standard_unit
    return AlarmDraft(
        equipment_id=reading.equipment_id,
        threshold_id=rule.id,
        abnormal_metric_type=reading.metric_type,
        monitoring_point=rule.monitoring_point,
        fault_name=rule.fault_name,
        recommended_action=rule.recommended_action,
        abnormal_value=float(reading.value),
        upper_limit=rule.upper_limit,
        lower_limit=rule.lower_limit,
        unit=unit,
        triggered_at=reading.timestamp,
        severity=rule.severity,
        status=AlarmStatus.PENDING,
        created_at=reading.timestamp,
    )
