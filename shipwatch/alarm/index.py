"""
阈值索引

把启用的阈值规则按 (设备ID, 指标类型, 监测点) 组合键分组，
评估时每条监测数据只需一次字典查找即可拿到候选规则。
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Union

from ..models import MetricType, RuleStatus
from ..schemas import ThresholdRule

ThresholdIndex = Dict[str, List[ThresholdRule]]


def threshold_key(equipment_id: str, metric_type: Union[MetricType, str], monitoring_point: Optional[str]) -> str:
    """
    计算组合键 "设备ID|指标类型|监测点"

    监测点为空（None）时按空字符串处理，即"不区分监测点"的规则
    只匹配同样没有监测点的数据。
    """
    metric = metric_type.value if isinstance(metric_type, MetricType) else metric_type
    return f"{equipment_id}|{metric}|{monitoring_point or ''}"


def build_threshold_index(rules: Iterable[ThresholdRule]) -> ThresholdIndex:
    """
    构建阈值索引

    同一组合键下可以有多条规则（不同严重程度分级各占一行），按输入顺序保存。
    未设置任何上下限的规则照样收录，只是永远不会触发。
    禁用的规则不进入索引。

    Args:
        rules: 阈值规则集合

    Returns:
        组合键 -> 规则列表
    """
    index: ThresholdIndex = {}
    for rule in rules:
        if rule.rule_status != RuleStatus.ENABLED:
            continue
        key = threshold_key(rule.equipment_id, rule.metric_type, rule.monitoring_point)
        index.setdefault(key, []).append(rule)
    return index
