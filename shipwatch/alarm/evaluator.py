"""
阈值评估器

对单条监测数据找出所有被越限的阈值规则。

判定规则：
- 设置了上限且 value > 上限，或设置了下限且 value < 下限，即为越限
- 严格比较，不带容差；恰好等于边界值不算越限
- 上下限都未设置的规则永不越限
- 下限大于上限这类配置错误不在此处校验（在规则创建时校验）
"""
from __future__ import annotations

import logging
from typing import List

from ..schemas import Reading, ThresholdRule
from .index import ThresholdIndex, threshold_key

log = logging.getLogger(__name__)


def is_breached(value: float, rule: ThresholdRule) -> bool:
    """判断数值是否越过单条规则的上限或下限"""
    if rule.upper_limit is not None and value > rule.upper_limit:
        return True
    if rule.lower_limit is not None and value < rule.lower_limit:
        return True
    return False


def evaluate(reading: Reading, index: ThresholdIndex) -> List[ThresholdRule]:
    """
    评估单条监测数据

    返回该组合键下所有被越限的规则，而不是只返回第一条或最严重的一条；
    一条数据同时越过多个分级时会得到多条规则（是否全部上报由告警策略决定）。

    Args:
        reading: 监测数据
        index: build_threshold_index 构建的阈值索引

    Returns:
        被越限的规则列表，保持索引中的顺序；没有匹配规则时返回空列表
    """
    candidates = index.get(threshold_key(reading.equipment_id, reading.metric_type, reading.monitoring_point))
    if not candidates:
        return []

    breached = [rule for rule in candidates if is_breached(reading.value, rule)]
    if breached:
        log.debug(
            "监测数据越限: 设备=%s, 监测点=%s, 指标=%s, 值=%s, 越限规则数=%d",
            reading.equipment_id, reading.monitoring_point, reading.metric_type.value,
            reading.value, len(breached),
        )
    return breached
