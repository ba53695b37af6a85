"""
ShipWatch 告警策略抽象基类

一条监测数据可能同时越过同一组合键下的多条分级规则（如 low 档和 critical 档）。
告警策略决定这些越限规则中哪些最终生成告警：

- ReportAllPolicy（all，默认）：每个被越过的分级都生成告警
- MostSevereOnlyPolicy（most_severe）：只保留严重程度最高的分级，低分级被省略

通过继承 BreachPolicy 可以扩展新的策略，并在 POLICIES 中登记名称。

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type

from ..schemas import Reading, ThresholdRule

log = logging.getLogger(__name__)


class BreachPolicy(ABC):
    """
    告警策略的抽象基类

    select 接收评估器返回的越限规则列表（保持索引顺序），返回需要生成告警的规则。
    实现不得修改传入的列表。
    """

    name: str = ""

    def __init__(self, **kwargs: Any) -> None:
        self.params = kwargs  # 保存参数，方便子类读取

    @abstractmethod
    def select(self, reading: Reading, breached: List[ThresholdRule]) -> List[ThresholdRule]:
        """
        从越限规则中选出需要上报的规则

        Args:
            reading: 当前评估的监测数据
            breached: 评估器返回的越限规则

        Returns:
            需要生成告警的规则列表
        """
        raise NotImplementedError


class ReportAllPolicy(BreachPolicy):
    """全部上报：每个被越过的分级都生成一条告警"""

    name = "all"

    def select(self, reading: Reading, breached: List[ThresholdRule]) -> List[ThresholdRule]:
        return list(breached)


class MostSevereOnlyPolicy(BreachPolicy):
    """仅上报最严重分级；同为最高严重程度的多条规则全部保留"""

    name = "most_severe"

    def select(self, reading: Reading, breached: List[ThresholdRule]) -> List[ThresholdRule]:
        if len(breached) <= 1:
            return list(breached)
        top = max(rule.severity.rank for rule in breached)
        return [rule for rule in breached if rule.severity.rank == top]


POLICIES: Dict[str, Type[BreachPolicy]] = {
    ReportAllPolicy.name: ReportAllPolicy,
    MostSevereOnlyPolicy.name: MostSevereOnlyPolicy,
}


def get_policy(name: str) -> BreachPolicy:
    """
    按名称创建告警策略

    Raises:
        ValueError: 未登记的策略名称
    """
    key = (name or "").strip().lower()
    try:
        policy_cls = POLICIES[key]
    except KeyError:
        raise ValueError(f"未知的告警策略: {name}，可选值: {', '.join(POLICIES)}") from None
    log.debug("使用告警策略: %s", key)
    return policy_cls()
