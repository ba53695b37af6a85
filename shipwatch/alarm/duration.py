"""
持续越限判定

阈值规则的 duration（毫秒）表示"超过阈值并持续该时间后才触发告警"，
用于避免瞬时波动导致误报。单条数据的评估是无状态的，持续时间判定需要
按 (设备, 指标, 监测点, 规则) 记录越限开始时间：

- 越限数据到达时，若该规则没有进行中的越限过程，则以该数据时间戳为开始时间
- 越限持续时间 >= duration 时释放一次告警；同一越限过程内不再重复告警
- 同一组合键下的数据未越过某条规则时，该规则的越限过程结束
- duration 为 0 的规则在第一条越限数据上立即告警

本类不是线程安全的，流式评估中每个并行通道各持有一个实例。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

from ..schemas import Reading, ThresholdRule
from .index import threshold_key

log = logging.getLogger(__name__)


@dataclass
class BreachEpisode:
    """单条规则的一次持续越限过程"""
    started_at: datetime
    last_seen_at: datetime
    released: bool = False

    def sustained_ms(self) -> float:
        return (self.last_seen_at - self.started_at).total_seconds() * 1000.0


class SustainedBreachTracker:
    """按组合键跟踪各规则的越限开始时间"""

    def __init__(self) -> None:
        # 组合键 -> 规则ID -> 越限过程
        self._episodes: Dict[str, Dict[str, BreachEpisode]] = {}

    def observe(self, reading: Reading, breached: List[ThresholdRule]) -> List[ThresholdRule]:
        """
        记录一条已评估的数据，返回本次达到持续时间、需要生成告警的规则

        Args:
            reading: 监测数据（同一组合键的数据应按时间顺序送入）
            breached: 该数据越过的全部规则（告警策略在释放之后应用）

        Returns:
            本次释放告警的规则列表
        """
        key = threshold_key(reading.equipment_id, reading.metric_type, reading.monitoring_point)
        episodes = self._episodes.setdefault(key, {})
        breached_ids = {rule.id for rule in breached}

        # 未越限的规则结束越限过程
        for rule_id in [rid for rid in episodes if rid not in breached_ids]:
            del episodes[rule_id]

        released: List[ThresholdRule] = []
        ts = reading.timestamp
        for rule in breached:
            episode = episodes.get(rule.id)
            if episode is None:
                episode = episodes[rule.id] = BreachEpisode(started_at=ts, last_seen_at=ts)
            elif ts < episode.started_at:
                episode.started_at = ts
            else:
                episode.last_seen_at = max(episode.last_seen_at, ts)

            if episode.released:
                continue
            if episode.sustained_ms() >= (rule.duration or 0):
                episode.released = True
                released.append(rule)
            else:
                log.debug(
                    "越限未达到持续时间: 规则=%s, 已持续=%.0fms, 要求=%dms",
                    rule.id, episode.sustained_ms(), rule.duration,
                )

        if not episodes:
            del self._episodes[key]
        return released

    def open_episodes(self) -> int:
        """当前进行中的越限过程数量"""
        return sum(len(v) for v in self._episodes.values())

    def reset(self) -> None:
        """清空所有状态"""
        self._episodes.clear()
