"""
批量告警生成

对一批监测数据快照和阈值规则快照做一次全量重算：
构建索引 -> 逐条评估 -> 持续时间判定 -> 告警策略 -> 生成告警 -> 全量替换告警存储。

失败处理：
- 单条数据数值无法解析时跳过该条并记录日志，其余数据继续评估
- 单条告警写入失败（重试用尽）时记录日志并计数，其余告警继续写入

对同一份快照重复运行得到相同的告警集合（相同数量、规则ID、异常值、触发时间）。
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from ..config import settings
from ..exceptions import AlarmPersistenceError
from ..schemas import AlarmDraft, Reading, ThresholdRule
from .base import BreachPolicy, get_policy
from .duration import SustainedBreachTracker
from .evaluator import evaluate
from .index import build_threshold_index
from .materializer import materialize
from .retry import write_with_retry

log = logging.getLogger(__name__)


class AlarmSink(Protocol):
    """告警存储：批量模式下先清空再逐条写入，流式模式下只追加"""

    def clear(self) -> int:
        ...

    def write(self, draft: AlarmDraft) -> None:
        ...


@dataclass
class BatchResult:
    """批量评估统计"""
    evaluated: int = 0
    skipped: int = 0
    triggered: int = 0
    written: int = 0
    failed: int = 0
    cleared: int = 0
    alarms: List[AlarmDraft] = field(default_factory=list)

    @property
    def trigger_rate(self) -> float:
        return self.triggered / self.evaluated if self.evaluated else 0.0


def parse_readings(raw_readings: Iterable[Any]) -> Tuple[List[Reading], int]:
    """
    把原始数据（字典、ORM对象或 Reading）解析为 Reading

    Returns:
        (解析成功的数据, 跳过的条数)
    """
    readings: List[Reading] = []
    skipped = 0
    for position, item in enumerate(raw_readings, start=1):
        if isinstance(item, Reading):
            readings.append(item)
            continue
        try:
            readings.append(Reading.model_validate(item))
        except ValidationError as e:
            skipped += 1
            log.warning("监测数据解析失败，已跳过: 第 %d 条, 错误=%s", position, e.errors(include_url=False))
    return readings, skipped


class AlarmBatchDriver:
    """
    批量告警生成驱动

    Args:
        policy: 告警策略，默认按 ALARM_BREACH_POLICY 配置
        enforce_duration: 是否启用持续时间判定，默认按 ALARM_ENFORCE_DURATION 配置；
            关闭时每条越限数据对每条越限规则都生成一条告警
        decorate: 告警写入前的附加处理（示例数据生成用它模拟处理状态，生产流程不使用）
    """

    def __init__(
        self,
        policy: Optional[BreachPolicy] = None,
        enforce_duration: Optional[bool] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        decorate: Optional[Callable[[AlarmDraft], AlarmDraft]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy or get_policy(settings.ALARM_BREACH_POLICY)
        self.enforce_duration = settings.ALARM_ENFORCE_DURATION if enforce_duration is None else enforce_duration
        self.max_attempts = settings.ALARM_WRITE_ATTEMPTS if max_attempts is None else max_attempts
        self.base_delay = settings.ALARM_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.decorate = decorate
        self._sleep = sleep

    def generate(self, raw_readings: Iterable[Any], rules: Iterable[ThresholdRule]) -> BatchResult:
        """只评估并生成告警，不写入存储"""
        result = BatchResult()
        index = build_threshold_index(rules)
        readings, result.skipped = parse_readings(raw_readings)

        tracker: Optional[SustainedBreachTracker] = None
        if self.enforce_duration:
            # 持续时间判定要求同一组合键的数据按时间先后送入
            readings = sorted(readings, key=lambda r: r.timestamp)
            tracker = SustainedBreachTracker()

        for reading in readings:
            result.evaluated += 1
            breached = evaluate(reading, index)
            if tracker is not None:
                # 持续时间按全部越限规则跟踪，策略只筛选本次释放的告警
                breached = tracker.observe(reading, breached)
            selected = self.policy.select(reading, breached)
            for rule in selected:
                draft = materialize(reading, rule)
                if self.decorate is not None:
                    draft = self.decorate(draft)
                result.alarms.append(draft)

        result.triggered = len(result.alarms)
        return result

    def run(self, raw_readings: Iterable[Any], rules: Iterable[ThresholdRule], sink: AlarmSink) -> BatchResult:
        """
        全量重算并替换告警存储

        Args:
            raw_readings: 监测数据快照
            rules: 启用的阈值规则快照
            sink: 告警存储

        Returns:
            BatchResult: 评估与写入统计
        """
        result = self.generate(raw_readings, rules)

        result.cleared = sink.clear()
        if result.cleared:
            log.info("已清空现有告警记录 %d 条", result.cleared)

        for draft in result.alarms:
            try:
                write_with_retry(sink.write, draft, self.max_attempts, self.base_delay, sleep=self._sleep)
                result.written += 1
            except AlarmPersistenceError as e:
                result.failed += 1
                log.error(
                    "告警写入失败: 设备=%s, 监测点=%s, 规则=%s, 错误=%s",
                    draft.equipment_id, draft.monitoring_point, draft.threshold_id, e,
                )

        log.info(
            "批量告警评估完成: 已评估=%d, 跳过=%d, 触发告警=%d, 写入=%d, 写入失败=%d, 触发率=%.2f%%",
            result.evaluated, result.skipped, result.triggered, result.written, result.failed,
            result.trigger_rate * 100,
        )
        return result
