"""
流式告警评估

监测数据上报后逐条评估，而不是全量重算：

- RuleIndexCache: 内存中的阈值索引，超过刷新间隔或阈值配置变更（invalidate）后重建
- StreamEvaluator: 多个单线程评估通道，数据按设备ID分配到固定通道，
  保证同一设备的告警按到达顺序生成，不同设备之间并行评估

告警只追加写入，不做读-改-写；评估单条数据出错时记录日志，不影响通道继续工作。

Author: ShipWatch Team
License: MIT
"""
from __future__ import annotations

import logging
import threading
import time
import zlib
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Set

from ..config import settings
from ..exceptions import AlarmPersistenceError
from ..schemas import AlarmDraft, Reading, ThresholdRule
from .base import BreachPolicy, get_policy
from .batch import AlarmSink
from .duration import SustainedBreachTracker
from .evaluator import evaluate
from .index import ThresholdIndex, build_threshold_index
from .materializer import materialize
from .retry import write_with_retry

log = logging.getLogger(__name__)


class RuleIndexCache:
    """
    阈值索引缓存

    Args:
        loader: 加载启用规则的函数（通常读取数据库）
        ttl_seconds: 刷新间隔（秒）
    """

    def __init__(
        self,
        loader: Callable[[], List[ThresholdRule]],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = settings.RULE_REFRESH_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._index: Optional[ThresholdIndex] = None
        self._loaded_at = 0.0

    def get(self) -> ThresholdIndex:
        """
        获取当前索引，必要时重建

        重建失败且已有旧索引时继续使用旧索引；从未加载成功时向上抛出异常。
        """
        with self._lock:
            if self._index is None or self._clock() - self._loaded_at >= self._ttl:
                try:
                    rules = self._loader()
                except Exception:
                    if self._index is None:
                        raise
                    log.exception("阈值规则刷新失败，继续使用上一次加载的索引")
                    self._loaded_at = self._clock()
                    return self._index
                self._index = build_threshold_index(rules)
                self._loaded_at = self._clock()
                log.info("阈值索引已刷新: 规则数=%d, 组合键数=%d", len(rules), len(self._index))
            return self._index

    def invalidate(self) -> None:
        """阈值配置变更后调用，下一次 get 时重建索引"""
        with self._lock:
            self._index = None


class StreamEvaluator:
    """
    按设备分片的流式告警评估器

    Args:
        rule_cache: 阈值索引缓存
        sink: 告警存储（只使用 write）
        lanes: 并行通道数，默认按 STREAM_LANES 配置
        policy: 告警策略，默认按 ALARM_BREACH_POLICY 配置
        enforce_duration: 是否启用持续时间判定，默认按 ALARM_ENFORCE_DURATION 配置
    """

    def __init__(
        self,
        rule_cache: RuleIndexCache,
        sink: AlarmSink,
        lanes: Optional[int] = None,
        policy: Optional[BreachPolicy] = None,
        enforce_duration: Optional[bool] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> None:
        self.rule_cache = rule_cache
        self.sink = sink
        self.policy = policy or get_policy(settings.ALARM_BREACH_POLICY)
        self.enforce_duration = settings.ALARM_ENFORCE_DURATION if enforce_duration is None else enforce_duration
        self.max_attempts = settings.ALARM_WRITE_ATTEMPTS if max_attempts is None else max_attempts
        self.base_delay = settings.ALARM_RETRY_BASE_DELAY if base_delay is None else base_delay

        count = max(1, settings.STREAM_LANES if lanes is None else lanes)
        self._lanes = [
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"alarm-lane-{i}") for i in range(count)
        ]
        self._trackers = [SustainedBreachTracker() for _ in range(count)]
        self._inflight: Set[Future] = set()
        self._inflight_lock = threading.Lock()

    @property
    def lane_count(self) -> int:
        return len(self._lanes)

    def lane_for(self, equipment_id: str) -> int:
        """设备ID到通道的固定映射（crc32，跨进程稳定）"""
        return zlib.crc32(equipment_id.encode("utf-8")) % len(self._lanes)

    def submit(self, reading: Reading) -> "Future[List[AlarmDraft]]":
        """提交一条监测数据，返回本条数据生成的告警（Future）"""
        lane = self.lane_for(reading.equipment_id)
        future = self._lanes[lane].submit(self._process, lane, reading)
        with self._inflight_lock:
            self._inflight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._inflight_lock:
            self._inflight.discard(future)

    def _process(self, lane: int, reading: Reading) -> List[AlarmDraft]:
        try:
            index = self.rule_cache.get()
            breached = evaluate(reading, index)
            if self.enforce_duration:
                breached = self._trackers[lane].observe(reading, breached)
            selected = self.policy.select(reading, breached)
            drafts = [materialize(reading, rule) for rule in selected]
        except Exception:
            log.exception("告警评估失败: %s, 时间=%s", reading.full_identifier(), reading.timestamp.isoformat())
            return []

        written: List[AlarmDraft] = []
        for draft in drafts:
            try:
                write_with_retry(self.sink.write, draft, self.max_attempts, self.base_delay)
            except AlarmPersistenceError as e:
                log.error("告警写入失败: 设备=%s, 规则=%s, 错误=%s", draft.equipment_id, draft.threshold_id, e)
                continue
            written.append(draft)
            log.warning(
                "创建告警记录: 设备=%s, 监测点=%s, 严重程度=%s, 异常值=%s",
                draft.equipment_id, draft.monitoring_point, draft.severity.value, draft.abnormal_value,
            )
        return written

    def drain(self, timeout: Optional[float] = None) -> None:
        """等待已提交的数据评估完成"""
        with self._inflight_lock:
            pending = list(self._inflight)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        """停止所有通道"""
        for executor in self._lanes:
            executor.shutdown(wait=wait_for_pending)
        log.info("流式告警评估已停止")
