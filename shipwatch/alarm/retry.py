"""告警写入重试（指数退避 + 抖动）"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from sqlalchemy.exc import DBAPIError, OperationalError

from ..exceptions import AlarmPersistenceError
from ..schemas import AlarmDraft

log = logging.getLogger(__name__)

MAX_DELAY_SECONDS = 5.0


def is_transient(exc: Exception) -> bool:
    """连接中断、锁等待、死锁等可重试的存储错误"""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def write_with_retry(
    write: Callable[[AlarmDraft], None],
    draft: AlarmDraft,
    max_attempts: int = 3,
    base_delay: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    写入一条告警，瞬时错误按指数退避重试

    max_attempts 为总尝试次数（含首次写入），小于1时按1处理。

    Raises:
        AlarmPersistenceError: 非瞬时错误，或尝试次数用尽
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            write(draft)
            return
        except Exception as e:
            if not is_transient(e):
                raise AlarmPersistenceError(f"告警写入失败: {draft.id}: {e}") from e
            if attempt >= attempts:
                raise AlarmPersistenceError(f"告警写入尝试{attempts}次后仍失败: {draft.id}: {e}") from e
            delay = min(base_delay * (2 ** (attempt - 1)), MAX_DELAY_SECONDS)
            delay += random.uniform(0, delay * 0.1)
            log.warning(
                "告警写入瞬时错误（第 %d/%d 次），%.2fs 后重试: 告警=%s, 错误=%s",
                attempt, attempts, delay, draft.id, e,
            )
            sleep(delay)
