from __future__ import annotations

import asyncio
import time
from functools import partial
from typing import Any, Callable, Generic, Protocol, TypeVar

from price_stream.common.logger import PipelineLogger

logger = PipelineLogger.get_logger("update_throttle", "stream")

T = TypeVar("T")


class _Cancellable(Protocol):
    def cancel(self) -> Any: ...


# (지연 초, 콜백) → 취소 가능한 핸들 (asyncio loop.call_later 시그니처)
CallLater = Callable[[float, Callable[[], None]], _Cancellable]


class UpdateThrottle(Generic[T]):
    """소비자 통지 레이트 리미터 (버스트는 최신값만 남김)

    - 마지막 즉시 전달 이후 interval이 지났으면 즉시 전달하고 그 시각을 기록
    - 아니면 예약된 지연 전달을 취소하고 최신값을 남은 시간 뒤로 예약
    - 윈도우 기준점은 생성 시각에서 시작하며 지연 전달은 기준점을 옮기지 않음

    트레이드오프: 지연 전달 직후 도착한 값은 기준점 기준으로 interval이 지났으면
    즉시 전달됩니다. 예) interval 50ms, 0/10/20/60ms 입력 → 50ms(20ms 값), 60ms 두 번
    전달되어 두 전달 간격이 interval보다 짧을 수 있습니다. "최신값은 늦어도
    interval 안에 전달" 쪽을 우선한 결과입니다.

    clock/call_later는 결정적 테스트를 위해 주입할 수 있습니다.
    """

    def __init__(
        self,
        deliver: Callable[[T], Any],
        interval_ms: int = 50,
        *,
        clock: Callable[[], float] | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        """
        Args:
            deliver: 실제 전달 함수
            interval_ms: 최소 전달 간격 (밀리초)
            clock: 초 단위 단조 시계 (기본 time.monotonic)
            call_later: 지연 실행 스케줄러 (기본 실행 중인 이벤트 루프)
        """
        self._deliver = deliver
        self.interval = interval_ms / 1000.0
        self._clock = clock or time.monotonic
        self._call_later = call_later
        self._last_delivered = self._clock()
        self._pending: _Cancellable | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def _schedule(self, delay: float, callback: Callable[[], None]) -> _Cancellable:
        if self._call_later is not None:
            return self._call_later(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def push(self, item: T) -> None:
        now = self._clock()
        elapsed = now - self._last_delivered

        self.cancel()

        if elapsed >= self.interval:
            self._last_delivered = now
            self._deliver(item)
            return

        self._pending = self._schedule(self.interval - elapsed, partial(self._flush, item))

    def _flush(self, item: T) -> None:
        self._pending = None
        self._deliver(item)

    def cancel(self) -> None:
        """예약된 지연 전달 폐기"""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
            logger.debug("pending delivery dropped")
