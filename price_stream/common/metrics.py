"""가격 업데이트 처리량 메트릭."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable


class UpdateRateCounter:
    """슬라이딩 윈도우 기반 초당 업데이트 수 + 누적 카운트.

    - record(): 전달 1건 기록
    - per_second: 최근 window 초 안의 전달 수 (window 기본 1초)
    - total: 누적 전달 수
    """

    def __init__(self, window: float = 1.0, clock: Callable[[], float] | None = None) -> None:
        self.window = window
        self._clock = clock or time.monotonic
        self._stamps: deque[float] = deque()
        self._total: int = 0

    def record(self, n: int = 1) -> None:
        now = self._clock()
        for _ in range(n):
            self._stamps.append(now)
        self._total += n
        self._prune(now)

    def _prune(self, now: float) -> None:
        edge = now - self.window
        while self._stamps and self._stamps[0] <= edge:
            self._stamps.popleft()

    @property
    def per_second(self) -> float:
        self._prune(self._clock())
        return len(self._stamps) / self.window

    @property
    def total(self) -> int:
        return self._total
