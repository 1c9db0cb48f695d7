"""핸들러 레지스트리 (옵저버 컬렉션)

연결 매니저/스트림이 인스턴스마다 소유하는 동기 핸들러 집합입니다.
전역 상태는 두지 않습니다.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, Generic, TypeVar

from price_stream.common.exceptions.exception_rule import classify_exception
from price_stream.common.logger import PipelineLogger

logger = PipelineLogger.get_logger("handler_registry", "common")

H = TypeVar("H", bound=Callable[..., Any])


class HandlerRegistry(Generic[H]):
    """토큰 키 기반 핸들러 레지스트리

    특징:
    - 등록 순서대로 호출 (dict 삽입 순서)
    - 해제는 토큰 삭제라서 같은 턴에 여러 해제가 일어나도 인덱스가 밀리지 않음
    - 해제 함수는 멱등 (두 번 호출, 레지스트리 clear 이후 호출 모두 안전)
    - emit은 스냅샷을 순회하므로 진행 중인 디스패치에는 해제가 반영되지 않음
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: dict[int, H] = {}
        self._tokens = itertools.count(1)

    def add(self, handler: H) -> Callable[[], None]:
        """핸들러 등록 후 해제 함수 반환"""
        token = next(self._tokens)
        self._handlers[token] = handler

        def remove() -> None:
            self._handlers.pop(token, None)

        return remove

    def emit(self, *args: Any) -> None:
        """모든 핸들러를 등록 순서대로 호출. 핸들러 예외는 개별적으로 격리/로깅."""
        for token, handler in list(self._handlers.items()):
            try:
                handler(*args)
            except Exception as e:
                domain, code, _ = classify_exception(e, "handler")
                logger.error(
                    f"{self.name}: handler failed - {e}",
                    exc_info=True,
                    extra={
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "handler_token": token,
                        "error_domain": domain.value,
                        "error_code": code.value,
                    },
                )

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)


__all__ = ["HandlerRegistry"]
