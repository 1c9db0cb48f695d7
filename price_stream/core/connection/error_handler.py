from __future__ import annotations

from typing import Any

from price_stream.common.exceptions.exception_rule import classify_exception
from price_stream.common.logger import PipelineLogger

logger = PipelineLogger.get_logger("error_handler", "connection")


class ConnectionErrorHandler:
    """연결 에러 처리 전담 클래스

    책임:
    - 웹소켓/프레임/구독 에러를 표준 extra와 함께 로깅
    - 외부에 노출할 마지막 에러 문자열 보관
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._last_error: str | None = None

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def clear(self) -> None:
        self._last_error = None

    def _scope_log_extra(self, phase: str, **extra: Any) -> dict[str, Any]:
        return {"url": self.url, "phase": phase, **extra}

    def _error_extra(self, err: BaseException, kind: str, phase: str, **extra: Any) -> dict[str, Any]:
        domain, code, retryable = classify_exception(err, kind)
        return self._scope_log_extra(
            phase,
            error_type=type(err).__name__,
            error_message=str(err),
            error_domain=domain.value,
            error_code=code.value,
            retryable=retryable,
            **extra,
        )

    def connection_error(
        self,
        err: BaseException,
        attempt: int,
        backoff: float | None = None,
        **additional_context: Any,
    ) -> None:
        """연결 실패/종료 (kind='ws')"""
        self._last_error = f"Connection error: {err}"
        logger.warning(
            f"{self.url}: 연결 에러 - {err}",
            extra=self._error_extra(
                err, "ws", "connection_error", attempt=attempt, backoff=backoff, **additional_context
            ),
        )

    def retry_exhausted(self, err: BaseException, attempt: int) -> None:
        """재연결 한도 초과 (터미널 상태)"""
        self._last_error = str(err)
        logger.error(
            f"{self.url}: 재연결 한도 초과 - {err}",
            extra=self._error_extra(err, "ws", "retry_exhausted", attempt=attempt),
        )

    def frame_error(self, err: BaseException, raw: str | bytes) -> None:
        """프레임 파싱 실패 (해당 프레임만 버림)"""
        preview = raw[:200] if isinstance(raw, (str, bytes)) else repr(raw)[:200]
        logger.warning(
            f"{self.url}: 프레임 파싱 실패 - {err}",
            extra=self._error_extra(err, "ws", "frame_parse", raw_preview=str(preview)),
        )

    def send_error(self, err: BaseException, method: str, **additional_context: Any) -> None:
        """요청 프레임 전송 실패"""
        logger.warning(
            f"{self.url}: {method} 전송 실패 - {err}",
            extra=self._error_extra(err, "ws", "send", method=method, **additional_context),
        )
