from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from price_stream.core.types import ErrorCode, ErrorDomain


@dataclass(slots=True, eq=False)
class PriceStreamException(Exception):
    """가격 스트림 기본 예외 클래스

    `to_dict()`는 로그 extra 직렬화 시 일관된 스키마를 제공합니다.
    """

    message: str
    original_exception: BaseException | None = None

    error_domain: ErrorDomain = ErrorDomain.UNKNOWN
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    retryable: bool = False

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.message,
            "error_type": self.__class__.__name__,
            "error_domain": self.error_domain.value,
            "error_code": self.error_code.value,
            "retryable": self.retryable,
        }

        if self.original_exception:
            result["original_error"] = str(self.original_exception)
            result["original_error_type"] = self.original_exception.__class__.__name__

        return result


@dataclass(slots=True, eq=False)
class ConnectFailedError(PriceStreamException):
    """호출자가 요청한 connect()가 소켓을 열지 못함"""

    error_domain: ErrorDomain = ErrorDomain.CONNECTION
    error_code: ErrorCode = ErrorCode.CONNECT_FAILED
    retryable: bool = True


@dataclass(slots=True, eq=False)
class ReconnectExhaustedError(PriceStreamException):
    """자동 재연결 시도 한도 초과"""

    error_domain: ErrorDomain = ErrorDomain.CONNECTION
    error_code: ErrorCode = ErrorCode.RETRY_EXHAUSTED


@dataclass(slots=True, eq=False)
class NotConnectedError(PriceStreamException):
    """연결이 없거나 disconnect()로 작업이 무효화됨"""

    error_domain: ErrorDomain = ErrorDomain.CONNECTION
    error_code: ErrorCode = ErrorCode.NOT_CONNECTED


@dataclass(slots=True, eq=False)
class SubscriptionTimeoutError(PriceStreamException):
    """구독 ACK가 제한 시간 안에 도착하지 않음"""

    error_domain: ErrorDomain = ErrorDomain.SUBSCRIPTION
    error_code: ErrorCode = ErrorCode.ACK_TIMEOUT
    retryable: bool = True
