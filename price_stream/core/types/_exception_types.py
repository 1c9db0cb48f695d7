from __future__ import annotations

from enum import Enum
from typing import TypeAlias


class ErrorDomain(str, Enum):
    """에러 도메인 분류"""

    CONNECTION = "connection"
    PROTOCOL = "protocol"
    PAYLOAD = "payload"
    HANDLER = "handler"
    SUBSCRIPTION = "subscription"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """에러 코드 분류"""

    CONNECT_FAILED = "connect_failed"
    CONNECTION_CLOSED = "connection_closed"
    RETRY_EXHAUSTED = "retry_exhausted"
    NOT_CONNECTED = "not_connected"
    ACK_TIMEOUT = "ack_timeout"
    DESERIALIZATION_ERROR = "deserialization_error"
    DECODE_ERROR = "decode_error"
    HANDLER_ERROR = "handler_error"
    UNKNOWN_ERROR = "unknown_error"


# 타입 별칭
ErrorCategory: TypeAlias = tuple[ErrorDomain, ErrorCode, bool]
ExceptionGroup: TypeAlias = type[BaseException] | tuple[type[BaseException], ...]
RuleKind: TypeAlias = tuple[str, ...]
