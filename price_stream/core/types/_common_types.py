from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Final, TypeAlias, assert_never

JSONRPC_VERSION: Final[str] = "2.0"

# 구독 대상 리소스(계정) 주소
Address: TypeAlias = str
# accountSubscribe 두 번째 인자 ({encoding, commitment})
SubscribeParams: TypeAlias = dict[str, Any]


class RpcMethod(str, Enum):
    """사용하는 JSON-RPC 메서드"""

    ACCOUNT_SUBSCRIBE = "accountSubscribe"
    ACCOUNT_UNSUBSCRIBE = "accountUnsubscribe"
    ACCOUNT_NOTIFICATION = "accountNotification"


class ConnectionStatus(Enum):
    """연결 상태 Enum."""

    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


def connection_status_format(status: ConnectionStatus) -> str:
    """상태 로깅 포맷터: Enum 분기 완전탐색 보장."""
    match status:
        case ConnectionStatus.CONNECTED:
            return "connected"
        case ConnectionStatus.CONNECTING:
            return "connecting"
        case ConnectionStatus.DISCONNECTED:
            return "disconnected"
        case _:
            assert_never(status)


class FeedType(str, Enum):
    """가격 피드 포맷"""

    PYTH = "pyth"
    STORK = "stork"


# 수신 메시지 핸들러 (동기 호출, 디스패치 순서 보장)
MessageHandler: TypeAlias = Callable[[dict[str, Any]], Any]
# 연결 상태 핸들러: (connected, error_message)
StatusHandler: TypeAlias = Callable[[bool, str | None], Any]
# 핸들러 등록 해제 함수
Remover: TypeAlias = Callable[[], None]
