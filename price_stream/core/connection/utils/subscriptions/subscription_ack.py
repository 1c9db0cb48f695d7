from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from price_stream.core.types import RpcMethod


@dataclass(frozen=True)
class AckDecision:
    is_ack: bool
    is_notification: bool
    request_id: int | None = None
    result: Any = None
    reason: str | None = None


def decide_rpc_message(message: Any) -> AckDecision:
    """수신 JSON-RPC 메시지 분류

    - {"id", "result"} (result가 null이 아님) → 요청 ACK
    - {"method": "accountNotification"} → 계정 알림
    - 그 외 (에러 응답, 알 수 없는 메서드, dict 아님) → 둘 다 아님
    """
    if not isinstance(message, dict):
        return AckDecision(is_ack=False, is_notification=False, reason="non_object")

    match message.get("id"), message.get("result"), message.get("method"):
        case int() as request_id, result, _ if result is not None:
            return AckDecision(
                is_ack=True,
                is_notification=False,
                request_id=request_id,
                result=result,
                reason=f"id={request_id}",
            )
        case _, _, RpcMethod.ACCOUNT_NOTIFICATION:
            return AckDecision(
                is_ack=False,
                is_notification=True,
                reason="accountNotification",
            )
        case _, _, str() as method:
            return AckDecision(is_ack=False, is_notification=False, reason=f"method={method}")
        case _:
            return AckDecision(is_ack=False, is_notification=False)
