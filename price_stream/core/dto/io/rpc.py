"""JSON-RPC 2.0 프레임 DTO

송신:
    {"jsonrpc": "2.0", "id": 1, "method": "accountSubscribe",
     "params": ["<address>", {"encoding": "jsonParsed", "commitment": "confirmed"}]}
    {"jsonrpc": "2.0", "id": 2, "method": "accountUnsubscribe", "params": [777]}

수신:
    {"jsonrpc": "2.0", "id": 1, "result": 777}                          # ACK
    {"jsonrpc": "2.0", "method": "accountNotification",
     "params": {"result": {"value": {"data": ["<base64>", "base64"]}}}}   # 알림
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from price_stream.core.dto.io._base import BaseIOModelDTO, InboundModelDTO
from price_stream.core.types import JSONRPC_VERSION, RpcMethod


class RpcRequestDTO(BaseIOModelDTO):
    """JSON-RPC 요청 프레임"""

    jsonrpc: str = JSONRPC_VERSION
    id: int = Field(..., ge=1, description="요청 id (연결 매니저가 단조 증가로 발급)")
    method: RpcMethod
    params: list[Any]


def account_subscribe_request(
    request_id: int, address: str, params: dict[str, Any]
) -> RpcRequestDTO:
    return RpcRequestDTO(
        id=request_id,
        method=RpcMethod.ACCOUNT_SUBSCRIBE,
        params=[address, params],
    )


def account_unsubscribe_request(request_id: int, subscription_id: int) -> RpcRequestDTO:
    return RpcRequestDTO(
        id=request_id,
        method=RpcMethod.ACCOUNT_UNSUBSCRIBE,
        params=[subscription_id],
    )


class AccountValueDTO(InboundModelDTO):
    data: list[Any] | str | None = None


class AccountResultDTO(InboundModelDTO):
    value: AccountValueDTO


class AccountNotificationParamsDTO(InboundModelDTO):
    result: AccountResultDTO
    subscription: int | None = None


class AccountNotificationDTO(InboundModelDTO):
    """accountNotification 알림 프레임"""

    method: str
    params: AccountNotificationParamsDTO

    @property
    def data(self) -> list[Any] | str | None:
        return self.params.result.value.data
