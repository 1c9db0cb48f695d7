from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Callable

from price_stream.common.logger import PipelineLogger
from price_stream.common.serde import to_frame
from price_stream.core.dto.internal.subscription import SubscriptionEntryDomain
from price_stream.core.dto.io.rpc import (
    RpcRequestDTO,
    account_subscribe_request,
    account_unsubscribe_request,
)
from price_stream.core.types import Address, SubscribeParams

logger = PipelineLogger.get_logger("subscription_manager", "connection")


def _consume_exception(fut: asyncio.Future[Any]) -> None:
    # 대기자가 이미 떠난 future의 예외도 회수된 것으로 표시
    if not fut.cancelled():
        fut.exception()


def _propagate(target: asyncio.Future[Any], source: asyncio.Future[Any]) -> None:
    if target.done():
        return
    if source.cancelled():
        target.cancel()
    elif (exc := source.exception()) is not None:
        target.set_exception(exc)
    else:
        target.set_result(source.result())


class SubscriptionManager:
    """구독 상태 관리 전담 클래스

    책임:
    - 주소별 구독 엔트리 추적 (주소당 최대 1개)
    - 요청 id ↔ ACK 대기 future 매핑 (폴링 없이 디스패치 턴 안에서 해소)
    - 재연결 시 등록된 전체 주소 재발행
    - 요청 프레임 생성 (JSON-RPC, orjson)

    소켓 전송은 연결 매니저가 담당합니다.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._entries: dict[Address, SubscriptionEntryDomain] = {}
        self._waiters: dict[int, asyncio.Future[Any]] = {}

    def prepare_subscription_message(self, request: RpcRequestDTO) -> str:
        """요청 DTO → 텍스트 프레임"""
        return to_frame(request.model_dump(mode="json"))

    def get(self, address: Address) -> SubscriptionEntryDomain | None:
        return self._entries.get(address)

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _new_waiter(self, request_id: int) -> asyncio.Future[Any]:
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        fut.add_done_callback(_consume_exception)
        self._waiters[request_id] = fut
        return fut

    def register(
        self, address: Address, params: SubscribeParams, request_id: int
    ) -> tuple[RpcRequestDTO, asyncio.Future[Any]]:
        """구독 엔트리 기록 (기존 엔트리는 파라미터/대기 id 교체)

        이전 요청의 대기자는 새 요청의 결과를 그대로 받습니다.

        Returns:
            (accountSubscribe 요청, 확정 구독 id로 해소되는 future)
        """
        previous = self._entries.get(address)
        if previous is not None:
            entry = previous.reissued(request_id, dict(params))
        else:
            entry = SubscriptionEntryDomain(
                address=address, params=dict(params), pending_id=request_id
            )
        self._entries[address] = entry

        fut = self._new_waiter(request_id)
        if previous is not None and previous.pending_id is not None:
            stale = self._waiters.pop(previous.pending_id, None)
            if stale is not None and not stale.done():
                fut.add_done_callback(partial(_propagate, stale))
            logger.debug(
                f"{address}: 대기 중 구독 교체 (id {previous.pending_id} -> {request_id})"
            )

        return account_subscribe_request(request_id, address, entry.params), fut

    def reissue_all(self, next_id: Callable[[], int]) -> list[RpcRequestDTO]:
        """등록된 모든 주소를 새 요청 id로 재발행 (이전 확정 id 폐기)

        Args:
            next_id: 요청 id 발급 함수 (연결 매니저의 단조 증가 카운터)
        """
        requests: list[RpcRequestDTO] = []
        for address, entry in list(self._entries.items()):
            request_id = next_id()
            waiter = (
                self._waiters.pop(entry.pending_id, None)
                if entry.pending_id is not None
                else None
            )
            if waiter is not None and not waiter.done():
                self._waiters[request_id] = waiter

            reissued = entry.reissued(request_id)
            self._entries[address] = reissued
            requests.append(account_subscribe_request(request_id, address, reissued.params))
        return requests

    def resolve_ack(self, request_id: int, result: Any) -> Address | None:
        """ACK 매칭: pending id가 request_id인 단일 엔트리를 확정

        Returns:
            확정된 주소 (매칭 없으면 None)
        """
        for address, entry in self._entries.items():
            if entry.pending_id == request_id:
                self._entries[address] = entry.confirmed(result)
                waiter = self._waiters.pop(request_id, None)
                if waiter is not None and not waiter.done():
                    waiter.set_result(result)
                logger.info(
                    f"{address}: 구독 확정 (request_id={request_id}, subscription={result})"
                )
                return address
        return None

    def unsubscribe_request(
        self, address: Address, next_id: Callable[[], int]
    ) -> RpcRequestDTO | None:
        """확정된 구독이면 엔트리를 제거하고 accountUnsubscribe 요청 반환

        미등록/미확정 주소는 None (요청 id도 소비하지 않음).
        """
        entry = self._entries.get(address)
        if entry is None or entry.confirmed_id is None:
            return None
        del self._entries[address]
        return account_unsubscribe_request(next_id(), entry.confirmed_id)

    def clear(self, exc: BaseException) -> None:
        """모든 엔트리 삭제, 남은 대기자는 exc로 실패 처리"""
        waiters = list(self._waiters.values())
        self._waiters.clear()
        self._entries.clear()
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(exc)
