from __future__ import annotations

import asyncio
import contextlib
import itertools
from enum import Enum
from typing import Any, Final

import websockets

from price_stream.common.events import HandlerRegistry
from price_stream.common.exceptions.errors import (
    ConnectFailedError,
    NotConnectedError,
    ReconnectExhaustedError,
    SubscriptionTimeoutError,
)
from price_stream.common.exceptions.exception_rule import (
    DESERIALIZATION_ERRORS,
    SOCKET_EXCEPTIONS,
)
from price_stream.common.logger import PipelineLogger
from price_stream.common.serde import from_frame
from price_stream.core.connection.error_handler import ConnectionErrorHandler
from price_stream.core.connection.services.backoff import compute_next_backoff
from price_stream.core.connection.subscription_manager import SubscriptionManager
from price_stream.core.connection.utils.subscriptions.subscription_ack import (
    decide_rpc_message,
)
from price_stream.core.dto.internal.common import ConnectionPolicyDomain
from price_stream.core.dto.io.rpc import RpcRequestDTO
from price_stream.core.types import (
    Address,
    ConnectionStatus,
    MessageHandler,
    Remover,
    RpcMethod,
    StatusHandler,
    SubscribeParams,
    connection_status_format,
)

logger = PipelineLogger.get_logger("websocket_manager", "connection")


DEFAULT_SUBSCRIBE_PARAMS: Final[SubscribeParams] = {
    "encoding": "jsonParsed",
    "commitment": "confirmed",
}

class _Unset(Enum):
    """subscribe(timeout=...) 미지정 표식 (None은 "무제한"으로 사용)"""

    POLICY = "policy"


_POLICY_TIMEOUT: Final = _Unset.POLICY


def _retrieve_attempt_error(task: asyncio.Task[None]) -> None:
    # 아무도 기다리지 않는 연결 시도(disconnect 이후 폐기분)의 예외도 회수
    if not task.cancelled():
        task.exception()


class WebsocketConnectionManager:
    """단일 웹소켓 연결 + accountSubscribe 구독 관리

    - connect(): 멱등. 진행 중 시도가 있으면 같은 시도를 기다림
    - 연결 수립 후 예기치 않은 종료 → 고정 간격 재연결 (최대 횟수 제한)
    - disconnect(): 소켓 종료, 구독 상태 삭제, 예약된 재연결 취소
    - 수신 메시지는 ACK 매칭 후 등록된 핸들러에 도착 순서대로 전달
    """

    def __init__(
        self,
        url: str,
        policy: ConnectionPolicyDomain | None = None,
        default_params: SubscribeParams | None = None,
    ) -> None:
        """
        Args:
            url: 웹소켓 엔드포인트
            policy: 재연결/ACK 정책 (미지정 시 기본값)
            default_params: subscribe() 기본 파라미터
        """
        self.url = url
        self.policy = policy or ConnectionPolicyDomain()
        self.default_params: SubscribeParams = dict(default_params or DEFAULT_SUBSCRIBE_PARAMS)

        # 연결 상태
        self._status = ConnectionStatus.DISCONNECTED
        self._websocket: Any | None = None
        self._reader_task: asyncio.Task[None] | None = None

        # disconnect()마다 증가. 이전 세대의 연결 시도/수신 태스크는 결과를 버림
        self._epoch: int = 0
        self._connect_task: asyncio.Task[None] | None = None
        self._connect_epoch: int = -1

        # 재연결
        self._attempt: int = 0
        self._retry_exhausted: bool = False
        self._reconnect_task: asyncio.Task[None] | None = None

        # 요청 id (재연결에도 초기화하지 않음)
        self._request_ids = itertools.count(1)

        # 컴포넌트
        self._subscription_manager = SubscriptionManager(url)
        self._error_handler = ConnectionErrorHandler(url)
        self._message_handlers: HandlerRegistry[MessageHandler] = HandlerRegistry(
            "message_handlers"
        )
        self._status_handlers: HandlerRegistry[StatusHandler] = HandlerRegistry(
            "status_handlers"
        )

    # ------------------------------------------------------------------
    # 상태 조회
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    def get_status(self) -> bool:
        """연결 여부 (부수 효과 없음)"""
        return self.is_connected

    @property
    def last_error(self) -> str | None:
        return self._error_handler.last_error

    @property
    def retry_exhausted(self) -> bool:
        return self._retry_exhausted

    @property
    def subscriptions(self) -> SubscriptionManager:
        return self._subscription_manager

    def _next_request_id(self) -> int:
        return next(self._request_ids)

    def _set_status(self, status: ConnectionStatus) -> bool:
        if self._status is status:
            return False
        self._status = status
        logger.info(f"{self.url}: {connection_status_format(status)}")
        return True

    def _notify_status(self) -> None:
        self._status_handlers.emit(self.is_connected, self.last_error)

    # ------------------------------------------------------------------
    # 핸들러 등록
    # ------------------------------------------------------------------

    def on_message(self, handler: MessageHandler) -> Remover:
        """수신 메시지 핸들러 등록. 반환된 함수로 해제 (멱등)."""
        return self._message_handlers.add(handler)

    def on_status(self, handler: StatusHandler) -> Remover:
        """연결 상태 변경 핸들러 등록: handler(connected, error_message)"""
        return self._status_handlers.add(handler)

    # ------------------------------------------------------------------
    # 연결 수명주기
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """연결 (멱등)

        Raises:
            ConnectFailedError: 소켓을 열지 못함 (이 실패로는 자동 재시도하지 않음)
            NotConnectedError: 시도 도중 disconnect()가 호출됨
        """
        if self.is_connected:
            return
        await asyncio.shield(self._ensure_attempt())

    def _ensure_attempt(self) -> asyncio.Task[None]:
        """진행 중인 같은 세대의 연결 시도를 공유하거나 새로 시작"""
        task = self._connect_task
        if task is None or task.done() or self._connect_epoch != self._epoch:
            task = asyncio.create_task(self._open(self._epoch))
            task.add_done_callback(_retrieve_attempt_error)
            self._connect_task = task
            self._connect_epoch = self._epoch
        return task

    async def _open(self, epoch: int) -> None:
        self._set_status(ConnectionStatus.CONNECTING)
        logger.info(f"{self.url}: 연결 시도 중...")
        try:
            websocket = await websockets.connect(self.url)
        except SOCKET_EXCEPTIONS as e:
            if epoch != self._epoch:
                raise NotConnectedError("disconnect() called while connecting", e) from e
            self._set_status(ConnectionStatus.DISCONNECTED)
            self._error_handler.connection_error(e, attempt=self._attempt)
            self._notify_status()
            raise ConnectFailedError(f"failed to connect to {self.url}: {e}", e) from e

        if epoch != self._epoch:
            # disconnect() 이후 성립된 연결은 폐기
            with contextlib.suppress(*SOCKET_EXCEPTIONS):
                await websocket.close()
            raise NotConnectedError("disconnect() called while connecting")

        self._websocket = websocket
        self._attempt = 0
        self._retry_exhausted = False
        self._error_handler.clear()
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info(f"{self.url}: 연결 성공")

        self._reader_task = asyncio.create_task(self._read_loop(websocket, epoch))
        self._notify_status()

        # 살아 있는 모든 구독을 저장된 파라미터로 재발행
        for request in self._subscription_manager.reissue_all(self._next_request_id):
            await self._send(websocket, request)

    async def disconnect(self) -> None:
        """연결 종료 + 구독 상태 삭제 + 예약된 재연결 취소

        상태 전환(DISCONNECTED, 구독 삭제, 상태 통지)은 첫 await 이전에 끝납니다.
        소켓 종료 핸드셰이크를 기다리는 동안 호출된 connect()는 새 소켓을 엽니다.
        """
        self._epoch += 1
        logger.info(f"{self.url}: disconnect requested")

        reconnect_task, self._reconnect_task = self._reconnect_task, None
        reader_task, self._reader_task = self._reader_task, None
        websocket, self._websocket = self._websocket, None
        # 진행 중 시도는 epoch 불일치로 스스로 폐기됨
        self._connect_task = None

        self._subscription_manager.clear(NotConnectedError("connection closed by disconnect()"))
        if self._set_status(ConnectionStatus.DISCONNECTED):
            self._notify_status()

        await self._cancel_task(reconnect_task)
        await self._cancel_task(reader_task)

        if websocket is not None:
            try:
                await websocket.close()
            except SOCKET_EXCEPTIONS as close_error:
                logger.warning(f"{self.url}: websocket close failed during disconnect - {close_error}")

    @staticmethod
    async def _cancel_task(task: asyncio.Task[None] | None) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # 수신 / 재연결
    # ------------------------------------------------------------------

    async def _read_loop(self, websocket: Any, epoch: int) -> None:
        error: BaseException | None = None
        try:
            async for raw in websocket:
                self._dispatch(raw)
        except SOCKET_EXCEPTIONS as e:
            error = e

        if epoch != self._epoch or websocket is not self._websocket:
            return
        self._on_connection_lost(error or ConnectionError("connection closed by server"), epoch)

    def _dispatch(self, raw: str | bytes) -> None:
        """프레임 1건 처리: 파싱 → ACK 매칭 → 핸들러 전달 (같은 턴)"""
        try:
            message = from_frame(raw)
        except DESERIALIZATION_ERRORS as e:
            self._error_handler.frame_error(e, raw)
            return

        decision = decide_rpc_message(message)
        if decision.is_ack and decision.request_id is not None:
            self._subscription_manager.resolve_ack(decision.request_id, decision.result)

        self._message_handlers.emit(message)

    def _on_connection_lost(self, err: BaseException, epoch: int) -> None:
        self._websocket = None
        self._reader_task = None
        self._set_status(ConnectionStatus.DISCONNECTED)
        self._error_handler.connection_error(err, attempt=self._attempt)
        self._notify_status()
        self._reconnect_task = asyncio.create_task(self._reconnect_loop(epoch))

    async def _reconnect_loop(self, epoch: int) -> None:
        """고정 간격 재연결. 실패한 재시도도 종료 1회로 계산."""
        while epoch == self._epoch:
            if self._attempt >= self.policy.max_reconnect_attempts:
                self._exhaust()
                return

            self._attempt += 1
            delay = compute_next_backoff(self.policy, self._attempt - 1)
            logger.info(f"{self.url}: {delay:.2f}s 후 재접속 (attempt={self._attempt})")
            await asyncio.sleep(delay)

            if epoch != self._epoch or self.is_connected:
                return
            try:
                await asyncio.shield(self._ensure_attempt())
                return
            except ConnectFailedError:
                continue
            except NotConnectedError:
                return

    def _exhaust(self) -> None:
        err = ReconnectExhaustedError(
            f"Max reconnection attempts reached ({self.policy.max_reconnect_attempts})"
        )
        self._retry_exhausted = True
        self._reconnect_task = None
        self._error_handler.retry_exhausted(err, attempt=self._attempt)
        self._notify_status()

    # ------------------------------------------------------------------
    # 구독
    # ------------------------------------------------------------------

    async def _send(self, websocket: Any, request: RpcRequestDTO) -> bool:
        frame = self._subscription_manager.prepare_subscription_message(request)
        method = RpcMethod(request.method).value
        try:
            await websocket.send(frame)
        except SOCKET_EXCEPTIONS as e:
            # 종료 감지/재연결은 수신 루프가 담당
            self._error_handler.send_error(e, method, request_id=request.id)
            return False
        logger.debug(f"{self.url}: {method} 전송 (id={request.id})")
        return True

    async def subscribe(
        self,
        address: Address,
        params: SubscribeParams | None = None,
        timeout: float | None | _Unset = _POLICY_TIMEOUT,
    ) -> Any:
        """accountSubscribe 후 확정 구독 id 반환

        Args:
            address: 구독할 계정 주소
            params: {encoding, commitment} (미지정 시 기본값)
            timeout: ACK 대기 한도(초). 미지정 시 정책값, None/0이면 무제한

        Raises:
            SubscriptionTimeoutError: 한도 내 ACK 미도착 (엔트리는 유지)
            NotConnectedError: 대기 중 disconnect()
        """
        await self.connect()
        websocket = self._websocket
        if websocket is None:
            raise NotConnectedError(f"{self.url}: not connected")

        request, waiter = self._subscription_manager.register(
            address, params or self.default_params, self._next_request_id()
        )
        await self._send(websocket, request)

        limit = self.policy.ack_timeout if isinstance(timeout, _Unset) else timeout
        if not limit:
            return await asyncio.shield(waiter)
        try:
            return await asyncio.wait_for(asyncio.shield(waiter), limit)
        except asyncio.TimeoutError as e:
            raise SubscriptionTimeoutError(
                f"{address}: subscription ack not received within {limit:.1f}s", e
            ) from e

    async def unsubscribe(self, address: Address) -> None:
        """확정된 구독만 해제. 미연결/미등록/미확정이면 아무 것도 하지 않음."""
        websocket = self._websocket
        if not self.is_connected or websocket is None:
            return
        request = self._subscription_manager.unsubscribe_request(address, self._next_request_id)
        if request is None:
            return
        await self._send(websocket, request)
