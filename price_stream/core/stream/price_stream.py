"""가격 피드 스트림

연결 매니저 1개 + 업데이트 스로틀 + 최근 N개 히스토리 + 처리량 메트릭을 묶어
선택된 피드 1개의 가격을 소비자에게 전달합니다.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable

from pydantic import ValidationError

from price_stream.common.events import HandlerRegistry
from price_stream.common.exceptions.errors import PriceStreamException
from price_stream.common.logger import PipelineLogger
from price_stream.common.metrics import UpdateRateCounter
from price_stream.config.settings import FeedCatalogEntry, FeedSettings, feed_settings
from price_stream.core.connection.utils.subscriptions.subscription_ack import (
    decide_rpc_message,
)
from price_stream.core.connection.websocket_manager import WebsocketConnectionManager
from price_stream.core.dto.internal.common import build_connection_policy
from price_stream.core.dto.internal.price import PriceReadingDomain
from price_stream.core.dto.io.rpc import AccountNotificationDTO
from price_stream.core.parsers.price_parser import parse_price_data
from price_stream.core.stream.throttle import CallLater, UpdateThrottle
from price_stream.core.types import Address, Remover

logger = PipelineLogger.get_logger("price_stream", "stream")

ReadingHandler = Callable[[PriceReadingDomain], Any]


class PriceFeedStream:
    """선택된 가격 피드 구독 + 스로틀링된 전달

    소비자 노출 상태:
    - latest / history: 최신 가격, 최근 history_size개 (오래된 것부터 버림)
    - connected / error_message: 연결 여부, 사람이 읽는 에러 문자열
    - update_count / updates_per_second: 누적 전달 수, 최근 1초 전달 수
    """

    def __init__(
        self,
        settings: FeedSettings | None = None,
        manager: WebsocketConnectionManager | None = None,
        throttle_interval_ms: int | None = None,
        *,
        clock: Callable[[], float] | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        self.settings = settings or feed_settings
        self.manager = manager or WebsocketConnectionManager(
            self.settings.url,
            build_connection_policy(self.settings),
            self.settings.default_subscribe_params(),
        )

        interval = (
            self.settings.throttle_interval_ms
            if throttle_interval_ms is None
            else throttle_interval_ms
        )
        self._throttle: UpdateThrottle[PriceReadingDomain] = UpdateThrottle(
            self._apply, interval, clock=clock, call_later=call_later
        )
        self._rate = UpdateRateCounter(clock=clock)

        self.history: deque[PriceReadingDomain] = deque(maxlen=self.settings.history_size)
        self.latest: PriceReadingDomain | None = None
        self.error_message: str = ""
        self.connected: bool = False
        self.selected_address: Address | None = None

        self._remove_message_handler: Remover | None = None
        self._reading_handlers: HandlerRegistry[ReadingHandler] = HandlerRegistry(
            "reading_handlers"
        )
        self._remove_status_handler = self.manager.on_status(self._on_status)

    @property
    def selected_feed(self) -> FeedCatalogEntry | None:
        if self.selected_address is None:
            return None
        return self.settings.find_feed(self.selected_address)

    @property
    def update_count(self) -> int:
        return self._rate.total

    @property
    def updates_per_second(self) -> float:
        return self._rate.per_second

    def on_reading(self, handler: ReadingHandler) -> Remover:
        """스로틀을 통과한 가격 1건마다 호출될 핸들러 등록"""
        return self._reading_handlers.add(handler)

    def _on_status(self, connected: bool, error: str | None) -> None:
        self.connected = connected
        if not connected and self.manager.retry_exhausted and error:
            self.error_message = error

    def _reset_feed_state(self) -> None:
        self._throttle.cancel()
        self.history.clear()
        self.latest = None
        self.error_message = ""

    async def select_feed(self, address: Address) -> Any | None:
        """피드 전환: 다른 카탈로그 피드 해제 → 선택 피드 구독

        연결/구독 실패는 error_message에 기록하고 예외를 던지지 않습니다.

        Returns:
            확정 구독 id (실패 시 None)
        """
        self._reset_feed_state()
        self.selected_address = address

        if self._remove_message_handler is not None:
            self._remove_message_handler()
        self._remove_message_handler = self.manager.on_message(self._handle_message)

        feed = self.settings.find_feed(address)
        logger.info(f"피드 선택: {feed.name if feed else 'unknown'} ({address})")

        try:
            await self.manager.connect()
            self.connected = True

            for other in self.settings.feeds:
                if other.address != address:
                    await self.manager.unsubscribe(other.address)

            return await self.manager.subscribe(address)
        except PriceStreamException as e:
            self.error_message = f"Connection error: {e}"
            self.connected = self.manager.is_connected
            logger.warning(f"피드 구독 실패 - {e}", extra=e.to_dict())
            return None

    async def disconnect(self) -> None:
        """예약된 지연 전달을 버린 뒤 연결 종료 (핸들러는 유지)"""
        self._throttle.cancel()
        await self.manager.disconnect()
        self.connected = False

    async def reconnect(self, delay: float = 0.5) -> Any | None:
        """수동 재연결: 끊고 잠시 뒤 다시 연결해 현재 피드 재구독"""
        await self.disconnect()
        await asyncio.sleep(delay)
        try:
            await self.manager.connect()
            self.connected = True
            self.error_message = ""
            if self.selected_address is None:
                return None
            return await self.manager.subscribe(self.selected_address)
        except PriceStreamException as e:
            self.error_message = f"Reconnection failed: {e}"
            self.connected = self.manager.is_connected
            logger.warning(f"수동 재연결 실패 - {e}", extra=e.to_dict())
            return None

    def _handle_message(self, message: Any) -> None:
        if not decide_rpc_message(message).is_notification:
            return
        try:
            notification = AccountNotificationDTO.model_validate(message)
        except ValidationError as e:
            logger.warning(f"accountNotification 형식 오류 - {e.error_count()} errors")
            return

        if not self._is_selected_subscription(notification.params.subscription):
            return

        reading = parse_price_data(notification.data)
        if reading is not None:
            self._throttle.push(reading)

    def _is_selected_subscription(self, subscription: int | None) -> bool:
        # 알림에 구독 id가 있고 선택 피드가 확정된 경우에만 대조
        if subscription is None or self.selected_address is None:
            return True
        entry = self.manager.subscriptions.get(self.selected_address)
        if entry is None or entry.confirmed_id is None:
            return True
        return entry.confirmed_id == subscription

    def _apply(self, reading: PriceReadingDomain) -> None:
        self.latest = reading
        self.history.append(reading)
        self._rate.record()
        self._reading_handlers.emit(reading)

    async def close(self) -> None:
        """핸들러 해제 + 지연 전달 취소 + 연결 종료"""
        if self._remove_message_handler is not None:
            self._remove_message_handler()
            self._remove_message_handler = None
        self._remove_status_handler()
        await self.disconnect()
