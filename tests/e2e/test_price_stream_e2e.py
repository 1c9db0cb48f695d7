from __future__ import annotations

import asyncio
from typing import Any

import pytest

from price_stream.config.settings import FeedSettings
from price_stream.core.connection import websocket_manager as ws_module
from price_stream.core.connection.websocket_manager import WebsocketConnectionManager
from price_stream.core.dto.internal.price import PriceReadingDomain
from price_stream.core.stream.price_stream import PriceFeedStream
from tests.factory_builders import (
    BTC_ADDRESS,
    SOL_ADDRESS,
    FakeConnector,
    FakeScheduler,
    build_account_notification,
    build_ack,
    build_connection_policy_domain,
    build_price_payload,
    drain,
    wait_until,
)


def _stream(
    monkeypatch: pytest.MonkeyPatch,
    connector: FakeConnector,
    throttle_interval_ms: int = 0,
    **kwargs: Any,
) -> PriceFeedStream:
    monkeypatch.setattr(ws_module.websockets, "connect", connector)
    settings = FeedSettings(history_size=kwargs.pop("history_size", 100))
    manager = WebsocketConnectionManager(
        settings.url, build_connection_policy_domain(), settings.default_subscribe_params()
    )
    return PriceFeedStream(settings, manager, throttle_interval_ms, **kwargs)


async def _select(
    stream: PriceFeedStream, connector: FakeConnector, address: str, subscription_id: int
) -> Any:
    task = asyncio.create_task(stream.select_feed(address))
    await drain()
    request_id = connector.latest.sent_frames[-1]["id"]
    connector.latest.feed(build_ack(request_id, subscription_id))
    return await asyncio.wait_for(task, 1.0)


@pytest.mark.asyncio
async def test_select_feed_delivers_decoded_readings(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = FakeConnector()
    stream = _stream(monkeypatch, connector)
    readings: list[PriceReadingDomain] = []
    stream.on_reading(readings.append)

    assert await _select(stream, connector, SOL_ADDRESS, 777) == 777
    assert stream.connected is True
    assert stream.selected_feed is not None
    assert stream.selected_feed.name == "SOL/USD"

    connector.latest.feed(build_account_notification(build_price_payload(15_234_500_000, 1_250_000, -8)))
    await wait_until(lambda: stream.latest is not None)

    assert stream.latest.price == pytest.approx(152.345)  # type: ignore[union-attr]
    assert stream.latest.confidence == pytest.approx(0.0125)  # type: ignore[union-attr]
    assert list(stream.history) == readings
    assert stream.update_count == 1
    assert stream.updates_per_second == 1.0
    assert stream.error_message == ""

    await stream.close()
    assert stream.connected is False


@pytest.mark.asyncio
async def test_history_is_bounded(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = FakeConnector()
    stream = _stream(monkeypatch, connector, history_size=3)

    await _select(stream, connector, SOL_ADDRESS, 777)
    for raw_price in range(1, 6):
        connector.latest.feed(build_account_notification(build_price_payload(raw_price, 1, 0)))
    await wait_until(lambda: stream.update_count == 5)

    assert [reading.raw_price for reading in stream.history] == [3, 4, 5]
    assert stream.latest.raw_price == 5  # type: ignore[union-attr]

    await stream.close()


@pytest.mark.asyncio
async def test_switching_feed_unsubscribes_previous(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = FakeConnector()
    stream = _stream(monkeypatch, connector)

    await _select(stream, connector, SOL_ADDRESS, 10)
    connector.latest.feed(build_account_notification(subscription=10))
    await wait_until(lambda: stream.latest is not None)

    assert await _select(stream, connector, BTC_ADDRESS, 20) == 20

    methods = [(f["method"], f["params"][0]) for f in connector.latest.sent_frames]
    assert methods == [
        ("accountSubscribe", SOL_ADDRESS),
        ("accountUnsubscribe", 10),
        ("accountSubscribe", BTC_ADDRESS),
    ]
    assert stream.latest is None
    assert list(stream.history) == []
    assert stream.update_count == 1

    await stream.close()


@pytest.mark.asyncio
async def test_notifications_for_other_subscriptions_are_ignored(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    connector = FakeConnector()
    stream = _stream(monkeypatch, connector)

    await _select(stream, connector, SOL_ADDRESS, 777)
    connector.latest.feed(build_account_notification(subscription=999))
    connector.latest.feed(build_account_notification(build_price_payload(size=10)))
    connector.latest.feed({"jsonrpc": "2.0", "method": "accountNotification", "params": {}})
    connector.latest.feed(build_account_notification(build_price_payload(5, 1, 0)))
    await wait_until(lambda: stream.latest is not None)

    assert stream.update_count == 1
    assert stream.latest.raw_price == 5  # type: ignore[union-attr]

    await stream.close()


@pytest.mark.asyncio
async def test_connection_failure_is_recorded_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = FakeConnector([OSError("connection refused")])
    stream = _stream(monkeypatch, connector)

    assert await stream.select_feed(SOL_ADDRESS) is None

    assert stream.connected is False
    assert stream.error_message.startswith("Connection error: ")
    assert "connection refused" in stream.error_message


@pytest.mark.asyncio
async def test_close_drops_pending_throttled_reading(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = FakeConnector()
    scheduler = FakeScheduler()
    stream = _stream(
        monkeypatch,
        connector,
        throttle_interval_ms=50,
        clock=scheduler.clock,
        call_later=scheduler.call_later,
    )

    await _select(stream, connector, SOL_ADDRESS, 777)
    connector.latest.feed(build_account_notification())
    await wait_until(lambda: len(scheduler.pending) == 1)

    await stream.close()
    scheduler.advance_to(1.0)

    assert scheduler.pending == []
    assert stream.latest is None
    assert stream.update_count == 0


@pytest.mark.asyncio
async def test_manual_reconnect_resubscribes_selected_feed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    connector = FakeConnector()
    stream = _stream(monkeypatch, connector)
    await _select(stream, connector, SOL_ADDRESS, 777)

    task = asyncio.create_task(stream.reconnect(delay=0))
    await wait_until(lambda: len(connector.sockets) == 2 and bool(connector.latest.sent))
    assert connector.sockets[0].closed is True

    frame = connector.latest.sent_frames[-1]
    assert frame["method"] == "accountSubscribe"
    assert frame["params"][0] == SOL_ADDRESS
    connector.latest.feed(build_ack(frame["id"], 888))

    assert await asyncio.wait_for(task, 1.0) == 888
    assert stream.error_message == ""

    await stream.close()


@pytest.mark.asyncio
async def test_manual_reconnect_drops_pending_throttled_reading(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    connector = FakeConnector()
    scheduler = FakeScheduler()
    stream = _stream(
        monkeypatch,
        connector,
        throttle_interval_ms=50,
        clock=scheduler.clock,
        call_later=scheduler.call_later,
    )
    readings: list[PriceReadingDomain] = []
    stream.on_reading(readings.append)

    await _select(stream, connector, SOL_ADDRESS, 777)
    connector.latest.feed(build_account_notification())
    await wait_until(lambda: len(scheduler.pending) == 1)

    task = asyncio.create_task(stream.reconnect(delay=0))
    await wait_until(lambda: len(connector.sockets) == 2 and bool(connector.latest.sent))
    assert scheduler.pending == []

    connector.latest.feed(build_ack(connector.latest.sent_frames[-1]["id"], 888))
    assert await asyncio.wait_for(task, 1.0) == 888

    scheduler.advance_to(1.0)
    assert stream.latest is None
    assert stream.update_count == 0
    assert readings == []

    await stream.close()
