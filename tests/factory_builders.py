from __future__ import annotations

import asyncio
import base64
import struct
from typing import Any, Callable

import orjson
from websockets.exceptions import ConnectionClosedError

from price_stream.core.dto.internal.common import ConnectionPolicyDomain

SOL_ADDRESS = "ENYwebBThHzmzwPLAQvCucUTsjyfBSZdD9ViXksS4jPu"
BTC_ADDRESS = "71wtTRDY8Gxgw56bXFt2oc6qeAbTxzStdNiC425Z51sr"
CUSTOM_ADDRESS = "7AxV2515SwLFVxWSpCngQ3TNqY17JERwcCfULc464u7D"

DEFAULT_PARAMS = {"encoding": "jsonParsed", "commitment": "confirmed"}


# ----------------------------------------------------------------------
# 페이로드 / 프레임
# ----------------------------------------------------------------------


def build_price_payload(
    raw_price: int = 15_234_500_000,
    raw_confidence: int = 1_250_000,
    exponent: int = -8,
    *,
    size: int = 28,
) -> str:
    buffer = bytearray(max(size, 28))
    struct.pack_into("<q", buffer, 8, raw_price)
    struct.pack_into("<q", buffer, 16, raw_confidence)
    struct.pack_into("<i", buffer, 24, exponent)
    return base64.b64encode(bytes(buffer[:size])).decode("ascii")


def build_ack(request_id: int, result: Any = 777) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def build_account_notification(
    payload: str | None = None, subscription: int | None = 777
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "result": {
            "context": {"slot": 341_197_053},
            "value": {
                "data": [payload or build_price_payload(), "base64"],
                "executable": False,
                "lamports": 1_461_600,
                "owner": "11111111111111111111111111111111",
            },
        },
    }
    if subscription is not None:
        params["subscription"] = subscription
    return {"jsonrpc": "2.0", "method": "accountNotification", "params": params}


def build_connection_policy_domain(**overrides: Any) -> ConnectionPolicyDomain:
    values: dict[str, Any] = {
        "reconnect_interval": 0.0,
        "max_reconnect_attempts": 5,
        "ack_timeout": 1.0,
    }
    values.update(overrides)
    return ConnectionPolicyDomain(**values)


# ----------------------------------------------------------------------
# 웹소켓 더블
# ----------------------------------------------------------------------

_CLOSE = object()
_DROP = object()


class FakeWebsocket:
    """수신 큐 기반 웹소켓 더블 (async for 지원)"""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        # 종료 핸드셰이크 지연 (초)
        self.close_delay = 0.0
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(message)

    async def close(self) -> None:
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True
        self._inbox.put_nowait(_CLOSE)

    def feed(self, message: dict[str, Any] | str) -> None:
        """서버 → 클라이언트 프레임 주입"""
        raw = message if isinstance(message, str) else orjson.dumps(message).decode("utf-8")
        self._inbox.put_nowait(raw)

    def drop(self) -> None:
        """서버 측 비정상 종료"""
        self.closed = True
        self._inbox.put_nowait(_DROP)

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        while True:
            item = await self._inbox.get()
            if item is _CLOSE:
                return
            if item is _DROP:
                raise ConnectionClosedError(None, None)
            yield item

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [orjson.loads(raw) for raw in self.sent]


class FakeConnector:
    """websockets.connect 대체 (호출마다 outcomes를 하나씩 소비, 비면 성공)"""

    def __init__(self, outcomes: list[BaseException | None] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls = 0
        self.sockets: list[FakeWebsocket] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, uri: str, **kwargs: Any) -> FakeWebsocket:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome
        websocket = FakeWebsocket()
        self.sockets.append(websocket)
        return websocket

    @property
    def latest(self) -> FakeWebsocket:
        return self.sockets[-1]


async def drain(turns: int = 20) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


# ----------------------------------------------------------------------
# 결정적 시계 / 스케줄러
# ----------------------------------------------------------------------


class _FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """수동으로 진행시키는 시계 + call_later"""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.timers: list[_FakeTimer] = []

    def clock(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _FakeTimer:
        timer = _FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance_to(self, t: float) -> None:
        while True:
            due = [h for h in self.timers if not h.cancelled and h.when <= t + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda h: h.when)
            self.timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback()
        self.now = t

    @property
    def pending(self) -> list[_FakeTimer]:
        return [h for h in self.timers if not h.cancelled]
