from __future__ import annotations

from typing import Any

from price_stream.common.events import HandlerRegistry


def test_handlers_run_in_registration_order() -> None:
    registry: HandlerRegistry[Any] = HandlerRegistry("test")
    calls: list[tuple[str, int]] = []

    registry.add(lambda value: calls.append(("a", value)))
    registry.add(lambda value: calls.append(("b", value)))
    registry.emit(1)
    registry.emit(2)

    assert calls == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_remover_deletes_exactly_its_registration_and_is_idempotent() -> None:
    registry: HandlerRegistry[Any] = HandlerRegistry("test")
    calls: list[int] = []

    def handler(value: int) -> None:
        calls.append(value)

    remove_first = registry.add(handler)
    registry.add(handler)

    remove_first()
    remove_first()
    registry.emit(1)

    assert calls == [1]
    assert len(registry) == 1


def test_remover_is_safe_after_clear() -> None:
    registry: HandlerRegistry[Any] = HandlerRegistry("test")
    remove = registry.add(lambda: None)

    registry.clear()
    remove()

    assert len(registry) == 0


def test_handler_failure_is_isolated() -> None:
    registry: HandlerRegistry[Any] = HandlerRegistry("test")
    calls: list[int] = []

    def broken(value: int) -> None:
        raise RuntimeError("boom")

    registry.add(broken)
    registry.add(calls.append)
    registry.emit(7)

    assert calls == [7]


def test_removal_during_dispatch_applies_to_next_emit() -> None:
    registry: HandlerRegistry[Any] = HandlerRegistry("test")
    calls: list[str] = []
    removers: dict[str, Any] = {}

    def first(_: int) -> None:
        calls.append("first")
        removers["second"]()

    def second(_: int) -> None:
        calls.append("second")

    registry.add(first)
    removers["second"] = registry.add(second)

    registry.emit(1)
    registry.emit(2)

    assert calls == ["first", "second", "first"]
