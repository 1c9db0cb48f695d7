from __future__ import annotations

from dataclasses import dataclass

from price_stream.config.settings import FeedSettings
from price_stream.core.types import ErrorCategory, ExceptionGroup, RuleKind


@dataclass(slots=True, repr=False, eq=False, match_args=False, kw_only=True)
class ConnectionPolicyDomain:
    """웹소켓 연결/재연결/구독 ACK 정책(도메인). 시간 단위는 초."""

    # 재연결 (기본: 고정 간격)
    reconnect_interval: float = 2.0
    max_reconnect_attempts: int = 5
    backoff_multiplier: float = 1.0
    max_backoff: float = 60.0
    jitter: float = 0.0  # +/- 비율

    # 구독 ACK 대기 한도 (None이면 무제한)
    ack_timeout: float | None = 30.0


def build_connection_policy(settings: FeedSettings) -> ConnectionPolicyDomain:
    """FeedSettings(밀리초) → ConnectionPolicyDomain(초)"""
    ack_timeout = settings.ack_timeout_ms / 1000.0 if settings.ack_timeout_ms > 0 else None
    return ConnectionPolicyDomain(
        reconnect_interval=settings.reconnect_interval_ms / 1000.0,
        max_reconnect_attempts=settings.max_reconnect_attempts,
        ack_timeout=ack_timeout,
    )


@dataclass(
    slots=True, frozen=True, eq=False, repr=False, match_args=False, kw_only=True
)
class RuleDomain:
    """예외 분류 규칙(도메인)

    kinds: 규칙이 적용될 경계 종류 ("ws", "parser", "handler")
    exc:   매칭할 예외 타입(단일 타입 또는 타입 튜플)
    result: ErrorCategory
    """

    kinds: RuleKind
    exc: ExceptionGroup
    result: ErrorCategory
