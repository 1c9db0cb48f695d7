from __future__ import annotations

import random

from price_stream.core.dto.internal.common import ConnectionPolicyDomain


def compute_next_backoff(policy: ConnectionPolicyDomain, attempt: int) -> float:
    """재연결 대기 시간 계산.

    기본 정책(multiplier=1.0, jitter=0.0)에서는 항상 reconnect_interval을 돌려줍니다.

    Args:
        policy: 재연결 파라미터가 담긴 정책 객체
        attempt: 0부터 시작하는 시도 인덱스

    Returns:
        다음 대기 시간(초)
    """
    base = min(
        policy.reconnect_interval * (policy.backoff_multiplier**attempt),
        max(policy.max_backoff, policy.reconnect_interval),
    )
    if policy.jitter <= 0:
        return max(0.0, base)
    jitter_range = base * policy.jitter
    return max(0.0, base + random.uniform(-jitter_range, jitter_range))
