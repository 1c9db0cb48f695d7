from __future__ import annotations

import pytest

from price_stream.core.connection.services.backoff import compute_next_backoff
from price_stream.core.dto.internal.common import ConnectionPolicyDomain


def test_default_policy_is_fixed_interval() -> None:
    policy = ConnectionPolicyDomain()

    delays = [compute_next_backoff(policy, attempt) for attempt in range(5)]

    assert delays == [2.0] * 5


def test_exponential_policy_is_capped() -> None:
    policy = ConnectionPolicyDomain(reconnect_interval=1.0, backoff_multiplier=2.0, max_backoff=5.0)

    delays = [compute_next_backoff(policy, attempt) for attempt in range(5)]

    assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_jitter_stays_within_ratio() -> None:
    policy = ConnectionPolicyDomain(reconnect_interval=2.0, jitter=0.25)

    for attempt in range(20):
        assert compute_next_backoff(policy, attempt) == pytest.approx(2.0, abs=0.5)
