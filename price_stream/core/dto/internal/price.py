"""가격(Price) 내부 도메인 모델."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True, eq=True, repr=True, match_args=False, kw_only=True)
class PriceReadingDomain:
    """디코딩된 가격 1건 (불변).

    불변식:
    - price = raw_price × 10^exponent
    - confidence = raw_confidence × 10^exponent

    timestamp는 디코딩 시점의 벽시계 시각(epoch milliseconds)이며,
    raw_payload는 수신한 base64 문자열 원본입니다.
    """

    price: float
    confidence: float
    exponent: int
    raw_price: int
    raw_confidence: int
    timestamp: int
    raw_payload: str
