"""바이너리 가격 페이로드 파서

accountNotification의 data 배열 첫 원소(base64)를 디코딩해 가격을 추출합니다.

레이아웃 (little-endian, 디코딩된 버퍼 시작 기준 오프셋):
    [8, 16)   int64  raw price
    [16, 24)  int64  raw confidence
    [24, 28)  int32  exponent

사람이 읽는 가격 = raw_price × 10^exponent (confidence 동일).
"""

from __future__ import annotations

import base64
import struct
import time
from typing import Any, Final

from price_stream.common.exceptions.exception_rule import DECODE_ERRORS, classify_exception
from price_stream.common.logger import PipelineLogger
from price_stream.core.dto.internal.price import PriceReadingDomain
from price_stream.core.types import FeedType

logger = PipelineLogger.get_logger("price_parser", "parser")

PRICE_OFFSET: Final[int] = 8
CONFIDENCE_OFFSET: Final[int] = 16
EXPONENT_OFFSET: Final[int] = 24
MIN_PAYLOAD_SIZE: Final[int] = 28

_UINT32_LE = struct.Struct("<I")
_INT32_LE = struct.Struct("<i")


def read_int64_le(buffer: bytes, offset: int) -> int:
    """64비트 부호 정수를 32비트 두 번 읽어 조합 (low: unsigned, high: signed)"""
    (low,) = _UINT32_LE.unpack_from(buffer, offset)
    (high,) = _INT32_LE.unpack_from(buffer, offset + 4)
    return high * 4294967296 + low


def read_int32_le(buffer: bytes, offset: int) -> int:
    (value,) = _INT32_LE.unpack_from(buffer, offset)
    return value


def parse_price_data(data: Any) -> PriceReadingDomain | None:
    """data 배열 → PriceReadingDomain

    값이 없거나 형식이 잘못되면 None (예외를 던지지 않음).

    Args:
        data: ["<base64>", "base64"] 형태의 배열
    """
    try:
        if not data or not data[0]:
            return None

        encoded = data[0]
        buffer = base64.b64decode(encoded, validate=True)

        raw_price = read_int64_le(buffer, PRICE_OFFSET)
        raw_confidence = read_int64_le(buffer, CONFIDENCE_OFFSET)
        exponent = read_int32_le(buffer, EXPONENT_OFFSET)

        scale = 10.0**exponent
        return PriceReadingDomain(
            price=raw_price * scale,
            confidence=raw_confidence * scale,
            exponent=exponent,
            raw_price=raw_price,
            raw_confidence=raw_confidence,
            timestamp=int(time.time() * 1000),
            raw_payload=encoded if isinstance(encoded, str) else bytes(encoded).decode("ascii"),
        )
    except DECODE_ERRORS as e:
        domain, code, _ = classify_exception(e, "parser")
        logger.warning(
            f"price payload decode failed - {e}",
            extra={"error_domain": domain.value, "error_code": code.value},
        )
        return None


def detect_feed_type(buffer: bytes | None = None) -> FeedType:
    """피드 포맷 감지 (미구현: 항상 PYTH)"""
    # TODO: Stork 피드 주소를 추가할 때 헤더 시그니처 기반 판별로 교체
    return FeedType.PYTH
