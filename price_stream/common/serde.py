from typing import Any

import orjson


def to_frame(value: Any) -> str:
    """객체를 웹소켓 텍스트 프레임(JSON 문자열)으로 직렬화 (orjson)"""
    return orjson.dumps(value).decode("utf-8")


def from_frame(raw: str | bytes | bytearray | memoryview) -> Any:
    """수신 프레임(JSON 텍스트/바이트)을 파이썬 객체로 역직렬화.

    - 잘못된 JSON이면 orjson.JSONDecodeError(ValueError 하위)를 그대로 던집니다.
    """
    return orjson.loads(raw)
