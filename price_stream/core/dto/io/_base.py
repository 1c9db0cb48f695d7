"""I/O 경계 DTO 기반 클래스"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# 송신 프레임용: 불변 + 알 수 없는 필드 금지
OPTIMIZED_CONFIG = ConfigDict(
    use_enum_values=True,
    extra="forbid",
    validate_default=True,
    str_strip_whitespace=True,
    frozen=True,
    arbitrary_types_allowed=False,
)

# 수신 프레임용: 서버가 보내는 부가 필드는 무시
INBOUND_CONFIG = ConfigDict(
    use_enum_values=True,
    extra="ignore",
    frozen=True,
    arbitrary_types_allowed=False,
)


class BaseIOModelDTO(BaseModel):
    """송신 I/O 경계용 공통 Pydantic v2 베이스 모델."""

    model_config = OPTIMIZED_CONFIG


class InboundModelDTO(BaseModel):
    """수신 I/O 경계용 공통 Pydantic v2 베이스 모델."""

    model_config = INBOUND_CONFIG
