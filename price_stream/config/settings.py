"""통합 Settings 모듈 - 환경변수 기반

설정 우선순위:
    1. 환경변수 (최우선) - export FEED_URL=...
    2. .env 파일 - config/.env
    3. 코드 기본값 (settings.py 내부)

사용 예시:
    # 기본값 (devnet 엔드포인트, 2000ms 재연결, 5회 제한)
    python main.py

    # 엔드포인트/재연결 정책 오버라이드
    export FEED_URL=wss://api.mainnet-beta.solana.com
    export FEED_MAX_RECONNECT_ATTEMPTS=10
    python main.py

시간 관련 값은 모두 밀리초 단위입니다.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 설정 파일 경로
config_dir = Path(__file__).parent.parent.parent / "config"


def env_settings(prefix: str) -> SettingsConfigDict:
    """환경변수 + .env 통합 설정

    Args:
        prefix: 환경변수 접두사 (예: FEED_, LOG_)
    """
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=config_dir / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class FeedCatalogEntry(BaseModel):
    """구독 가능한 가격 피드 (표시 이름 + 계정 주소)"""

    name: str
    address: str
    category: str = "Custom"

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)


DEFAULT_FEEDS: tuple[FeedCatalogEntry, ...] = (
    FeedCatalogEntry(
        name="SOL/USD",
        address="ENYwebBThHzmzwPLAQvCucUTsjyfBSZdD9ViXksS4jPu",
        category="Pyth Lazer",
    ),
    FeedCatalogEntry(
        name="BTC/USD",
        address="71wtTRDY8Gxgw56bXFt2oc6qeAbTxzStdNiC425Z51sr",
        category="Pyth Lazer",
    ),
    FeedCatalogEntry(
        name="ETH/USD",
        address="5vaYr1hpv8yrSpu8w3K95x22byYxUJCCNCSYJtqVWPvG",
        category="Pyth Lazer",
    ),
    FeedCatalogEntry(
        name="USDC/USD",
        address="Ekug3x6hs37Mf4XKCDptvRVCSCjJCAD7LKmKQXBAa541",
        category="Pyth Lazer",
    ),
    FeedCatalogEntry(
        name="Custom Feed",
        address="7AxV2515SwLFVxWSpCngQ3TNqY17JERwcCfULc464u7D",
        category="Custom",
    ),
)


class FeedSettings(BaseSettings):
    """가격 피드 연결 설정

    환경변수 오버라이드:
        FEED_URL: 웹소켓 엔드포인트 (기본: wss://devnet.magicblock.app)
        FEED_RECONNECT_INTERVAL_MS: 재연결 대기 (기본: 2000)
        FEED_MAX_RECONNECT_ATTEMPTS: 재연결 최대 시도 횟수 (기본: 5)
        FEED_THROTTLE_INTERVAL_MS: 소비자 통지 최소 간격 (기본: 50)
        FEED_ACK_TIMEOUT_MS: 구독 ACK 대기 한도, 0이면 무제한 (기본: 30000)
        FEED_HISTORY_SIZE: 보관할 최근 가격 개수 (기본: 100)
        FEED_DEFAULT_ENCODING / FEED_DEFAULT_COMMITMENT: accountSubscribe 기본 옵션
        FEED_FEEDS: 피드 카탈로그 (JSON 배열)
        FEED_DEFAULT_FEED_ADDRESS: 시작 시 구독할 주소
    """

    url: str = "wss://devnet.magicblock.app"
    reconnect_interval_ms: int = Field(default=2000, ge=0)
    max_reconnect_attempts: int = Field(default=5, ge=0)
    throttle_interval_ms: int = Field(default=50, ge=0)
    ack_timeout_ms: int = Field(default=30000, ge=0)
    history_size: int = Field(default=100, ge=1)
    default_encoding: str = "jsonParsed"
    default_commitment: str = "confirmed"
    feeds: list[FeedCatalogEntry] = Field(default_factory=lambda: list(DEFAULT_FEEDS))
    default_feed_address: str = "7AxV2515SwLFVxWSpCngQ3TNqY17JERwcCfULc464u7D"

    model_config = env_settings("FEED_")

    def find_feed(self, address: str) -> FeedCatalogEntry | None:
        """주소로 카탈로그 항목 조회"""
        for feed in self.feeds:
            if feed.address == address:
                return feed
        return None

    def default_subscribe_params(self) -> dict[str, str]:
        return {
            "encoding": self.default_encoding,
            "commitment": self.default_commitment,
        }


class LoggingSettings(BaseSettings):
    """로깅 설정

    환경변수 오버라이드:
        LOG_LEVEL: 로깅 레벨 (기본: INFO)
        LOG_TO_FILE: 파일 로깅 여부 (기본: false)
        LOG_DIR: 로그 디렉토리 (기본: logs)
    """

    level: str = "INFO"
    to_file: bool = False
    dir: str = "logs"

    model_config = env_settings("LOG_")


# ========================================
# 설정 인스턴스
# ========================================

feed_settings = FeedSettings()
logging_settings = LoggingSettings()
