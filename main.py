"""애플리케이션 진입점

실시간 가격 오라클 스트림
- 웹소켓 accountSubscribe로 선택한 피드 구독
- 바이너리 가격 페이로드 디코딩
- 스로틀링된 가격을 로그로 출력

Usage:
    python main.py                                         # 기본 피드 (Custom Feed)
    FEED_DEFAULT_FEED_ADDRESS=<address> python main.py     # 다른 피드
    LOG_LEVEL=DEBUG python main.py                         # 상세 로그
"""

import asyncio
import contextlib

from price_stream.common.logger import PipelineLogger
from price_stream.config.settings import feed_settings
from price_stream.core.dto.internal.price import PriceReadingDomain
from price_stream.core.stream.price_stream import PriceFeedStream

logger = PipelineLogger.get_logger("main", "app")

# 처리량 리포트 주기 (초)
REPORT_INTERVAL = 5.0


class Application:
    """애플리케이션 메인 클래스

    책임:
    - 가격 스트림 생성 및 피드 선택
    - 처리량 리포트 태스크 실행
    - Graceful Shutdown
    """

    def __init__(self) -> None:
        self.stream = PriceFeedStream(feed_settings)
        self.tasks: list[asyncio.Task] = []

    def _log_reading(self, reading: PriceReadingDomain) -> None:
        logger.info(
            f"price={reading.price:.6f} ±{reading.confidence:.6f} (exp={reading.exponent})",
            extra={"raw_price": reading.raw_price, "timestamp": reading.timestamp},
        )

    async def initialize(self) -> None:
        address = feed_settings.default_feed_address
        feed = feed_settings.find_feed(address)
        logger.info(
            f"실시간 가격 스트림 시작: {feed_settings.url} / {feed.name if feed else address}"
        )

        self.stream.on_reading(self._log_reading)
        subscription_id = await self.stream.select_feed(address)
        if subscription_id is None:
            logger.error(f"구독 실패: {self.stream.error_message}")
        else:
            logger.info(f"✅ 구독 완료 (subscription={subscription_id})")

    async def _report_loop(self) -> None:
        while True:
            await asyncio.sleep(REPORT_INTERVAL)
            status = "connected" if self.stream.connected else "disconnected"
            logger.info(
                f"status={status} updates={self.stream.update_count} "
                f"rate={self.stream.updates_per_second:.1f}/s"
            )
            if self.stream.error_message:
                logger.warning(self.stream.error_message)

    async def run(self) -> None:
        self.tasks = [asyncio.create_task(self._report_loop(), name="price-report")]
        await asyncio.gather(*self.tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        logger.info("정리 작업 시작...")

        for task in self.tasks:
            if not task.done():
                task.cancel()

        for task in self.tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self.stream.close()
        logger.info("✅ 프로그램 종료 완료")


async def main() -> None:
    """메인 실행 함수"""
    app = Application()

    try:
        await app.initialize()
        await app.run()
    except asyncio.CancelledError:
        logger.info("사용자에 의해 프로그램이 종료되었습니다")
    finally:
        await app.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n프로그램이 종료되었습니다.")
