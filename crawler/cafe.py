"""카페 메뉴 크롤링 실행기."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

import config
from .base import BrowserSession
from .models import ExtractedProduct
from .navigator import CrawlContext, NavigationDriver
from .profiles import SiteProfile
from .storage import JSONOutputWriter
from .utils import setup_logger


@dataclass
class CrawlReport:
    """크롤링 실행 결과."""
    site_tag: str
    products: List[ExtractedProduct]
    output_path: Optional[Path] = None
    partial: bool = False
    pages_visited: int = 0
    failed_pages: List[str] = field(default_factory=list)
    screenshot_path: Optional[Path] = None
    elapsed_seconds: float = 0.0
    validation: Dict[str, Any] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.products)


def category_summary(products: List[ExtractedProduct]) -> Dict[str, int]:
    """
    외부 카테고리별 제품 수를 집계한다.

    Args:
        products: 레코드 목록

    Returns:
        {카테고리: 개수} (개수 내림차순)
    """
    if not products:
        return {}
    df = pd.DataFrame([product.to_dict() for product in products])
    counts = df["externalCategory"].fillna("미분류").value_counts()
    return {str(name): int(count) for name, count in counts.items()}


class CafeMenuCrawler:
    """
    사이트 하나의 전체 메뉴를 크롤링해 JSON으로 저장한다.

    브라우저 세션은 실행 범위 안에서만 살아 있으며, 전체 실행 시간 제한을
    넘기면 세션을 닫고 그때까지 수집한 결과만 저장한다.
    """

    def __init__(
        self,
        profile: SiteProfile,
        writer: Optional[JSONOutputWriter] = None,
        session_factory: Callable[[], BrowserSession] = BrowserSession,
        run_timeout: float = config.RUN_TIMEOUT,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        크롤러를 초기화한다.

        Args:
            profile: 사이트 프로필
            writer: JSON 출력기 (없으면 기본 출력 디렉토리 사용)
            session_factory: 브라우저 세션 생성 함수
            run_timeout: 전체 실행 시간 제한(초)
            clock: 시계
        """
        self.profile = profile
        self.writer = writer or JSONOutputWriter(clock=clock)
        self.session_factory = session_factory
        self.run_timeout = run_timeout
        self.clock = clock
        self.logger = setup_logger(self.__class__.__name__)

    async def crawl(self) -> CrawlReport:
        """
        크롤링을 실행하고 결과 파일을 쓴다.

        Returns:
            크롤링 결과
        """
        started = self.clock()
        site_tag = self.profile.site_tag
        self.logger.info(f"{self.profile.cafe_name}({site_tag}) 크롤링 시작: {self.profile.start_url}")

        partial = False
        screenshot_path = None
        async with self.session_factory() as session:
            ctx = CrawlContext(session=session, writer=self.writer, profile=self.profile, clock=self.clock)
            driver = NavigationDriver(ctx)
            try:
                await asyncio.wait_for(driver.run(), timeout=self.run_timeout)
            except asyncio.TimeoutError:
                partial = True
                self.logger.warning(
                    f"실행 시간 제한({self.run_timeout}초) 초과, 부분 결과 {len(driver.products)}개 저장"
                )

            products = driver.products
            if not products and driver.last_page is not None:
                screenshot_path = await self.writer.save_debug_screenshot(driver.last_page, f"{site_tag}-empty")

        output_path = self.writer.write(products, site_tag)
        if not products:
            self.logger.warning(f"{site_tag}: 추출된 제품이 없습니다.")

        for category, count in category_summary(products).items():
            self.logger.info(f"  - {category}: {count}개")

        validation = driver.extractor.validator.stats.to_dict()
        self._log_validation(validation)

        return CrawlReport(
            site_tag=site_tag,
            products=products,
            output_path=output_path,
            partial=partial,
            pages_visited=driver.stats.pages_visited,
            failed_pages=list(driver.stats.failed_pages),
            screenshot_path=screenshot_path,
            elapsed_seconds=(self.clock() - started).total_seconds(),
            validation=validation,
        )

    def _log_validation(self, validation: Dict[str, Any]) -> None:
        summary = validation["summary"]
        total = summary["total_products"]
        if not total:
            return
        self.logger.info(
            f"제품 검증 완료: {summary['valid_products']}/{total}개 유효 "
            f"({summary['valid_products'] / total * 100:.1f}%)"
        )
        for reason, count in validation["removal_breakdown"].items():
            if count:
                self.logger.info(f"  - 제외 ({reason}): {count}개")
