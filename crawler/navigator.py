"""목록 → 카테고리 → 페이지네이션 → 상세 페이지 탐색."""

import asyncio
import re
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from playwright.async_api import Locator, Page

import config
from .base import BrowserSession
from .extractor import SiteExtractor
from .locators import first_match
from .models import ExtractedProduct
from .profiles import Category, ListingMode, Pagination, SiteProfile
from .storage import JSONOutputWriter
from .utils import log_error, setup_logger

ALL_MENU = "All Menu"
PAGE_NUMBER_PATTERN = re.compile(r"page=(\d+)")


@dataclass
class CrawlContext:
    """한 번의 크롤링에 필요한 협력 객체 묶음."""
    session: BrowserSession
    writer: JSONOutputWriter
    profile: SiteProfile
    clock: Callable[[], datetime] = datetime.now
    max_pages: int = config.MAX_PAGES
    max_concurrency: int = config.MAX_CONCURRENCY


@dataclass
class NavigationStats:
    """탐색 통계."""
    pages_visited: int = 0
    categories: int = 0
    duplicates: int = 0
    failed_pages: List[str] = field(default_factory=list)
    screenshots: List[Path] = field(default_factory=list)


class NavigationDriver:
    """
    사이트 하나를 끝까지 탐색하며 레코드를 모은다.

    수집 결과는 externalId 기준으로 누적되며 같은 ID가 다시 나오면 마지막
    데이터로 덮어쓰고 처음 위치를 유지한다. 실행 중간에 중단되어도
    그때까지 모은 결과를 products로 꺼낼 수 있다.
    """

    def __init__(self, ctx: CrawlContext, extractor: Optional[SiteExtractor] = None):
        """
        탐색기를 초기화한다.

        Args:
            ctx: 크롤링 컨텍스트
            extractor: 추출기 (없으면 프로필로 생성)
        """
        self.ctx = ctx
        self.profile = ctx.profile
        self.session = ctx.session
        self.extractor = extractor or SiteExtractor(ctx.profile)
        self.logger = setup_logger(self.__class__.__name__)

        self.stats = NavigationStats()
        self.last_page: Optional[Page] = None
        self._collected: Dict[str, ExtractedProduct] = {}

    @property
    def products(self) -> List[ExtractedProduct]:
        """지금까지 수집한 레코드 (첫 등장 순서)."""
        return list(self._collected.values())

    @property
    def concurrency(self) -> int:
        return max(1, min(self.profile.concurrency, self.ctx.max_concurrency))

    def _collect(self, products: List[ExtractedProduct]) -> None:
        for product in products:
            if product.external_id in self._collected:
                self.stats.duplicates += 1
            self._collected[product.external_id] = product

    async def run(self) -> List[ExtractedProduct]:
        """
        목록 페이지부터 탐색을 시작한다.

        Returns:
            수집한 레코드 목록
        """
        profile = self.profile
        started = self.ctx.clock()
        page = await self.session.new_page()
        self.last_page = page

        if not await self._open(page, profile.start_url, profile.settle_ms):
            self.logger.error(f"목록 페이지 로드 실패: {profile.start_url}")
            return self.products

        if profile.listing_mode == ListingMode.DETAIL_LINKS:
            await self._crawl_detail_listing(page)
            return self.products

        categories = await profile.discover_categories(page)
        self.stats.categories = len(categories)
        self.logger.info(f"[{profile.site_tag}] 카테고리 {len(categories)}개 발견: {[c.label for c in categories]}")

        listing = Category(label=ALL_MENU, url=profile.start_url)
        if not categories or profile.crawl_listing_first:
            await self._crawl_category(page, listing, loaded=True)

        for category in categories:
            await self._crawl_category(page, category)

        self.logger.info(
            f"[{profile.site_tag}] 탐색 완료: {len(self._collected)}개 제품, "
            f"{self.stats.pages_visited}페이지, 실패 {len(self.stats.failed_pages)}페이지, "
            f"{(self.ctx.clock() - started).total_seconds():.1f}초"
        )
        return self.products

    async def _open(self, page: Page, url: str, settle_ms: int) -> bool:
        """페이지로 이동하고 안정화를 기다린다. 재시도 후에도 실패하면 False."""
        if not await self.session.safe_goto(page, url):
            self.stats.failed_pages.append(url)
            await self._save_failure_screenshot(page)
            return False
        await self.session.wait_for_settle(page, settle_ms)
        self.stats.pages_visited += 1
        return True

    async def _save_failure_screenshot(self, page: Page) -> None:
        """로드에 실패한 페이지의 스크린샷을 남긴다."""
        name = f"{self.profile.site_tag}-failed-{len(self.stats.failed_pages)}"
        path = await self.ctx.writer.save_debug_screenshot(page, name)
        if path is not None:
            self.stats.screenshots.append(path)

    async def _crawl_category(self, page: Page, category: Category, loaded: bool = False) -> None:
        """
        카테고리 하나를 페이지네이션까지 포함해 수집한다.

        Args:
            page: 사용할 페이지
            category: 카테고리
            loaded: 이미 해당 페이지가 열려 있는지 여부
        """
        if not loaded and not await self._open(page, category.url, self.profile.settle_ms):
            self.logger.warning(f"카테고리 페이지 로드 실패, 건너뜀: {category.label} ({category.url})")
            return
        self.last_page = page

        try:
            if self.profile.pagination == Pagination.NEXT_BUTTON:
                await self._paginate_next_button(page, category)
            elif self.profile.pagination == Pagination.PAGE_LINKS:
                await self._paginate_page_links(page, category)
            else:
                self._collect(await self.extractor.extract(page, category))
                await self._load_more(page, category)
        except Exception as e:
            self.logger.warning(f"카테고리 수집 실패: {category.label} - {str(e)}")

    async def _paginate_next_button(self, page: Page, category: Category) -> None:
        """다음 버튼을 눌러가며 수집한다. 버튼이 없거나 비활성이거나 상한에 도달하면 멈춘다."""
        page_number = 1
        while True:
            self._collect(await self.extractor.extract(page, category))
            await self._load_more(page, category)

            if page_number >= self.ctx.max_pages:
                self.logger.warning(f"최대 페이지 수({self.ctx.max_pages}) 도달, 페이지네이션 중단")
                break

            buttons, _ = await first_match(page, self.profile.next_button_selectors)
            if buttons is None:
                self.logger.debug("다음 페이지 버튼 없음, 페이지네이션 완료")
                break

            button = buttons.first
            if await self._is_disabled(button):
                self.logger.debug("다음 페이지 버튼 비활성, 페이지네이션 완료")
                break

            try:
                await button.click()
            except Exception as e:
                self.logger.info(f"다음 페이지 버튼 클릭 실패, 페이지네이션 종료: {str(e)}")
                break

            await self.session.wait_for_settle(page, self.profile.settle_ms)
            page_number += 1
            self.stats.pages_visited += 1
            self.logger.debug(f"[{category.label}] {page_number}페이지로 이동")

    async def _is_disabled(self, button: Locator) -> bool:
        """다음 버튼이 비활성(disabled 속성/클래스, aria-disabled, 숨김)인지 확인한다."""
        try:
            if await button.get_attribute("disabled") is not None:
                return True
            classes = (await button.get_attribute("class") or "").split()
            if "disabled" in classes:
                return True
            if (await button.get_attribute("aria-disabled") or "").lower() == "true":
                return True
            return not await button.is_visible()
        except Exception as e:
            self.logger.debug(f"다음 버튼 상태 확인 실패: {str(e)}")
            return True

    async def _paginate_page_links(self, page: Page, category: Category) -> None:
        """첫 페이지의 페이지 링크로 마지막 페이지를 알아낸 뒤 나머지를 병렬로 수집한다."""
        self._collect(await self.extractor.extract(page, category))

        max_page = min(await self._read_max_page(page), self.ctx.max_pages)
        if max_page <= 1:
            return

        base_url = category.url.split('?')[0]
        urls = [f"{base_url}?page={number}" for number in range(2, max_page + 1)]
        self.logger.info(f"[{category.label}] 추가 페이지 2-{max_page} 수집")

        async def handle(detail_page: Page) -> List[ExtractedProduct]:
            return await self.extractor.extract(detail_page, category)

        for products in await self._fetch_all(urls, handle, self.profile.settle_ms):
            self._collect(products)

    async def _read_max_page(self, page: Page) -> int:
        max_page = 1
        for selector in self.profile.page_link_selectors:
            try:
                links = page.locator(selector)
                for i in range(await links.count()):
                    href = await links.nth(i).get_attribute("href") or ""
                    match = PAGE_NUMBER_PATTERN.search(href)
                    if match:
                        max_page = max(max_page, int(match.group(1)))
            except Exception as e:
                self.logger.debug(f"페이지 링크 조회 실패 ({selector}): {str(e)}")
        return max_page

    async def _load_more(self, page: Page, category: Category) -> None:
        """'더보기' 버튼이 있으면 한 번 눌러 추가 항목을 수집한다."""
        if not self.profile.load_more_selectors:
            return
        buttons, _ = await first_match(page, self.profile.load_more_selectors)
        if buttons is None:
            return
        try:
            await buttons.first.click()
            await self.session.wait_for_settle(page, self.profile.settle_ms)
            self._collect(await self.extractor.extract(page, category))
        except Exception as e:
            self.logger.warning(f"더보기 버튼 처리 실패: {str(e)}")

    async def _fetch_all(
        self,
        urls: List[str],
        handler: Callable[[Page], Awaitable[List[ExtractedProduct]]],
        settle_ms: int
    ) -> List[List[ExtractedProduct]]:
        """
        여러 URL을 제한된 동시성으로 열어 처리한다.

        Args:
            urls: 방문할 URL 목록
            handler: 로드된 페이지에서 레코드를 뽑는 함수
            settle_ms: 페이지별 안정화 대기 시간

        Returns:
            URL 순서대로 정렬된 결과 목록 (실패한 URL은 빈 목록)
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        context = await self.session.create_context()

        async def fetch(url: str) -> List[ExtractedProduct]:
            async with semaphore:
                page = await self.session.new_page(context)
                try:
                    if not await self._open(page, url, settle_ms):
                        self.logger.warning(f"페이지 로드 실패, 건너뜀: {url}")
                        return []
                    self.last_page = page
                    return await handler(page)
                except Exception as e:
                    self.stats.failed_pages.append(url)
                    log_error(self.logger, url, f"페이지 처리 실패: {str(e)}", traceback.format_exc())
                    return []
                finally:
                    await page.close()

        return list(await asyncio.gather(*(fetch(url) for url in urls)))

    async def _crawl_detail_listing(self, page: Page) -> None:
        """목록 링크에서 제품 ID를 모아 상세 페이지를 방문한다. ID가 없으면 클릭 방식으로 전환한다."""
        listing = Category(label=ALL_MENU, url=self.profile.start_url)
        ids = await self._collect_link_ids(page)

        if not ids:
            self.logger.warning("링크에서 제품 ID를 찾지 못해 클릭 탐색으로 전환")
            await self._crawl_detail_clicks(page, listing)
            return

        self.logger.info(f"상세 페이지 {len(ids)}개 수집 시작 (동시 {self.concurrency}개)")

        async def handle(detail_page: Page) -> List[ExtractedProduct]:
            product = await self.extractor.extract_detail(detail_page, listing)
            return [product] if product else []

        urls = [url for url in (self.profile.detail_url(product_id) for product_id in ids) if url]
        for products in await self._fetch_all(urls, handle, self.profile.detail_settle_ms):
            self._collect(products)

    async def _collect_link_ids(self, page: Page) -> List[str]:
        links, selector = await first_match(page, self.profile.detail_link_selectors)
        if links is None:
            return []

        ids = []
        for i in range(await links.count()):
            try:
                link = links.nth(i)
                product_id = self.profile.extract_link_id(
                    await link.get_attribute("href"),
                    await link.get_attribute("onclick"),
                    await link.inner_html(),
                )
                if product_id:
                    ids.append(product_id)
            except Exception as e:
                self.logger.debug(f"링크 ID 추출 실패 ({selector}, {i}): {str(e)}")

        return list(dict.fromkeys(ids))

    async def _crawl_detail_clicks(self, page: Page, category: Category) -> None:
        """
        목록 항목을 하나씩 클릭해 상세 페이지를 방문한다.

        클릭 후 URL이 상세 페이지 패턴과 맞지 않으면 추출 없이 목록으로
        돌아가 다음 항목으로 넘어간다.
        """
        links, selector = await first_match(page, self.profile.detail_link_selectors)
        if links is None:
            self.logger.warning("클릭할 목록 항목이 없음")
            return

        list_url = page.url
        total = await links.count()
        for i in range(total):
            try:
                items = page.locator(selector)
                if i >= await items.count():
                    break
                await items.nth(i).click()
                await page.wait_for_timeout(self.profile.detail_settle_ms)

                if self.profile.is_detail_url(page.url):
                    self.stats.pages_visited += 1
                    product = await self.extractor.extract_detail(page, category)
                    if product:
                        self._collect([product])
                else:
                    self.logger.debug(f"항목 {i + 1} 클릭 후 상세 페이지 아님: {page.url}")

                await self._back_to_listing(page, list_url)
            except Exception as e:
                self.logger.warning(f"항목 {i + 1}/{total} 클릭 탐색 실패: {str(e)}")
                if page.url != list_url:
                    await self._open(page, list_url, self.profile.settle_ms)

    async def _back_to_listing(self, page: Page, list_url: str) -> None:
        """클릭으로 목록을 벗어났으면 뒤로 가고, 그래도 목록이 아니면 다시 연다."""
        if page.url == list_url:
            return
        await page.go_back()
        await page.wait_for_timeout(1000)
        if page.url != list_url:
            await self._open(page, list_url, self.profile.settle_ms)
