"""Playwright 브라우저 세션 관리."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

import config
from .utils import get_random_user_agent, get_random_viewport, setup_logger

# 광고 및 추적 스크립트 도메인
BLOCKED_DOMAINS = [
    'google-analytics.com',
    'googletagmanager.com',
    'facebook.com/tr',
    'doubleclick.net',
    'googlesyndication.com',
    'adsystem.com',
]

BLOCKED_EXTENSIONS = ['.woff', '.woff2', '.ttf', '.otf', '.eot', '.mp4', '.mov', '.mp3', '.wav']


class BrowserSession:
    """
    Playwright 브라우저 세션.

    비동기 컨텍스트 매니저로 사용하며 종료 시 컨텍스트, 브라우저,
    Playwright 인스턴스를 모두 정리한다. 크롤링 도중 예외나 타임아웃이
    발생해도 브라우저가 남지 않는다.
    """

    def __init__(
        self,
        headless: bool = config.HEADLESS,
        page_timeout: int = config.PAGE_TIMEOUT,
        max_retries: int = config.MAX_RETRIES,
        retry_delay: float = config.RETRY_DELAY
    ):
        """
        브라우저 세션을 초기화한다.

        Args:
            headless: 헤드리스 모드 여부
            page_timeout: 페이지 이동 타임아웃 (밀리초)
            max_retries: 페이지 이동 재시도 횟수
            retry_delay: 재시도 간격(초)
        """
        self.headless = headless
        self.page_timeout = page_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = setup_logger(self.__class__.__name__)

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.contexts: List[BrowserContext] = []

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료."""
        await self.stop()

    async def start(self) -> None:
        """
        브라우저를 시작한다.
        """
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.headless,
                args=['--no-sandbox', '--disable-setuid-sandbox']
            )
            self.logger.info("브라우저 초기화 완료")
        except Exception as e:
            self.logger.error(f"브라우저 초기화 실패: {str(e)}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """
        브라우저를 종료하고 리소스를 정리한다.
        """
        for context in self.contexts:
            try:
                await context.close()
            except Exception as e:
                self.logger.debug(f"컨텍스트 종료 실패: {str(e)}")
        self.contexts.clear()

        if self.browser:
            try:
                await self.browser.close()
            except Exception as e:
                self.logger.warning(f"브라우저 종료 중 오류: {str(e)}")
            self.browser = None

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                self.logger.warning(f"Playwright 종료 중 오류: {str(e)}")
            self.playwright = None

        self.logger.info("브라우저 세션 종료 완료")

    async def create_context(self) -> BrowserContext:
        """
        새로운 브라우저 컨텍스트를 생성하고 리소스 차단을 설정한다.

        Returns:
            생성된 브라우저 컨텍스트
        """
        if not self.browser:
            raise RuntimeError("브라우저가 초기화되지 않았습니다.")

        context = await self.browser.new_context(
            viewport=get_random_viewport(),
            user_agent=get_random_user_agent(),
            locale="ko-KR"
        )
        await self._setup_resource_blocking(context)

        self.contexts.append(context)
        return context

    async def _setup_resource_blocking(self, context: BrowserContext) -> None:
        """
        폰트, 미디어, 광고 요청을 차단한다.

        이미지 요청은 허용한다.

        Args:
            context: 브라우저 컨텍스트
        """
        async def handle_route(route):
            url = route.request.url.lower()
            resource_type = route.request.resource_type

            if resource_type in ("font", "media") or any(ext in url for ext in BLOCKED_EXTENSIONS):
                await route.abort()
                return

            if any(domain in url for domain in BLOCKED_DOMAINS):
                await route.abort()
                return

            await route.continue_()

        await context.route("**/*", handle_route)
        self.logger.debug("리소스 차단 설정 완료 (폰트, 미디어, 광고 스크립트)")

    async def new_page(self, context: Optional[BrowserContext] = None) -> Page:
        """
        새로운 페이지를 생성한다.

        Args:
            context: 브라우저 컨텍스트 (없으면 새로 생성)

        Returns:
            생성된 페이지
        """
        if context is None:
            context = await self.create_context()
        page = await context.new_page()
        page.set_default_timeout(self.page_timeout)
        return page

    async def safe_goto(self, page: Page, url: str, timeout: Optional[int] = None) -> bool:
        """
        재시도하며 페이지로 이동한다.

        Args:
            page: 페이지 인스턴스
            url: 이동할 URL
            timeout: 타임아웃 (밀리초, 기본값은 세션 설정)

        Returns:
            성공 여부
        """
        async def goto():
            await page.goto(url, timeout=timeout or self.page_timeout, wait_until='domcontentloaded')

        try:
            await self.retry_operation(goto, max_retries=self.max_retries, delay=self.retry_delay)
            return True
        except Exception as e:
            self.logger.warning(f"페이지 이동 실패 ({url}): {str(e)}")
            return False

    async def wait_for_settle(self, page: Page, settle_ms: int) -> None:
        """
        네트워크 유휴 상태를 기다린 뒤 고정 시간만큼 더 대기한다.

        Args:
            page: 페이지 인스턴스
            settle_ms: 추가 대기 시간 (밀리초)
        """
        try:
            await page.wait_for_load_state("networkidle", timeout=self.page_timeout)
        except Exception as e:
            self.logger.debug(f"networkidle 대기 실패, 계속 진행: {str(e)}")
        await page.wait_for_timeout(settle_ms)

    async def retry_operation(
        self,
        operation: Callable[[], Awaitable[Any]],
        max_retries: int = 2,
        delay: float = 1.0
    ) -> Any:
        """
        재시도 로직으로 작업을 실행한다.

        Args:
            operation: 실행할 비동기 함수
            max_retries: 최대 재시도 횟수
            delay: 재시도 간격(초)

        Returns:
            작업 결과

        Raises:
            마지막 시도에서 발생한 예외
        """
        last_exception = None

        for attempt in range(max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                last_exception = e
                if attempt < max_retries:
                    self.logger.warning(f"작업 실패 (시도 {attempt + 1}/{max_retries + 1}): {str(e)}")
                    await asyncio.sleep(delay)
                else:
                    self.logger.error(f"모든 재시도 실패: {str(e)}")

        raise last_exception

