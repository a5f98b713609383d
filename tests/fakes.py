"""브라우저 없이 크롤러를 테스트하기 위한 Playwright 대역 객체."""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional


class FakeElement:
    """DOM 요소 하나. children은 {셀렉터: [FakeElement]} 형태이다."""

    def __init__(
        self,
        text: str = "",
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[Dict[str, List["FakeElement"]]] = None,
        html: str = "",
        visible: bool = True,
        on_click: Optional[Callable[["FakePage"], None]] = None,
        on_hover: Optional[Callable[["FakeElement"], None]] = None
    ):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.html = html
        self.visible = visible
        self.on_click = on_click
        self.on_hover = on_hover
        self.clicks = 0


class FakeLocator:
    """Playwright Locator 중 크롤러가 쓰는 부분만 흉내 낸다."""

    def __init__(self, elements: List[FakeElement], page: Optional["FakePage"] = None):
        self.elements = elements
        self.page = page

    def locator(self, selector: str) -> "FakeLocator":
        found = []
        for element in self.elements:
            found.extend(element.children.get(selector, []))
        return FakeLocator(found, self.page)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.elements[index:index + 1], self.page)

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def _one(self) -> FakeElement:
        if not self.elements:
            raise TimeoutError("요소를 찾을 수 없음")
        return self.elements[0]

    async def count(self) -> int:
        return len(self.elements)

    async def text_content(self) -> str:
        return self._one().text

    async def inner_text(self) -> str:
        return self._one().text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self._one().attrs.get(name)

    async def inner_html(self) -> str:
        return self._one().html

    async def is_visible(self) -> bool:
        return self._one().visible

    async def click(self, **kwargs) -> None:
        element = self._one()
        element.clicks += 1
        if element.on_click:
            element.on_click(self.page)

    async def hover(self, **kwargs) -> None:
        element = self._one()
        if element.on_hover:
            element.on_hover(element)


class FakePage:
    """
    URL별 DOM을 가진 가짜 페이지.

    site는 {url: {셀렉터: [FakeElement]}} 형태이며 locator()는 현재 URL의
    DOM에서 셀렉터를 찾는다.
    """

    def __init__(self, site: Dict[str, Dict[str, List[FakeElement]]], fail_urls: Iterable[str] = ()):
        self.site = site
        self.fail_urls = set(fail_urls)
        self.url = "about:blank"
        self.history: List[str] = []
        self.visited: List[str] = []
        self.waits: List[int] = []
        self.screenshots: List[str] = []
        self.closed = False

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(list(self.site.get(self.url, {}).get(selector, [])), self)

    def navigate(self, url: str) -> None:
        self.history.append(self.url)
        self.url = url
        self.visited.append(url)

    async def goto(self, url: str, **kwargs) -> None:
        if url in self.fail_urls:
            raise TimeoutError(f"페이지 로드 타임아웃: {url}")
        self.navigate(url)

    async def go_back(self) -> None:
        if self.history:
            self.url = self.history.pop()

    async def wait_for_load_state(self, state: str = "load", **kwargs) -> None:
        return None

    async def wait_for_timeout(self, timeout: int) -> None:
        self.waits.append(timeout)

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)

    def set_default_timeout(self, timeout: int) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    """BrowserSession 대역. 모든 페이지는 같은 site DOM을 공유한다."""

    def __init__(self, site: Dict[str, Dict[str, List[FakeElement]]], fail_urls: Iterable[str] = (), settle_delay: float = 0):
        self.site = site
        self.fail_urls = set(fail_urls)
        self.settle_delay = settle_delay
        self.pages: List[FakePage] = []
        self.contexts = 0
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True

    async def create_context(self):
        self.contexts += 1
        return object()

    async def new_page(self, context=None) -> FakePage:
        page = FakePage(self.site, self.fail_urls)
        self.pages.append(page)
        return page

    async def safe_goto(self, page: FakePage, url: str, timeout: Optional[int] = None) -> bool:
        try:
            await page.goto(url)
            return True
        except TimeoutError:
            return False

    async def wait_for_settle(self, page: FakePage, settle_ms: int) -> None:
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)


def text(value: str, **attrs) -> FakeElement:
    """텍스트 요소를 만든다."""
    return FakeElement(text=value, attrs=attrs)


def link(href: str, label: str = "", **attrs) -> FakeElement:
    """링크 요소를 만든다."""
    return FakeElement(text=label, attrs=dict(attrs, href=href))


class Clock:
    """호출할 때마다 1000ms씩 증가하는 epoch 밀리초 시계."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now

