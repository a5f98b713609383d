"""카페 브랜드별 사이트 프로필.

각 프로필은 셀렉터 우선순위 목록과 탐색 방식만 선언하고, 실제 추출과
탐색은 SiteExtractor / NavigationDriver가 공통으로 수행한다. 브랜드 고유의
차이(카테고리 발견 방식, ID 규칙 등)는 메서드 오버라이드로 표현한다.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence
from urllib.parse import parse_qs, urlparse

from .locators import first_match
from .utils import absolute_url, clean_text, setup_logger

logger = setup_logger(__name__)

# goDrinkView('[9200000002487]') 형태의 링크 ID
LINK_ID_PATTERN = re.compile(r"\[(\d+)\]")


class Pagination(str, Enum):
    """카테고리 페이지의 페이지네이션 방식."""
    NONE = "none"
    NEXT_BUTTON = "next_button"
    PAGE_LINKS = "page_links"


class ListingMode(str, Enum):
    """목록 페이지에서 제품을 얻는 방식."""
    CONTAINERS = "containers"
    DETAIL_LINKS = "detail_links"


@dataclass
class Category:
    """탐색 대상 카테고리 페이지."""
    label: str
    url: str
    category_id: Optional[str] = None


@dataclass
class FieldSelectors:
    """필드별 셀렉터 우선순위 목록."""
    name: List[str] = field(default_factory=list)
    name_en: List[str] = field(default_factory=list)
    description: List[str] = field(default_factory=list)
    image: List[str] = field(default_factory=lambda: ["img"])
    price: List[str] = field(default_factory=list)
    external_category: List[str] = field(default_factory=list)
    native_id: List[str] = field(default_factory=list)


@dataclass
class SiteProfile:
    """
    사이트별 크롤링 설정.

    추출기와 탐색기는 이 설정만 보고 동작하므로 새 브랜드는 프로필 하나를
    추가하는 것으로 지원한다.
    """

    site_tag: str
    cafe_name: str
    base_url: str
    start_url: str
    category: str = "Drinks"
    container_selectors: List[str] = field(default_factory=list)
    fields: FieldSelectors = field(default_factory=FieldSelectors)
    category_link_selectors: List[str] = field(default_factory=list)
    category_id_pattern: Optional[str] = None
    skip_categories: Sequence[str] = ()
    listing_mode: ListingMode = ListingMode.CONTAINERS
    crawl_listing_first: bool = False
    pagination: Pagination = Pagination.NONE
    next_button_selectors: List[str] = field(default_factory=list)
    load_more_selectors: List[str] = field(default_factory=list)
    page_link_selectors: List[str] = field(default_factory=list)
    detail_link_selectors: List[str] = field(default_factory=list)
    detail_url_pattern: Optional[str] = None
    hover_for_description: bool = False
    concurrency: int = 3
    settle_ms: int = 2000
    detail_settle_ms: int = 2000

    def build_external_id(self, name: str, category: Category, native_id: Optional[str] = None) -> str:
        """
        외부 ID를 만든다.

        사이트가 고유 ID를 노출하면 그 값을, 아니면 "{site}_{category}_{name}"
        형식의 합성 ID를 사용한다.

        Args:
            name: 메뉴명
            category: 현재 카테고리
            native_id: 사이트 고유 ID (없으면 None)

        Returns:
            외부 ID 문자열
        """
        if native_id:
            return f"{self.site_tag}_{native_id}"
        scope = category.category_id or category.label
        return f"{self.site_tag}_{scope}_{name}"

    async def discover_categories(self, page) -> List[Category]:
        """
        목록 페이지에서 카테고리 링크를 찾는다.

        Args:
            page: 목록 페이지

        Returns:
            카테고리 목록 (발견하지 못하면 빈 목록)
        """
        if not self.category_link_selectors:
            return []

        links, selector = await first_match(page, self.category_link_selectors)
        if links is None:
            return []

        categories: Dict[str, Category] = {}
        for i in range(await links.count()):
            try:
                link = links.nth(i)
                href = await link.get_attribute("href")
                label = clean_text(await link.text_content() or "")
                if not href or not label or label in self.skip_categories:
                    continue
                url = absolute_url(href, self.base_url)
                category_id = None
                if self.category_id_pattern:
                    match = re.search(self.category_id_pattern, href)
                    if not match:
                        continue
                    category_id = match.group(1)
                categories.setdefault(url, Category(label=label, url=url, category_id=category_id))
            except Exception as e:
                logger.debug(f"카테고리 링크 파싱 실패 ({selector}, {i}): {str(e)}")

        return list(categories.values())

    def detail_url(self, product_id: str) -> Optional[str]:
        """고유 ID로 상세 페이지 URL을 만든다. 상세 페이지가 없는 사이트는 None."""
        return None

    def detail_id_from_url(self, url: str) -> Optional[str]:
        """상세 페이지 URL에서 고유 ID를 꺼낸다."""
        return None

    def is_detail_url(self, url: str) -> bool:
        """URL이 상세 페이지인지 여부를 반환한다."""
        return bool(self.detail_url_pattern and self.detail_url_pattern in (url or ""))

    def extract_link_id(self, *candidates: Optional[str]) -> Optional[str]:
        """
        링크의 href, onclick, innerHTML 순으로 제품 ID를 찾는다.

        URL 쿼리 파라미터를 먼저 보고, 없으면 "[숫자]" 패턴을 찾는다.

        Args:
            candidates: 링크에서 읽은 문자열들

        Returns:
            제품 ID 또는 None
        """
        for candidate in candidates:
            if not candidate:
                continue
            query_id = self.detail_id_from_url(candidate)
            if query_id:
                return query_id
            match = LINK_ID_PATTERN.search(candidate)
            if match:
                return match.group(1)
        return None


class StarbucksProfile(SiteProfile):
    """스타벅스: 목록 페이지의 링크에서 product_cd를 모아 상세 페이지를 방문한다."""

    def __init__(self):
        super().__init__(
            site_tag="starbucks",
            cafe_name="스타벅스",
            base_url="https://www.starbucks.co.kr",
            start_url="https://www.starbucks.co.kr/menu/drink_list.do",
            fields=FieldSelectors(
                name=[".myAssignZone > h4"],
                name_en=[".myAssignZone > h4 > span"],
                description=[".myAssignZone p.t1"],
                image=[".elevatezoom-gallery > img:nth-child(1)", ".elevatezoom-gallery img"],
                external_category=[".cate"],
                native_id=[],
            ),
            listing_mode=ListingMode.DETAIL_LINKS,
            detail_link_selectors=[
                "a.goDrinkView",
                'a[href*="drink_view.do"]',
                'a[href*="product_cd"]',
                ".product-item a",
                ".drink-item a",
                'a[onclick*="goDrinkView"]',
            ],
            detail_url_pattern="drink_view.do",
            concurrency=3,
            settle_ms=5000,
            detail_settle_ms=2000,
        )

    def build_external_id(self, name: str, category: Category, native_id: Optional[str] = None) -> str:
        if native_id:
            return native_id
        return super().build_external_id(name, category)

    def detail_url(self, product_id: str) -> str:
        return f"{self.base_url}/menu/drink_view.do?product_cd={product_id}"

    def detail_id_from_url(self, url: str) -> Optional[str]:
        values = parse_qs(urlparse(url or "").query).get("product_cd")
        return values[0] if values and values[0] else None


class ComposeProfile(SiteProfile):
    """컴포즈커피: 카테고리 드롭다운 + 페이지 번호 링크."""

    def __init__(self):
        super().__init__(
            site_tag="compose",
            cafe_name="컴포즈커피",
            base_url="https://composecoffee.com",
            start_url="https://composecoffee.com/menu",
            container_selectors=[".itemBox"],
            fields=FieldSelectors(
                name=["h3.undertitle"],
                image=[".rthumbnailimg"],
                native_id=[":scope > div[id]"],
            ),
            category_link_selectors=['.dropdown-menu a[href*="/menu/category/"]'],
            category_id_pattern=r"/menu/category/(\d+)",
            pagination=Pagination.PAGE_LINKS,
            page_link_selectors=['a[href*="page="]', ".pagination a", ".page-link"],
            concurrency=3,
            settle_ms=2000,
        )


class MegaProfile(SiteProfile):
    """
    메가커피: 전체 목록을 다음 버튼으로 넘긴 뒤 체크박스 카테고리 페이지를 방문한다.

    카테고리 페이지끼리 제품이 겹치므로 합성 ID에 카테고리를 넣지 않는다.
    """

    CHECKBOX_SELECTORS = [
        'input[name="list_checkbox"]',
        ".category-filter input",
        ".menu-category input",
        'input[type="checkbox"][data-category]',
    ]

    def __init__(self):
        super().__init__(
            site_tag="mega",
            cafe_name="메가커피",
            base_url="https://www.mega-mgccoffee.com",
            start_url="https://www.mega-mgccoffee.com/menu/",
            container_selectors=[
                ".cont_gallery_list .inner_modal_open",
                ".cont_gallery_list ul li",
                ".product-item",
                ".menu-item",
                ".item-box",
                "li[data-id]",
                ".gallery-item",
            ],
            fields=FieldSelectors(
                name=[".cont_text_title"],
                name_en=[".cont_text_info div.text1"],
                description=[".cont_text_info div.text2"],
                image=["img"],
            ),
            crawl_listing_first=True,
            pagination=Pagination.NEXT_BUTTON,
            next_button_selectors=[".board_page_next"],
            load_more_selectors=[
                'button:has-text("더보기")',
                ".load-more",
                'button:has-text("Load More")',
            ],
            concurrency=1,
            settle_ms=2000,
        )

    def build_external_id(self, name: str, category: Category, native_id: Optional[str] = None) -> str:
        return f"{self.site_tag}_{native_id or name}"

    async def discover_categories(self, page) -> List[Category]:
        checkboxes, selector = await first_match(page, self.CHECKBOX_SELECTORS)
        if checkboxes is None:
            return []

        categories = []
        for i in range(await checkboxes.count()):
            try:
                checkbox = checkboxes.nth(i)
                value = await checkbox.get_attribute("value")
                if not value:
                    continue
                label_locator = checkbox.locator("xpath=following-sibling::label[1]")
                label = None
                if await label_locator.count() > 0:
                    label = clean_text(await label_locator.first.text_content() or "")
                categories.append(Category(
                    label=label or f"Category {i + 1}",
                    url=f"{self.base_url}/menu/?menu_category1={value}",
                    category_id=value,
                ))
            except Exception as e:
                logger.debug(f"카테고리 체크박스 파싱 실패 ({selector}, {i}): {str(e)}")
        return categories


class PaikProfile(SiteProfile):
    """빽다방: 탭 링크별 메뉴 목록, 설명은 hover 시에만 노출될 수 있다."""

    def __init__(self):
        super().__init__(
            site_tag="paik",
            cafe_name="빽다방",
            base_url="https://paikdabang.com",
            start_url="https://paikdabang.com/menu/menu_new/",
            container_selectors=[".menu_list > ul > li"],
            fields=FieldSelectors(
                name=["p.menu_tit"],
                description=["p.txt"],
                image=["img"],
            ),
            category_link_selectors=["ul.page_tab a"],
            skip_categories=("신메뉴",),
            hover_for_description=True,
            concurrency=3,
            settle_ms=2000,
        )


PROFILES = {
    "starbucks": StarbucksProfile,
    "compose": ComposeProfile,
    "mega": MegaProfile,
    "paik": PaikProfile,
}


def get_profile(site_tag: str) -> SiteProfile:
    """
    사이트 태그로 프로필을 생성한다.

    Args:
        site_tag: starbucks, compose, mega, paik 중 하나

    Returns:
        사이트 프로필 인스턴스

    Raises:
        ValueError: 등록되지 않은 사이트
    """
    try:
        return PROFILES[site_tag]()
    except KeyError:
        raise ValueError(f"지원하지 않는 사이트입니다: {site_tag} (지원: {', '.join(PROFILES)})")
