"""사이트 프로필 테스트."""

import pytest

from crawler.profiles import (
    PROFILES,
    Category,
    ComposeProfile,
    ListingMode,
    MegaProfile,
    PaikProfile,
    StarbucksProfile,
    get_profile,
)

from fakes import FakeElement, FakePage, link, text


def load(url: str, dom) -> FakePage:
    page = FakePage({url: dom})
    page.navigate(url)
    return page


class TestRegistry:
    """프로필 레지스트리 테스트."""

    def test_get_profile(self):
        """등록된 태그는 프로필 인스턴스를 돌려준다."""
        for site_tag in PROFILES:
            assert get_profile(site_tag).site_tag == site_tag

    def test_unknown_site(self):
        """등록되지 않은 태그는 ValueError."""
        with pytest.raises(ValueError):
            get_profile("ediya")


class TestExternalIds:
    """외부 ID 규칙 테스트."""

    def test_synthesized_id_uses_category_id_then_label(self):
        """합성 ID는 카테고리 ID, 없으면 라벨을 쓴다."""
        profile = PaikProfile()
        assert profile.build_external_id("원조커피", Category("커피", "u")) == "paik_커피_원조커피"
        assert profile.build_external_id("원조커피", Category("커피", "u", "7")) == "paik_7_원조커피"
        assert profile.build_external_id("원조커피", Category("커피", "u"), "42") == "paik_42"

    def test_starbucks_uses_raw_product_code(self):
        """스타벅스는 product_cd를 그대로 쓴다."""
        profile = StarbucksProfile()
        assert profile.build_external_id("라떼", Category("All Menu", "u"), "9200000001") == "9200000001"

    def test_mega_ignores_category(self):
        """메가커피는 카테고리가 달라도 같은 ID를 만든다."""
        profile = MegaProfile()
        first = profile.build_external_id("아메리카노", Category("커피", "u1", "1"))
        second = profile.build_external_id("아메리카노", Category("신메뉴", "u2", "2"))
        assert first == second == "mega_아메리카노"


class TestStarbucksLinks:
    """스타벅스 상세 링크 테스트."""

    def test_detail_url_round_trip(self):
        """상세 URL을 만들고 다시 ID를 꺼낸다."""
        profile = StarbucksProfile()
        url = profile.detail_url("9200000001")

        assert url == "https://www.starbucks.co.kr/menu/drink_view.do?product_cd=9200000001"
        assert profile.detail_id_from_url(url) == "9200000001"
        assert profile.is_detail_url(url)
        assert not profile.is_detail_url(profile.start_url)

    @pytest.mark.parametrize("href,onclick,html,expected", [
        ("/menu/drink_view.do?product_cd=111", None, "", "111"),
        ("javascript:void(0)", "goDrinkView('[222]')", "", "222"),
        ("#", None, '<img alt="[333]">', "333"),
        ("#", "return false;", "<span>라떼</span>", None),
    ])
    def test_extract_link_id(self, href, onclick, html, expected):
        """href, onclick, innerHTML 순으로 ID를 찾는다."""
        assert StarbucksProfile().extract_link_id(href, onclick, html) == expected

    def test_container_profiles_have_no_detail_pages(self):
        """목록형 프로필은 상세 URL을 만들 수 없다."""
        assert PaikProfile().listing_mode == ListingMode.CONTAINERS
        assert PaikProfile().detail_url("1") is None
        assert not PaikProfile().is_detail_url("https://paikdabang.com/menu/menu_coffee/")


class TestCategoryDiscovery:
    """카테고리 발견 테스트."""

    @pytest.mark.asyncio
    async def test_compose_categories(self):
        """ID 패턴과 맞는 링크만, URL 중복 없이 모은다."""
        profile = ComposeProfile()
        page = load(profile.start_url, {'.dropdown-menu a[href*="/menu/category/"]': [
            link("/menu/category/1", "커피"),
            link("/menu/category/2", "논커피"),
            link("/menu/category/1", "커피"),
            link("/menu/category/new", "신상품"),
        ]})

        categories = await profile.discover_categories(page)

        assert categories == [
            Category("커피", "https://composecoffee.com/menu/category/1", "1"),
            Category("논커피", "https://composecoffee.com/menu/category/2", "2"),
        ]

    @pytest.mark.asyncio
    async def test_paik_skips_new_menu_tab(self):
        """빽다방은 신메뉴 탭을 건너뛴다."""
        profile = PaikProfile()
        page = load(profile.start_url, {"ul.page_tab a": [
            link("/menu/menu_new/", "신메뉴"),
            link("/menu/menu_coffee/", "커피"),
            link("/menu/menu_drink/", "음료"),
        ]})

        categories = await profile.discover_categories(page)

        assert [c.label for c in categories] == ["커피", "음료"]
        assert categories[0].url == "https://paikdabang.com/menu/menu_coffee/"

    @pytest.mark.asyncio
    async def test_mega_checkbox_categories(self):
        """메가커피는 체크박스 값과 옆 라벨로 카테고리를 만든다."""
        profile = MegaProfile()
        page = load(profile.start_url, {'input[name="list_checkbox"]': [
            FakeElement(attrs={"value": "1"}, children={
                "xpath=following-sibling::label[1]": [text("커피")],
            }),
            FakeElement(attrs={"value": ""}),
            FakeElement(attrs={"value": "3"}),
        ]})

        categories = await profile.discover_categories(page)

        assert categories == [
            Category("커피", "https://www.mega-mgccoffee.com/menu/?menu_category1=1", "1"),
            Category("Category 3", "https://www.mega-mgccoffee.com/menu/?menu_category1=3", "3"),
        ]

    @pytest.mark.asyncio
    async def test_no_category_links(self):
        """링크가 없으면 빈 목록."""
        profile = PaikProfile()
        assert await profile.discover_categories(load(profile.start_url, {})) == []
