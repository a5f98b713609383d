"""카페 크롤링 실행기 통합 테스트."""

import json
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from crawler.cafe import CafeMenuCrawler, category_summary
from crawler.models import ExtractedProduct
from crawler.profiles import PaikProfile
from crawler.storage import JSONOutputWriter

from fakes import FakeElement, FakeSession, link, text


def fixed_clock():
    return datetime(2025, 3, 14, 9, 30, 0)


def paik_site(profile):
    coffee = "https://paikdabang.com/menu/menu_coffee/"
    return {
        profile.start_url: {"ul.page_tab a": [link("/menu/menu_new/", "신메뉴"), link(coffee, "커피")]},
        coffee: {".menu_list > ul > li": [
            FakeElement(children={"p.menu_tit": [text("원조커피")], "p.txt": [text("대표 메뉴")]}),
            FakeElement(children={"p.menu_tit": [text("앗!메리카노")]}),
        ]},
    }


class TestCafeMenuCrawler:
    """CafeMenuCrawler 테스트."""

    @pytest.mark.asyncio
    async def test_crawl_writes_json(self):
        """크롤링 결과를 날짜별 JSON 파일로 저장한다."""
        profile = PaikProfile()
        with tempfile.TemporaryDirectory() as temp_dir:
            sessions = []

            def factory():
                session = FakeSession(paik_site(profile))
                sessions.append(session)
                return session

            crawler = CafeMenuCrawler(
                profile,
                writer=JSONOutputWriter(temp_dir, clock=fixed_clock),
                session_factory=factory,
                clock=fixed_clock,
            )

            report = await crawler.crawl()

            assert report.count == 2
            assert report.partial is False
            assert report.validation["summary"]["valid_products"] == 2
            assert report.output_path == Path(temp_dir) / "paik-products-2025-03-14.json"
            assert sessions[0].closed

            data = json.loads(report.output_path.read_text(encoding='utf-8'))
            assert [item["name"] for item in data] == ["원조커피", "앗!메리카노"]
            assert data[0]["externalId"] == "paik_커피_원조커피"
            assert data[0]["externalCategory"] == "커피"

    @pytest.mark.asyncio
    async def test_timeout_saves_partial_result(self):
        """실행 시간 제한을 넘기면 부분 결과를 저장하고 스크린샷을 남긴다."""
        profile = PaikProfile()
        with tempfile.TemporaryDirectory() as temp_dir:
            session = FakeSession(paik_site(profile), settle_delay=5)
            crawler = CafeMenuCrawler(
                profile,
                writer=JSONOutputWriter(temp_dir, clock=fixed_clock),
                session_factory=lambda: session,
                run_timeout=0.05,
                clock=fixed_clock,
            )

            report = await crawler.crawl()

            assert report.partial is True
            assert report.count == 0
            assert json.loads(report.output_path.read_text(encoding='utf-8')) == []
            assert report.screenshot_path is not None
            assert report.screenshot_path.exists()
            assert session.closed

    @pytest.mark.asyncio
    async def test_empty_result_takes_screenshot(self):
        """추출 결과가 없으면 마지막 페이지 스크린샷을 남긴다."""
        profile = PaikProfile()
        with tempfile.TemporaryDirectory() as temp_dir:
            crawler = CafeMenuCrawler(
                profile,
                writer=JSONOutputWriter(temp_dir, clock=fixed_clock),
                session_factory=lambda: FakeSession({profile.start_url: {}}),
                clock=fixed_clock,
            )

            report = await crawler.crawl()

            assert report.count == 0
            assert report.screenshot_path.name == "paik-empty-20250314_093000.png"


class TestCategorySummary:
    """카테고리 집계 테스트."""

    def test_counts_by_external_category(self):
        """외부 카테고리별 개수를 내림차순으로 센다."""
        products = [
            ExtractedProduct(name="a", external_id="1", external_url="u", external_category="커피"),
            ExtractedProduct(name="b", external_id="2", external_url="u", external_category="커피"),
            ExtractedProduct(name="c", external_id="3", external_url="u"),
        ]

        assert category_summary(products) == {"커피": 2, "미분류": 1}
        assert category_summary([]) == {}
