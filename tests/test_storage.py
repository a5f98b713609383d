"""크롤링 결과 JSON 출력 테스트."""

import json
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from crawler.models import ExtractedProduct
from crawler.storage import JSONOutputWriter, find_latest_output, output_filename

from fakes import FakePage


def fixed_clock():
    return datetime(2025, 3, 14, 9, 30, 0)


def sample_products():
    return [
        ExtractedProduct(
            name="아이스 카페 아메리카노",
            name_en="Iced Caffe Americano",
            description="진한 에스프레소에 시원한 정수물과 얼음을 더한 음료",
            price=4700,
            external_image_url="https://image.istarbucks.co.kr/upload/a.jpg",
            external_category="에스프레소",
            external_id="9200000001",
            external_url="https://www.starbucks.co.kr/menu/drink_view.do?product_cd=9200000001",
        ),
        ExtractedProduct(
            name="자몽 허니 블랙 티",
            price=5700.5,
            external_id="9200000002",
            external_url="https://www.starbucks.co.kr/menu/drink_list.do",
        ),
    ]


class TestOutputFilename:
    """출력 파일 이름 규칙 테스트."""

    def test_output_filename(self):
        """사이트 태그와 날짜로 파일 이름을 만든다."""
        assert output_filename("mega", fixed_clock()) == "mega-products-2025-03-14.json"


class TestJSONOutputWriter:
    """JSON 출력기 테스트."""

    def test_write_creates_dated_file(self):
        """출력 디렉토리를 만들고 날짜별 파일에 쓴다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            output_dir = Path(temp_dir) / "outputs"
            writer = JSONOutputWriter(output_dir, clock=fixed_clock)

            path = writer.write(sample_products(), "starbucks")

            assert path == output_dir / "starbucks-products-2025-03-14.json"
            assert path.exists()
            assert not path.with_suffix(".json.tmp").exists()

    def test_write_uses_camel_case_keys(self):
        """JSON 키는 camelCase이고 null 필드도 그대로 남는다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            path = writer.write(sample_products(), "starbucks")

            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            assert data[0]["nameEn"] == "Iced Caffe Americano"
            assert data[0]["externalId"] == "9200000001"
            assert data[0]["category"] == "Drinks"
            assert data[1]["nameEn"] is None
            assert "아이스 카페 아메리카노" in path.read_text(encoding='utf-8')

    def test_round_trip_keeps_fields(self):
        """저장 후 다시 읽으면 필드가 모두 같다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            products = sample_products()

            loaded = writer.read(writer.write(products, "starbucks"))

            assert loaded == products
            assert isinstance(loaded[0].price, int)
            assert loaded[1].price == 5700.5

    def test_rerun_same_day_overwrites(self):
        """같은 날 다시 쓰면 병합하지 않고 덮어쓴다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            writer.write(sample_products(), "starbucks")
            path = writer.write(sample_products()[:1], "starbucks")

            assert len(writer.read(path)) == 1

    def test_write_empty_list(self):
        """빈 결과도 빈 배열 파일로 남긴다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            path = writer.write([], "paik")

            assert json.loads(path.read_text(encoding='utf-8')) == []

    @pytest.mark.asyncio
    async def test_save_debug_screenshot(self):
        """스크린샷은 screenshots/ 아래에 저장된다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            page = FakePage({})

            path = await writer.save_debug_screenshot(page, "mega-empty")

            assert path == Path(temp_dir) / "screenshots" / "mega-empty-20250314_093000.png"
            assert path.exists()

    @pytest.mark.asyncio
    async def test_save_debug_screenshot_failure_returns_none(self):
        """스크린샷 실패는 None을 반환하고 예외를 올리지 않는다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            writer = JSONOutputWriter(temp_dir, clock=fixed_clock)
            page = AsyncMock()
            page.screenshot.side_effect = RuntimeError("page closed")

            assert await writer.save_debug_screenshot(page, "compose") is None


class TestFindLatestOutput:
    """최근 출력 파일 탐색 테스트."""

    def test_picks_most_recent_file_for_site(self):
        """사이트별로 가장 최근 수정 파일을 고른다."""
        with tempfile.TemporaryDirectory() as temp_dir:
            directory = Path(temp_dir)
            old = directory / "mega-products-2025-03-01.json"
            new = directory / "mega-products-2025-03-02.json"
            other = directory / "paik-products-2025-03-03.json"
            for path in (old, new, other):
                path.write_text("[]", encoding='utf-8')

            now = time.time()
            os.utime(old, (now - 100, now - 100))
            os.utime(new, (now - 50, now - 50))
            os.utime(other, (now, now))

            assert find_latest_output(directory, "mega") == new
            assert find_latest_output(directory) == other

    def test_missing_directory(self):
        """디렉토리가 없으면 None."""
        with tempfile.TemporaryDirectory() as temp_dir:
            assert find_latest_output(Path(temp_dir) / "nope", "mega") is None
