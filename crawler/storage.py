"""크롤링 결과 JSON 출력."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import config
from .models import ExtractedProduct
from .utils import setup_logger

OUTPUT_SUFFIX = "-products-"


def output_filename(site_tag: str, day: datetime) -> str:
    """
    출력 파일 이름을 만든다.

    Args:
        site_tag: 사이트 태그
        day: 크롤링 날짜

    Returns:
        "{site}-products-{YYYY-MM-DD}.json"
    """
    return f"{site_tag}{OUTPUT_SUFFIX}{day.strftime('%Y-%m-%d')}.json"


def find_latest_output(output_dir: Union[str, Path], site_tag: Optional[str] = None) -> Optional[Path]:
    """
    가장 최근에 수정된 출력 파일을 찾는다.

    Args:
        output_dir: 출력 디렉토리
        site_tag: 지정하면 해당 사이트 파일만 대상

    Returns:
        파일 경로 또는 None
    """
    directory = Path(output_dir)
    if not directory.is_dir():
        return None

    pattern = f"{site_tag}{OUTPUT_SUFFIX}*.json" if site_tag else "*.json"
    candidates = [path for path in directory.glob(pattern) if path.is_file()]
    if not candidates:
        return None
    return max(candidates, key=lambda path: path.stat().st_mtime)


class JSONOutputWriter:
    """
    사이트별 하루 한 개의 JSON 파일로 크롤링 결과를 저장한다.

    같은 날 다시 실행하면 기존 파일을 병합하지 않고 덮어쓴다.
    """

    def __init__(
        self,
        output_dir: Union[str, Path] = config.OUTPUT_DIR,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        출력기를 초기화한다.

        Args:
            output_dir: 출력 디렉토리 (없으면 생성)
            clock: 파일명 날짜를 정하는 시계
        """
        self.output_dir = Path(output_dir)
        self.clock = clock
        self.logger = setup_logger(self.__class__.__name__)

    def output_path(self, site_tag: str) -> Path:
        """오늘 날짜의 출력 파일 경로를 반환한다."""
        return self.output_dir / output_filename(site_tag, self.clock())

    def write(self, products: Iterable[ExtractedProduct], site_tag: str) -> Path:
        """
        레코드 목록을 JSON 배열로 저장한다.

        Args:
            products: 저장할 레코드 (순서 유지)
            site_tag: 사이트 태그

        Returns:
            저장된 파일 경로
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_path(site_tag)
        payload = [product.to_dict() for product in products]

        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            self.logger.error(f"JSON 저장 실패 ({path}): {str(e)}")
            raise

        self.logger.info(f"JSON 저장 완료: {len(payload)}개 항목 → {path}")
        return path

    def read(self, path: Union[str, Path]) -> List[ExtractedProduct]:
        """저장한 파일을 레코드 목록으로 다시 읽는다."""
        with open(path, 'r', encoding='utf-8') as f:
            return [ExtractedProduct.from_dict(item) for item in json.load(f)]

    async def save_debug_screenshot(self, page, name: str) -> Optional[Path]:
        """
        디버깅용 전체 페이지 스크린샷을 저장한다.

        Args:
            page: 스크린샷을 찍을 페이지
            name: 파일 이름 접두사

        Returns:
            저장된 파일 경로, 실패 시 None
        """
        screenshot_dir = self.output_dir / "screenshots"
        screenshot_dir.mkdir(parents=True, exist_ok=True)
        path = screenshot_dir / f"{name}-{self.clock().strftime('%Y%m%d_%H%M%S')}.png"
        try:
            await page.screenshot(path=str(path), full_page=True)
            self.logger.info(f"디버그 스크린샷 저장: {path}")
            return path
        except Exception as e:
            self.logger.warning(f"스크린샷 저장 실패: {str(e)}")
            return None
