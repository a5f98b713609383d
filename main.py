"""카페 메뉴 크롤러의 메인 진입점."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent))

import config
from crawler.base import BrowserSession
from crawler.cafe import CafeMenuCrawler
from crawler.profiles import PROFILES, get_profile
from crawler.storage import JSONOutputWriter
from crawler.utils import setup_logger, set_logger_level

logger = setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """명령행 파서를 만든다."""
    parser = argparse.ArgumentParser(description="카페 메뉴 크롤러")
    parser.add_argument(
        "sites",
        nargs="*",
        help=f"크롤링할 사이트 ({', '.join(PROFILES)}, 생략 시 전체)",
        metavar="SITE",
    )
    parser.add_argument(
        "--output-dir",
        help="출력 디렉토리",
        default=str(config.OUTPUT_DIR)
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="사이트별 전체 실행 시간 제한(초)",
        default=config.RUN_TIMEOUT
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="브라우저 창을 띄워서 실행",
        default=False
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="디버그 로그 출력",
        default=False
    )
    return parser


async def run_sites(sites, output_dir: str, timeout: float, headless: bool):
    """
    사이트들을 순서대로 크롤링한다.

    Returns:
        사이트별 CrawlReport 목록
    """
    writer = JSONOutputWriter(output_dir)
    reports = []
    for site in sites:
        crawler = CafeMenuCrawler(
            get_profile(site),
            writer=writer,
            session_factory=lambda: BrowserSession(headless=headless),
            run_timeout=timeout,
        )
        try:
            reports.append(await crawler.crawl())
        except Exception as e:
            logger.error(f"{site} 크롤링 실패: {str(e)}", exc_info=True)
    return reports


def main(argv=None) -> int:
    """
    크롤러의 메인 함수.

    명령행 인자를 파싱하고 선택한 사이트를 크롤링한다.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    unknown = [site for site in args.sites if site not in PROFILES]
    if unknown:
        parser.error(f"지원하지 않는 사이트: {', '.join(unknown)}")
    if args.verbose:
        os.environ["LOG_LEVEL"] = "DEBUG"
        set_logger_level(logger, logging.DEBUG)

    sites = args.sites or list(PROFILES)
    logger.info(f"크롤링 대상: {', '.join(sites)}")

    reports = asyncio.run(run_sites(sites, args.output_dir, args.timeout, not args.headful))

    failed = [site for site in sites if site not in {report.site_tag for report in reports}]
    for report in reports:
        status = "부분 완료" if report.partial else "완료"
        logger.info(
            f"{report.site_tag}: {status} - {report.count}개 제품, "
            f"{report.pages_visited}페이지, 결과 파일 {report.output_path}"
        )
    if failed:
        logger.error(f"실패한 사이트: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
