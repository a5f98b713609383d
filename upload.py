"""크롤링 결과를 원격 제품 저장소에 올리는 업로드 CLI.

사용법:
    python upload.py --cafe-slug starbucks
    python upload.py upload --file crawler-outputs/starbucks-products-2025-01-01.json --dry-run
    python upload.py stats --cafe-slug mega --days 14
    python upload.py categorize --cafe-slug paik --confidence high --dry-run
    python upload.py images --cafe-slug compose --limit 20
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

sys.path.append(str(Path(__file__).parent))

from filelock import Timeout

import config
from crawler.storage import OUTPUT_SUFFIX
from uploader.batch_loader import load_batch, resolve_input_file
from uploader.categorizer import CONFIDENCE_LEVELS, ProductCategorizer, recategorize_cafe
from uploader.errors import CafeNotFoundError, InputFileError, UploadError
from uploader.image_store import ImageDownloader
from uploader.reconciler import UploadReconciler, UploadResult
from uploader.stats import compute_upload_stats
from uploader.store import Cafe, ProductStore, create_product_store, now_ms

COMMANDS = ("upload", "stats", "categorize", "images")

logger = logging.getLogger("upload")


def build_parser() -> argparse.ArgumentParser:
    """명령행 파서를 만든다."""
    parser = argparse.ArgumentParser(description="카페 메뉴 업로더")
    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default="upload",
        help="실행할 작업 (기본값: upload)"
    )
    parser.add_argument("--file", help="업로드할 JSON 파일 (생략 시 가장 최근 파일)")
    parser.add_argument("--cafe-slug", help="카페 slug (예: starbucks)")
    parser.add_argument("--cafe-name", help="카페를 새로 만들 때 사용할 이름")
    parser.add_argument("--output-dir", default=str(config.OUTPUT_DIR), help="크롤링 출력 디렉토리")
    parser.add_argument("--dry-run", action="store_true", help="저장소를 수정하지 않고 결과만 확인")
    parser.add_argument("--create-cafe", action="store_true", help="카페가 없으면 생성")
    parser.add_argument("--download-images", action="store_true", help="생성/수정된 제품의 이미지 다운로드")
    parser.add_argument("--categorize", action="store_true", help="업로드 시 카테고리 자동 분류 적용")
    parser.add_argument("--days", type=int, default=7, help="stats: 집계 기간(일)")
    parser.add_argument(
        "--confidence",
        choices=("all",) + CONFIDENCE_LEVELS,
        default="all",
        help="categorize: 처리할 신뢰도"
    )
    parser.add_argument("--limit", type=int, help="categorize/images: 최대 처리 수")
    parser.add_argument("--force", action="store_true", help="categorize: 같은 카테고리도 다시 기록")
    parser.add_argument("-v", "--verbose", action="store_true", help="디버그 로그 출력")
    return parser


def configure_logging(verbose: bool = False) -> None:
    """콘솔과 logs/ 파일에 로그를 남기도록 루트 로거를 설정한다."""
    config.LOGS_DIR.mkdir(exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    file_handler = logging.FileHandler(config.LOGS_DIR / f"upload_{timestamp}.log", encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    formatter = logging.Formatter(config.LOG_FORMAT)
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        handlers=[file_handler, console_handler],
        force=True
    )


def open_store() -> ProductStore:
    """환경변수의 저장소 URL로 저장소를 연다."""
    return create_product_store(config.get_store_url())


def slug_from_path(path: Path) -> Optional[str]:
    """'{slug}-products-YYYY-MM-DD.json' 파일명에서 slug를 추출한다."""
    name = path.name
    if OUTPUT_SUFFIX in name:
        return name.split(OUTPUT_SUFFIX, 1)[0] or None
    return None


def require_cafe(store: ProductStore, slug: str) -> Cafe:
    cafe = store.get_cafe_by_slug(slug)
    if cafe is None:
        raise CafeNotFoundError(slug)
    return cafe


def print_upload_summary(result: UploadResult) -> None:
    """업로드 결과를 사람이 읽을 수 있는 형태로 출력한다."""
    title = "업로드 결과 (DRY RUN)" if result.dry_run else "업로드 결과"
    print(f"\n📊 {title}")
    print("=" * 60)
    print(f"처리: {result.processed}")
    print(f"생성: {result.created}")
    print(f"수정: {result.updated}")
    print(f"변경 없음: {result.unchanged}")
    print(f"비활성화: {result.removed}")
    print(f"재활성화: {result.reactivated}")
    print(f"오류: {len(result.errors)}")
    print(f"처리 시간: {result.processing_time_ms}ms")
    if result.images_requested:
        print(f"이미지: {result.images_stored}/{result.images_requested}개 저장")

    if result.removed_products:
        print(f"\n비활성화된 제품: {', '.join(result.removed_products)}")
    if result.reactivated_products:
        print(f"재활성화된 제품: {', '.join(result.reactivated_products)}")
    if result.errors:
        print("\n❌ 오류 목록:")
        for error in result.errors:
            print(f"  - {error}")
    if result.dry_run and result.samples:
        print("\n샘플 레코드:")
        print(json.dumps(result.samples, ensure_ascii=False, indent=2))


def run_upload(args, store: ProductStore) -> int:
    path = resolve_input_file(args.file, args.cafe_slug, args.output_dir)
    slug = args.cafe_slug or slug_from_path(path)
    if not slug:
        raise InputFileError(f"파일 이름에서 카페 slug를 알 수 없습니다: {path.name} (--cafe-slug 필요)")

    batch = load_batch(path)
    reconciler = UploadReconciler(
        store,
        categorizer=ProductCategorizer() if args.categorize else None,
        verbose=args.verbose,
    )
    result = reconciler.reconcile(
        batch,
        slug,
        dry_run=args.dry_run,
        download_images=args.download_images,
        cafe_name=args.cafe_name,
        create_cafe=args.create_cafe,
    )
    print_upload_summary(result)
    return 1 if result.has_errors else 0


def run_stats(args, store: ProductStore) -> int:
    cafe = require_cafe(store, args.cafe_slug)
    stats = compute_upload_stats(store.list_products(cafe.id), now_ms(), days_back=args.days)

    print(f"\n📊 {cafe.name} 통계 (최근 {args.days}일)")
    print("=" * 60)
    print(f"전체: {stats['total']} (활성 {stats['active']}, 비활성 {stats['inactive']})")
    print(f"최근 추가: {stats['recentlyAdded']}")
    print(f"최근 수정: {stats['recentlyUpdated']}")
    print(f"카테고리 수: {stats['categories']}")
    print(f"이미지 있음: {stats['withImages']}")
    print(f"가격 있음: {stats['withPrices']}")
    for category, count in stats["byCategory"].items():
        print(f"  - {category}: {count}")
    return 0


def run_categorize(args, store: ProductStore) -> int:
    cafe = require_cafe(store, args.cafe_slug)
    stats = recategorize_cafe(
        store,
        cafe,
        dry_run=args.dry_run,
        confidence=args.confidence,
        limit=args.limit,
        force=args.force,
    )

    title = "카테고리 분류 결과 (DRY RUN)" if args.dry_run else "카테고리 분류 결과"
    print(f"\n🏷️  {cafe.name} {title}")
    print("=" * 60)
    print(f"처리: {stats.processed}, 변경: {stats.updated}, 변경 없음: {stats.unchanged}, "
          f"건너뜀: {stats.skipped}, 오류: {stats.errors}")
    print(f"신뢰도: {stats.confidence_breakdown}")
    print(f"출처: {stats.source_breakdown}")
    return 1 if stats.errors else 0


def run_images(args, store: ProductStore) -> int:
    cafe = require_cafe(store, args.cafe_slug)
    downloader = ImageDownloader(store)
    try:
        result = downloader.bulk_download(cafe, limit=args.limit or 10)
    finally:
        downloader.close()

    print(f"\n🖼️  {cafe.name} 이미지 다운로드")
    print("=" * 60)
    print(f"대상: {result['processed']}, 성공: {result['succeeded']}, 실패: {result['failed']}")
    return 0


HANDLERS = {
    "upload": run_upload,
    "stats": run_stats,
    "categorize": run_categorize,
    "images": run_images,
}


def main(argv=None) -> int:
    """
    업로더의 메인 함수.

    Returns:
        종료 코드 (0: 성공, 1: 레코드 오류 또는 치명적 오류)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "upload" and not args.cafe_slug:
        parser.error(f"{args.command} 작업에는 --cafe-slug가 필요합니다")
    configure_logging(args.verbose)

    try:
        store = open_store()
    except UploadError as e:
        logger.error(str(e))
        return 1

    try:
        return HANDLERS[args.command](args, store)
    except Timeout as e:
        logger.error(f"다른 업로드가 진행 중입니다: {e.lock_file}")
        return 1
    except UploadError as e:
        logger.error(str(e))
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
