"""크롤링 배치를 원격 제품 저장소와 맞추는 업로드 조정기."""

import copy
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union

from filelock import FileLock
from tqdm import tqdm

import config
from crawler.models import MUTABLE_FIELDS, ExtractedProduct
from uploader.categorizer import ProductCategorizer
from uploader.errors import CafeNotFoundError, StoreConfigError
from uploader.image_store import ImageDownloader
from uploader.store import Cafe, ProductStore, StoredProduct, now_ms

BatchRecord = Union[Dict[str, Any], ExtractedProduct]


@dataclass
class UploadResult:
    """업로드 한 번의 집계 결과."""
    cafe_slug: str = ""
    dry_run: bool = False
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    removed: int = 0
    reactivated: int = 0
    errors: List[str] = field(default_factory=list)
    processing_time_ms: int = 0
    removed_products: List[str] = field(default_factory=list)
    reactivated_products: List[str] = field(default_factory=list)
    samples: List[Dict[str, Any]] = field(default_factory=list)
    images_requested: int = 0
    images_stored: int = 0
    message: str = ""

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """JSON 출력용 딕셔너리로 변환한다."""
        data = {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "removed": self.removed,
            "reactivated": self.reactivated,
            "errors": list(self.errors),
            "processingTime": self.processing_time_ms,
            "removedProducts": list(self.removed_products),
            "reactivatedProducts": list(self.reactivated_products),
            "message": self.message,
        }
        if self.dry_run:
            data["samples"] = list(self.samples)
        if self.images_requested:
            data["images"] = {"requested": self.images_requested, "stored": self.images_stored}
        return data


class UploadReconciler:
    """
    크롤링 결과 배치를 카페의 저장된 제품 목록과 비교해 반영한다.

    워크플로:
    1. slug로 카페 조회 (필요하면 생성)
    2. 저장된 제품을 externalId 기준으로 색인
    3. 레코드별 검증 → created/updated/unchanged 판정 → 반영
    4. 배치에 없는 활성 제품은 비활성화, 배치에 다시 나타난 비활성 제품은 재활성화
    5. (옵션) 이미지 다운로드 완료 대기

    dry run은 같은 판정을 저장소 복사본에 대해 수행하고 아무것도 쓰지 않는다.
    실제 업로드는 카페별 파일 잠금으로 직렬화된다.
    """

    def __init__(
        self,
        store: ProductStore,
        clock: Callable[[], int] = now_ms,
        image_downloader: Optional[ImageDownloader] = None,
        categorizer: Optional[ProductCategorizer] = None,
        locks_dir: Union[str, Path] = config.LOCKS_DIR,
        lock_timeout: float = config.LOCK_TIMEOUT,
        sample_size: int = config.SAMPLE_SIZE,
        verbose: bool = False
    ):
        """
        업로드 조정기를 초기화한다.

        Args:
            store: 제품 저장소
            clock: epoch 밀리초 시계
            image_downloader: 이미지 다운로더 (없으면 필요할 때 생성)
            categorizer: 업로드 시 적용할 카테고리 분류기
            locks_dir: 카페별 잠금 파일 디렉토리
            lock_timeout: 잠금 대기 시간(초)
            sample_size: dry run 결과에 포함할 샘플 수
            verbose: 진행률 표시 여부
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.clock = clock
        self.image_downloader = image_downloader
        self.categorizer = categorizer
        self.locks_dir = Path(locks_dir)
        self.lock_timeout = lock_timeout
        self.sample_size = sample_size
        self.verbose = verbose

    def reconcile(
        self,
        batch: List[BatchRecord],
        cafe_slug: str,
        dry_run: bool = False,
        download_images: bool = False,
        cafe_name: Optional[str] = None,
        create_cafe: bool = False
    ) -> UploadResult:
        """
        배치를 카페 제품 목록에 반영한다.

        Args:
            batch: 레코드 목록 (딕셔너리 또는 ExtractedProduct)
            cafe_slug: 카페 slug
            dry_run: True이면 저장소를 수정하지 않고 예상 결과만 반환한다
            download_images: 생성/수정된 제품의 이미지를 내려받는다
            cafe_name: 카페를 새로 만들 때 사용할 이름
            create_cafe: 카페가 없으면 생성한다

        Returns:
            UploadResult

        Raises:
            CafeNotFoundError: 카페가 없고 create_cafe가 False인 경우
            StoreConfigError: 저장소 배포에 필요한 함수가 없는 경우
            filelock.Timeout: 같은 카페의 다른 업로드가 끝나지 않은 경우
        """
        if dry_run:
            return self._reconcile(batch, cafe_slug, True, False, cafe_name, create_cafe)

        self.locks_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.locks_dir / f"{cafe_slug}.lock"
        self.logger.debug(f"잠금 획득 대기: {lock_path}")
        with FileLock(str(lock_path), timeout=self.lock_timeout):
            return self._reconcile(batch, cafe_slug, False, download_images, cafe_name, create_cafe)

    def _reconcile(
        self,
        batch: List[BatchRecord],
        cafe_slug: str,
        dry_run: bool,
        download_images: bool,
        cafe_name: Optional[str],
        create_cafe: bool
    ) -> UploadResult:
        started = time.monotonic()
        result = UploadResult(cafe_slug=cafe_slug, dry_run=dry_run)

        # 1. 카페 조회
        cafe = self._resolve_cafe(cafe_slug, cafe_name, create_cafe, dry_run)

        # 2. 저장된 제품 색인
        existing = self.store.list_products(cafe.id) if cafe.id else []
        index: Dict[str, StoredProduct] = {product.external_id: product for product in existing}
        if dry_run:
            index = copy.deepcopy(index)
        self.logger.info(f"{cafe.name}: 저장된 제품 {len(index)}개, 배치 {len(batch)}개")

        downloader = None
        if download_images:
            downloader = self.image_downloader or ImageDownloader(self.store, clock=self.clock)

        # 3. 레코드별 반영
        seen_ids: Set[str] = set()
        records = tqdm(batch, desc=f"{cafe_slug} 업로드", disable=not self.verbose)
        for position, raw in enumerate(records, 1):
            result.processed += 1
            raw_id = self._raw_external_id(raw)
            if raw_id:
                seen_ids.add(raw_id)

            try:
                record = copy.copy(raw) if isinstance(raw, ExtractedProduct) else ExtractedProduct.from_dict(raw)
            except ValueError as e:
                result.errors.append(f"레코드 {position}: {str(e)}")
                self.logger.warning(f"레코드 {position} 검증 실패: {str(e)}")
                continue

            if self.categorizer:
                record.category = self.categorizer.categorize(record.external_category, record.name).category

            try:
                self._upsert(cafe, record, index, result, dry_run, downloader)
            except StoreConfigError:
                raise
            except Exception as e:
                result.errors.append(f"{record.name} ({record.external_id}): {str(e)}")
                self.logger.error(f"제품 저장 실패 ({record.external_id}): {str(e)}")

        # 4. 비활성화 / 재활성화
        self._sync_active_flags(index, seen_ids, result, dry_run)

        # 5. 이미지 완료 대기
        if downloader is not None:
            outcome = downloader.drain()
            result.images_stored = outcome["succeeded"]
            if downloader is not self.image_downloader:
                downloader.close()

        if dry_run:
            result.samples = [self._sample(raw) for raw in batch[:self.sample_size]]

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        result.message = self._build_message(cafe, result)
        self._log_report(result)
        return result

    def _resolve_cafe(self, cafe_slug: str, cafe_name: Optional[str], create_cafe: bool, dry_run: bool) -> Cafe:
        cafe = self.store.get_cafe_by_slug(cafe_slug)
        if cafe is not None:
            return cafe
        if not create_cafe:
            raise CafeNotFoundError(cafe_slug)

        name = cafe_name or config.CAFES.get(cafe_slug, cafe_slug)
        if dry_run:
            self.logger.info(f"[DRY RUN] 카페 생성 예정: {name} ({cafe_slug})")
            return Cafe(id="", name=name, slug=cafe_slug)

        cafe = self.store.create_cafe(name, cafe_slug)
        self.logger.info(f"카페 생성: {cafe.name} ({cafe.slug})")
        return cafe

    def _upsert(
        self,
        cafe: Cafe,
        record: ExtractedProduct,
        index: Dict[str, StoredProduct],
        result: UploadResult,
        dry_run: bool,
        downloader: Optional[ImageDownloader]
    ) -> None:
        now = self.clock()
        fields = record.to_dict()
        stored = index.get(record.external_id)

        if stored is None:
            document = dict(fields, isActive=True, addedAt=now, updatedAt=now)
            if dry_run:
                product_id = f"dry-run-{len(index) + 1}"
            else:
                product_id = self.store.insert_product(cafe.id, document)
            index[record.external_id] = StoredProduct.from_dict(dict(document, _id=product_id, cafeId=cafe.id))
            result.created += 1
            self.logger.debug(f"생성: {record.name} ({record.external_id})")

            if downloader is not None and record.external_image_url:
                downloader.submit(product_id, record.external_image_url)
                result.images_requested += 1
            return

        patch = {key: fields[key] for key in MUTABLE_FIELDS if stored.get(key) != fields[key]}
        if not patch:
            result.unchanged += 1
            return

        image_changed = "externalImageUrl" in patch
        if image_changed:
            patch["imageStorageId"] = None
        patch["updatedAt"] = now

        if not dry_run:
            self.store.patch_product(stored.id, patch)
        stored.apply(patch)
        result.updated += 1
        self.logger.debug(f"수정: {record.name} ({record.external_id}) {sorted(patch)}")

        if downloader is not None and image_changed and record.external_image_url:
            downloader.submit(stored.id, record.external_image_url)
            result.images_requested += 1

    def _sync_active_flags(
        self,
        index: Dict[str, StoredProduct],
        seen_ids: Set[str],
        result: UploadResult,
        dry_run: bool
    ) -> None:
        now = self.clock()
        for product in index.values():
            if product.is_active and product.external_id not in seen_ids:
                patch = {"isActive": False, "removedAt": now}
                names, counter = result.removed_products, "removed"
            elif not product.is_active and product.external_id in seen_ids:
                patch = {"isActive": True, "removedAt": None, "updatedAt": now}
                names, counter = result.reactivated_products, "reactivated"
            else:
                continue

            try:
                if not dry_run:
                    self.store.patch_product(product.id, patch)
                product.apply(patch)
            except StoreConfigError:
                raise
            except Exception as e:
                result.errors.append(f"{product.name} ({product.external_id}): {str(e)}")
                self.logger.error(f"상태 변경 실패 ({product.external_id}): {str(e)}")
                continue

            setattr(result, counter, getattr(result, counter) + 1)
            names.append(product.name)

    @staticmethod
    def _raw_external_id(raw: BatchRecord) -> Optional[str]:
        if isinstance(raw, ExtractedProduct):
            return raw.external_id
        if isinstance(raw, dict) and raw.get("externalId") is not None:
            return str(raw["externalId"]).strip() or None
        return None

    @staticmethod
    def _sample(raw: BatchRecord) -> Dict[str, Any]:
        return raw.to_dict() if isinstance(raw, ExtractedProduct) else raw

    def _build_message(self, cafe: Cafe, result: UploadResult) -> str:
        prefix = "[DRY RUN] " if result.dry_run else ""
        message = (
            f"{prefix}{cafe.name}: {result.processed}개 처리, "
            f"{result.created}개 생성, {result.updated}개 수정, {result.unchanged}개 변경 없음, "
            f"{result.removed}개 비활성화, {result.reactivated}개 재활성화"
        )
        if result.errors:
            message += f", 오류 {len(result.errors)}개"
        return message

    def _log_report(self, result: UploadResult) -> None:
        self.logger.info(result.message)
        if result.removed_products:
            self.logger.info(f"비활성화된 제품: {', '.join(result.removed_products)}")
        if result.reactivated_products:
            self.logger.info(f"재활성화된 제품: {', '.join(result.reactivated_products)}")
        for error in result.errors:
            self.logger.warning(f"오류: {error}")
