"""제품 이미지 다운로드 및 저장."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from io import BytesIO
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from PIL import Image

import config
from uploader.store import Cafe, ProductStore, now_ms

IMAGE_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'image/webp,image/apng,image/*,*/*;q=0.8',
    'Accept-Language': 'ko-KR,ko;q=0.9,en;q=0.8',
}


class ImageDownloader:
    """
    외부 이미지 URL을 내려받아 저장소에 올리고 제품의 imageStorageId를 채운다.

    submit()으로 넘긴 작업은 스레드 풀에서 실행되며 drain()으로 모두 끝날
    때까지 기다린다. 이미지 실패는 로그만 남기고 업로드 결과에 영향을 주지
    않는다.
    """

    def __init__(
        self,
        store: ProductStore,
        clock: Callable[[], int] = now_ms,
        workers: int = config.IMAGE_WORKERS,
        timeout: int = config.IMAGE_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        이미지 다운로더를 초기화한다.

        Args:
            store: 제품 저장소
            clock: epoch 밀리초 시계
            workers: 동시 다운로드 수
            timeout: 요청 타임아웃(초)
            session: 재사용할 requests 세션
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.clock = clock
        self.timeout = timeout
        self.session = session or requests.Session()
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="image")
        self._futures: List[Future] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> Tuple[bytes, str]:
        """
        이미지를 내려받고 이미지 파일인지 확인한다.

        Args:
            url: 이미지 URL

        Returns:
            (이미지 바이트, MIME 타입)

        Raises:
            requests.exceptions.RequestException: 다운로드 실패
            ValueError: 이미지가 아닌 응답
        """
        parsed = urlparse(url)
        headers = dict(IMAGE_HEADERS, Referer=f"{parsed.scheme}://{parsed.netloc}/")

        response = self.session.get(url, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        data = response.content

        try:
            with Image.open(BytesIO(data)) as image:
                image_format = image.format
                image.verify()
        except Exception as e:
            raise ValueError(f"이미지 파일이 아닙니다: {url} ({str(e)})") from e

        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = Image.MIME.get(image_format, "application/octet-stream")
        return data, content_type

    def download_and_store(self, product_id: str, url: str) -> Optional[str]:
        """
        이미지 하나를 저장하고 제품에 연결한다.

        Args:
            product_id: 제품 ID
            url: 이미지 URL

        Returns:
            이미지 저장소 ID, 실패 시 None
        """
        try:
            data, content_type = self.fetch(url)
            storage_id = self.store.store_image(data, content_type)
            self.store.patch_product(product_id, {"imageStorageId": storage_id, "updatedAt": self.clock()})
            self.logger.debug(f"이미지 저장 완료: {product_id} → {storage_id}")
            return storage_id
        except Exception as e:
            self.logger.warning(f"이미지 저장 실패 ({product_id}, {url}): {str(e)}")
            return None

    def submit(self, product_id: str, url: str) -> Future:
        """이미지 저장 작업을 백그라운드로 예약한다."""
        future = self.executor.submit(self.download_and_store, product_id, url)
        with self._lock:
            self._futures.append(future)
        return future

    def drain(self) -> Dict[str, int]:
        """
        예약된 작업이 모두 끝날 때까지 기다린다.

        Returns:
            {"succeeded": 성공 수, "failed": 실패 수}
        """
        with self._lock:
            futures, self._futures = self._futures, []
        wait(futures)
        succeeded = sum(1 for future in futures if future.result() is not None)
        return {"succeeded": succeeded, "failed": len(futures) - succeeded}

    def bulk_download(self, cafe: Cafe, limit: int = 10) -> Dict[str, int]:
        """
        외부 이미지 URL은 있지만 저장된 이미지가 없는 활성 제품의 이미지를 채운다.

        Args:
            cafe: 대상 카페
            limit: 최대 처리 수

        Returns:
            {"processed", "succeeded", "failed"}
        """
        targets = [
            product for product in self.store.list_products(cafe.id)
            if product.is_active and product.external_image_url and not product.image_storage_id
        ][:limit]
        self.logger.info(f"{cafe.name}: 이미지 {len(targets)}개 다운로드 시작")

        for product in targets:
            self.submit(product.id, product.external_image_url)
        result = self.drain()
        return dict(processed=len(targets), **result)

    def close(self) -> None:
        """스레드 풀과 세션을 정리한다."""
        self.executor.shutdown(wait=True)
        self.session.close()
