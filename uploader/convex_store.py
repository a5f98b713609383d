"""Convex HTTP API 기반 제품 저장소."""

import logging
from typing import Any, Dict, List, Optional

import requests

import config
from uploader.errors import StoreConfigError, StoreRequestError
from uploader.store import Cafe, ProductStore, StoredProduct

# 저장소 연산별 Convex 함수 경로
CONVEX_FUNCTIONS = {
    "get_cafe": "cafes:getBySlug",
    "create_cafe": "cafes:create",
    "list_products": "products:getByCafe",
    "insert_product": "products:insertProduct",
    "patch_product": "products:patchProduct",
    "upload_url": "storage:generateUploadUrl",
}

MISSING_FUNCTION_MESSAGE = "Could not find public function"


class ConvexProductStore(ProductStore):
    """
    Convex 배포의 HTTP API로 카페/제품 데이터를 읽고 쓴다.

    배포에 CONVEX_FUNCTIONS의 함수가 모두 공개되어 있어야 한다.
    cafes:getBySlug와 products:getByCafe 외에는 이 클라이언트를 위해
    배포에 추가해야 하는 함수이며, 없는 함수를 호출하면 StoreConfigError로
    실행을 중단한다.
    """

    def __init__(self, url: str, timeout: int = config.REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        """
        Convex 저장소를 초기화한다.

        Args:
            url: Convex 배포 URL (예: https://happy-animal-123.convex.cloud)
            timeout: 요청 타임아웃(초)
            session: 재사용할 requests 세션
        """
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, kind: str, path: str, args: Dict[str, Any]) -> Any:
        """
        Convex 함수를 호출하고 결과 값을 반환한다.

        Args:
            kind: "query" 또는 "mutation"
            path: 함수 경로 (예: "cafes:getBySlug")
            args: 함수 인자

        Returns:
            함수 반환값

        Raises:
            StoreConfigError: 배포에 함수가 없는 경우
            StoreRequestError: 전송 실패 또는 함수 오류
        """
        try:
            response = self.session.post(
                f"{self.url}/api/{kind}",
                json={"path": path, "args": args, "format": "json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as e:
            detail = e.response.text if e.response is not None else ""
            if MISSING_FUNCTION_MESSAGE in detail:
                raise StoreConfigError(f"Convex 배포에 {path} 함수가 없습니다: {detail}") from e
            raise StoreRequestError(f"Convex {kind} 요청 실패 ({path}): {str(e)}") from e
        except requests.exceptions.RequestException as e:
            raise StoreRequestError(f"Convex {kind} 요청 실패 ({path}): {str(e)}") from e
        except ValueError as e:
            raise StoreRequestError(f"Convex 응답 파싱 실패 ({path}): {str(e)}") from e

        if body.get("status") != "success":
            message = str(body.get("errorMessage", body))
            if MISSING_FUNCTION_MESSAGE in message:
                raise StoreConfigError(f"Convex 배포에 {path} 함수가 없습니다: {message}")
            raise StoreRequestError(f"Convex 함수 오류 ({path}): {message}")
        return body.get("value")

    def get_cafe_by_slug(self, slug: str) -> Optional[Cafe]:
        value = self._call("query", CONVEX_FUNCTIONS["get_cafe"], {"slug": slug})
        return Cafe.from_dict(value) if value else None

    def create_cafe(self, name: str, slug: str) -> Cafe:
        cafe_id = self._call("mutation", CONVEX_FUNCTIONS["create_cafe"], {"name": name, "slug": slug})
        self.logger.info(f"카페 생성: {name} ({slug})")
        return Cafe(id=str(cafe_id), name=name, slug=slug)

    def list_products(self, cafe_id: str) -> List[StoredProduct]:
        values = self._call("query", CONVEX_FUNCTIONS["list_products"], {"cafeId": cafe_id}) or []
        return [StoredProduct.from_dict(value) for value in values]

    def insert_product(self, cafe_id: str, fields: Dict[str, Any]) -> str:
        # Convex 선택 필드는 null을 허용하지 않는다
        args = {key: value for key, value in fields.items() if value is not None}
        args["cafeId"] = cafe_id
        return str(self._call("mutation", CONVEX_FUNCTIONS["insert_product"], args))

    def patch_product(self, product_id: str, patch: Dict[str, Any]) -> None:
        self._call("mutation", CONVEX_FUNCTIONS["patch_product"], {"id": product_id, "patch": patch})

    def store_image(self, data: bytes, content_type: str) -> str:
        upload_url = self._call("mutation", CONVEX_FUNCTIONS["upload_url"], {})
        try:
            response = self.session.post(
                upload_url,
                data=data,
                headers={"Content-Type": content_type},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return str(response.json()["storageId"])
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            raise StoreRequestError(f"이미지 업로드 실패: {str(e)}") from e

    def close(self) -> None:
        self.session.close()
