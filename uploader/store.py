"""원격 제품 저장소 인터페이스와 메모리 구현."""

import copy
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from crawler.models import FIELD_KEYS
from uploader.errors import StoreConfigError


def now_ms() -> int:
    """현재 시각을 epoch 밀리초로 반환한다."""
    return int(time.time() * 1000)


# 저장소 필드 (camelCase) -> 속성 이름
STORED_KEYS = dict(
    FIELD_KEYS,
    imageStorageId="image_storage_id",
    isActive="is_active",
    addedAt="added_at",
    updatedAt="updated_at",
    removedAt="removed_at",
)


@dataclass
class Cafe:
    """카페 (브랜드)."""
    id: str
    name: str
    slug: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cafe":
        return cls(id=str(data.get("_id") or data.get("id")), name=data.get("name", ""), slug=data.get("slug", ""))


@dataclass
class StoredProduct:
    """
    원격 저장소에 저장된 제품.

    시각 값은 모두 epoch 밀리초이다.
    """
    id: str
    cafe_id: str
    name: str
    external_id: str
    external_url: str = ""
    category: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Union[int, float]] = None
    external_image_url: Optional[str] = None
    external_category: Optional[str] = None
    image_storage_id: Optional[str] = None
    is_active: bool = True
    added_at: int = 0
    updated_at: int = 0
    removed_at: Optional[int] = None

    def get(self, key: str) -> Any:
        """camelCase 필드 값을 반환한다."""
        return getattr(self, STORED_KEYS[key])

    def apply(self, patch: Dict[str, Any]) -> None:
        """camelCase 패치를 적용한다."""
        for key, value in patch.items():
            setattr(self, STORED_KEYS[key], value)

    def to_dict(self) -> Dict[str, Any]:
        data = {"_id": self.id, "cafeId": self.cafe_id}
        data.update({key: getattr(self, attr) for key, attr in STORED_KEYS.items()})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredProduct":
        """
        저장소 문서에서 제품을 만든다. 없는 선택 필드는 None이 된다.

        Args:
            data: camelCase 키를 가진 문서

        Returns:
            StoredProduct 인스턴스
        """
        values = {attr: data.get(key) for key, attr in STORED_KEYS.items()}
        values["external_url"] = values["external_url"] or ""
        values["is_active"] = bool(data.get("isActive", True))
        values["added_at"] = int(data.get("addedAt") or 0)
        values["updated_at"] = int(data.get("updatedAt") or 0)
        return cls(
            id=str(data.get("_id") or data.get("id")),
            cafe_id=str(data.get("cafeId")),
            **values
        )


class ProductStore(ABC):
    """
    제품 저장소의 추상 베이스 클래스.

    업로드 조정기가 사용하는 최소 기능(카페 조회/생성, 제품 조회/추가/수정,
    이미지 저장)만 정의한다.
    """

    @abstractmethod
    def get_cafe_by_slug(self, slug: str) -> Optional[Cafe]:
        """slug로 카페를 조회한다. 없으면 None."""

    @abstractmethod
    def create_cafe(self, name: str, slug: str) -> Cafe:
        """카페를 생성한다."""

    @abstractmethod
    def list_products(self, cafe_id: str) -> List[StoredProduct]:
        """카페의 모든 제품(비활성 포함)을 조회한다."""

    @abstractmethod
    def insert_product(self, cafe_id: str, fields: Dict[str, Any]) -> str:
        """
        제품을 추가한다.

        Args:
            cafe_id: 카페 ID
            fields: camelCase 필드 (isActive, addedAt, updatedAt 포함)

        Returns:
            생성된 제품 ID
        """

    @abstractmethod
    def patch_product(self, product_id: str, patch: Dict[str, Any]) -> None:
        """
        제품 일부 필드를 수정한다. 값이 None이면 해당 필드를 비운다.

        Args:
            product_id: 제품 ID
            patch: camelCase 필드 패치
        """

    @abstractmethod
    def store_image(self, data: bytes, content_type: str) -> str:
        """
        이미지 바이트를 저장하고 저장소 ID를 반환한다.

        Args:
            data: 이미지 바이트
            content_type: MIME 타입

        Returns:
            이미지 저장소 ID
        """

    def close(self) -> None:
        """연결을 정리한다."""


class InMemoryProductStore(ProductStore):
    """
    프로세스 메모리 기반 저장소.

    테스트와 로컬 dry run 용도로 사용한다. 조회 결과는 복사본을 반환한다.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.cafes: Dict[str, Cafe] = {}
        self.products: Dict[str, StoredProduct] = {}
        self.images: Dict[str, bytes] = {}
        self.mutation_count = 0

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def get_cafe_by_slug(self, slug: str) -> Optional[Cafe]:
        with self._lock:
            for cafe in self.cafes.values():
                if cafe.slug == slug:
                    return copy.copy(cafe)
        return None

    def create_cafe(self, name: str, slug: str) -> Cafe:
        with self._lock:
            cafe = Cafe(id=self._next_id("cafe"), name=name, slug=slug)
            self.cafes[cafe.id] = cafe
            self.mutation_count += 1
            return copy.copy(cafe)

    def list_products(self, cafe_id: str) -> List[StoredProduct]:
        with self._lock:
            return [copy.deepcopy(p) for p in self.products.values() if p.cafe_id == cafe_id]

    def insert_product(self, cafe_id: str, fields: Dict[str, Any]) -> str:
        with self._lock:
            product_id = self._next_id("product")
            data = dict(fields, _id=product_id, cafeId=cafe_id)
            self.products[product_id] = StoredProduct.from_dict(data)
            self.mutation_count += 1
            return product_id

    def patch_product(self, product_id: str, patch: Dict[str, Any]) -> None:
        with self._lock:
            if product_id not in self.products:
                raise KeyError(f"제품이 없습니다: {product_id}")
            self.products[product_id].apply(patch)
            self.mutation_count += 1

    def store_image(self, data: bytes, content_type: str) -> str:
        with self._lock:
            storage_id = self._next_id("storage")
            self.images[storage_id] = data
            self.mutation_count += 1
            return storage_id


def create_product_store(url: str) -> ProductStore:
    """
    URL 스킴에 맞는 저장소를 생성한다.

    Args:
        url: http(s)://... (Convex), postgres(ql)://... (PostgreSQL), memory:// (메모리)

    Returns:
        저장소 인스턴스

    Raises:
        StoreConfigError: 지원하지 않는 스킴
    """
    if not url:
        raise StoreConfigError("저장소 URL이 비어 있습니다.")

    scheme = url.split("://", 1)[0].lower() if "://" in url else ""
    if scheme in ("http", "https"):
        from uploader.convex_store import ConvexProductStore
        return ConvexProductStore(url)
    if scheme in ("postgres", "postgresql"):
        from uploader.postgres_store import PostgresProductStore
        return PostgresProductStore(url)
    if scheme == "memory":
        return InMemoryProductStore()
    raise StoreConfigError(f"지원하지 않는 저장소 URL입니다: {url}")
