"""추출된 메뉴 레코드 검증 및 중복 제거."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .models import ExtractedProduct
from .utils import setup_logger

MAX_NAME_LENGTH = 100

# 메뉴명으로 잘못 잡히는 UI 문구 (대소문자 무시 부분 일치)
NAME_DENYLIST = (
    "카테고리",
    "전체보기",
    "정렬",
    "더보기",
    "category",
    "view all",
    "sort by",
    "undefined",
    "null",
)


@dataclass
class ValidationStats:
    """
    검증 통계 데이터 클래스.
    """
    total_products: int = 0
    valid_products: int = 0
    removed_products: int = 0

    # 제거 이유별 통계
    empty_name: int = 0
    name_too_long: int = 0
    denylisted_name: int = 0
    duplicate_external_id: int = 0

    # 상세 제거 이유
    removal_reasons: List[Dict[str, Any]] = field(default_factory=list)

    def add_removal_reason(self, external_id: str, reason: str, details: str = ""):
        """
        제거 이유를 기록한다.

        Args:
            external_id: 제품 외부 ID (없으면 빈 문자열)
            reason: 제거 이유
            details: 상세 설명
        """
        self.removal_reasons.append({
            "externalId": external_id,
            "reason": reason,
            "details": details
        })

    def to_dict(self) -> Dict[str, Any]:
        """통계 정보를 딕셔너리로 변환한다."""
        return {
            "summary": {
                "total_products": self.total_products,
                "valid_products": self.valid_products,
                "removed_products": self.removed_products,
            },
            "removal_breakdown": {
                "empty_name": self.empty_name,
                "name_too_long": self.name_too_long,
                "denylisted_name": self.denylisted_name,
                "duplicate_external_id": self.duplicate_external_id,
            },
            "detailed_reasons": self.removal_reasons
        }


def name_rejection_reason(name: Optional[str]) -> Optional[str]:
    """
    메뉴명이 유효하지 않은 이유를 반환한다.

    Args:
        name: 추출된 메뉴명

    Returns:
        "empty_name", "name_too_long", "denylisted_name" 중 하나 또는 유효하면 None
    """
    if not name or not name.strip():
        return "empty_name"
    if len(name.strip()) > MAX_NAME_LENGTH:
        return "name_too_long"
    lowered = name.lower()
    if any(word in lowered for word in NAME_DENYLIST):
        return "denylisted_name"
    return None


class ProductValidator:
    """
    추출 레코드 검증 담당 클래스.

    메뉴명 필터와 externalId 기준 중복 제거를 수행하고 통계를 남긴다.
    """

    def __init__(self):
        self.logger = setup_logger(self.__class__.__name__)
        self.stats = ValidationStats()

    def accept_name(self, name: Optional[str], external_id: str = "") -> bool:
        """
        메뉴명을 검사하고 거부 시 통계에 기록한다.

        Args:
            name: 메뉴명
            external_id: 로그용 외부 ID

        Returns:
            통과 여부
        """
        self.stats.total_products += 1
        reason = name_rejection_reason(name)
        if reason is None:
            self.stats.valid_products += 1
            return True

        setattr(self.stats, reason, getattr(self.stats, reason) + 1)
        self.stats.removed_products += 1
        self.stats.add_removal_reason(external_id, reason, name or "")
        self.logger.debug(f"메뉴명 필터로 제외: {name!r} ({reason})")
        return False

    def deduplicate(self, products: Iterable[ExtractedProduct]) -> List[ExtractedProduct]:
        """
        externalId 기준으로 중복을 제거한다.

        같은 ID가 여러 번 나오면 마지막 레코드의 데이터를 쓰고 위치는
        처음 나온 자리를 유지한다.

        Args:
            products: 추출 레코드 목록

        Returns:
            중복이 제거된 레코드 목록
        """
        unique: Dict[str, ExtractedProduct] = {}
        for product in products:
            if product.external_id in unique:
                self.stats.duplicate_external_id += 1
                self.stats.valid_products -= 1
                self.stats.removed_products += 1
                self.stats.add_removal_reason(product.external_id, "duplicate_external_id")
            unique[product.external_id] = product
        return list(unique.values())
