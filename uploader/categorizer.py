"""규칙 기반 음료 카테고리 분류기.

사이트가 붙인 외부 카테고리와 메뉴명을 보고 앱의 공통 카테고리
(커피, 차, 블렌디드, 스무디, 주스, 에이드, 그 외) 중 하나로 분류한다.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from uploader.store import Cafe, ProductStore, now_ms

COFFEE = "커피"
TEA = "차"
BLENDED = "블렌디드"
SMOOTHIE = "스무디"
JUICE = "주스"
ADE = "에이드"
OTHER = "그 외"

CATEGORIES = (COFFEE, TEA, BLENDED, SMOOTHIE, JUICE, ADE, OTHER)
CONFIDENCE_LEVELS = ("high", "medium", "low")

# 외부 카테고리 이름 -> 공통 카테고리 (정확히 일치할 때만 사용)
EXTERNAL_CATEGORY_MAP = {
    "커피": COFFEE,
    "에스프레소": COFFEE,
    "콜드 브루": COFFEE,
    "콜드브루": COFFEE,
    "브루드 커피": COFFEE,
    "디카페인 커피": COFFEE,
    "차": TEA,
    "티": TEA,
    "티(티바나)": TEA,
    "블렌디드": BLENDED,
    "프라푸치노": BLENDED,
    "빽스치노": BLENDED,
    "스무디": SMOOTHIE,
    "스무디/프라페": SMOOTHIE,
    "주스": JUICE,
    "피지오": ADE,
    "에이드": ADE,
    "디저트": OTHER,
    "아이스크림/디저트": OTHER,
    "MD상품": OTHER,
    "컴포즈 콤보": OTHER,
    "논커피 라떼": OTHER,
    "푸드": OTHER,
}

FRUITS = ("딸기", "망고", "블루베리", "바나나", "복숭아", "자몽", "유자", "레몬", "청포도", "키위")

# (카테고리, 패턴) 순서대로 평가한다
NAME_RULES = (
    (OTHER, re.compile(r"리프레셔|refresher", re.IGNORECASE)),
    (OTHER, re.compile(rf"({'|'.join(FRUITS)}).*라떼")),
    (TEA, re.compile(r"티\s?라떼|얼그레이|캐모마일|페퍼민트|히비스커스|루이보스|밀크티|녹차|홍차|유자차|(^|\s)티($|\s)")),
    (BLENDED, re.compile(r"프라푸치노|블렌디드|빽스치노|프라페|쉐이크")),
    (SMOOTHIE, re.compile(r"스무디")),
    (JUICE, re.compile(r"주스|쥬스")),
    (ADE, re.compile(r"에이드")),
    (COFFEE, re.compile(r"아메리카노|에스프레소|카푸치노|마끼아또|마키아또|콜드\s?브루|모카|커피|라떼|돌체")),
)


@dataclass(frozen=True)
class CategorizeResult:
    """분류 결과."""
    category: str
    confidence: str
    source: str


class ProductCategorizer:
    """
    외부 카테고리 → 메뉴명 키워드 → 기본값 순으로 분류한다.

    같은 입력에는 항상 같은 결과를 반환한다.
    """

    def categorize(self, external_category: Optional[str], name: Optional[str]) -> CategorizeResult:
        """
        제품 하나를 분류한다.

        Args:
            external_category: 사이트 카테고리
            name: 메뉴명

        Returns:
            CategorizeResult (confidence: high|medium|low, source: external_category|keyword|fallback)
        """
        mapped = EXTERNAL_CATEGORY_MAP.get((external_category or "").strip())
        if mapped:
            return CategorizeResult(mapped, "high", "external_category")

        for category, pattern in NAME_RULES:
            if pattern.search(name or ""):
                return CategorizeResult(category, "medium", "keyword")

        return CategorizeResult(OTHER, "low", "fallback")


@dataclass
class CategorizeStats:
    """저장소 재분류 통계."""
    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    confidence_breakdown: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(CONFIDENCE_LEVELS, 0))
    source_breakdown: Dict[str, int] = field(default_factory=dict)


def recategorize_cafe(
    store: ProductStore,
    cafe: Cafe,
    categorizer: Optional[ProductCategorizer] = None,
    dry_run: bool = False,
    confidence: str = "all",
    limit: Optional[int] = None,
    force: bool = False,
    clock: Callable[[], int] = now_ms
) -> CategorizeStats:
    """
    저장된 제품의 카테고리를 다시 분류한다.

    Args:
        store: 제품 저장소
        cafe: 대상 카페
        categorizer: 분류기
        dry_run: True이면 저장소를 수정하지 않는다
        confidence: 처리할 신뢰도 (all|high|medium|low)
        limit: 처리할 최대 제품 수
        force: 카테고리가 같아도 다시 기록한다
        clock: epoch 밀리초 시계

    Returns:
        CategorizeStats
    """
    logger = logging.getLogger(__name__)
    categorizer = categorizer or ProductCategorizer()
    stats = CategorizeStats()

    products = store.list_products(cafe.id)
    if limit:
        products = products[:limit]
    logger.info(f"{cafe.name}: {len(products)}개 제품 분류 시작")

    for product in products:
        stats.processed += 1
        result = categorizer.categorize(product.external_category, product.name)

        if confidence != "all" and result.confidence != confidence:
            stats.skipped += 1
            continue

        stats.confidence_breakdown[result.confidence] += 1
        stats.source_breakdown[result.source] = stats.source_breakdown.get(result.source, 0) + 1

        if not force and product.category == result.category:
            stats.unchanged += 1
            logger.debug(f"변경 없음: {product.name} ({result.category})")
            continue

        if dry_run:
            logger.info(f"[DRY RUN] {product.name}: {product.category} → {result.category}")
            stats.updated += 1
            continue

        try:
            store.patch_product(product.id, {"category": result.category, "updatedAt": clock()})
            stats.updated += 1
            logger.debug(f"분류 변경: {product.name}: {product.category} → {result.category}")
        except Exception as e:
            stats.errors += 1
            logger.error(f"분류 저장 실패 ({product.name}): {str(e)}")

    return stats
