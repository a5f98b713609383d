"""업로드 통계 집계."""

from typing import Any, Dict, List

import pandas as pd

from uploader.store import StoredProduct

DAY_MS = 24 * 60 * 60 * 1000


def compute_upload_stats(products: List[StoredProduct], now_ms: int, days_back: int = 7) -> Dict[str, Any]:
    """
    카페 제품의 최근 변경 통계를 계산한다.

    최근 수정 수는 기간 안에 수정됐지만 기간 안에 추가되지 않은 제품만 센다.

    Args:
        products: 카페의 전체 제품 (비활성 포함)
        now_ms: 현재 시각 (epoch 밀리초)
        days_back: 집계 기간(일)

    Returns:
        total, active, inactive, recentlyAdded, recentlyUpdated, categories,
        withImages, withPrices, byCategory
    """
    if not products:
        return {
            "total": 0,
            "active": 0,
            "inactive": 0,
            "recentlyAdded": 0,
            "recentlyUpdated": 0,
            "categories": 0,
            "withImages": 0,
            "withPrices": 0,
            "byCategory": {},
        }

    cutoff = now_ms - days_back * DAY_MS
    df = pd.DataFrame([product.to_dict() for product in products])

    recently_added = df["addedAt"] > cutoff
    recently_updated = (df["updatedAt"] > cutoff) & ~recently_added
    has_image = df["externalImageUrl"].fillna("").astype(str).str.len() > 0
    has_price = df["price"].notna() & (df["price"].fillna(0) != 0)
    category_counts = df.loc[df["isActive"], "category"].fillna("미분류").value_counts()

    return {
        "total": int(len(df)),
        "active": int(df["isActive"].sum()),
        "inactive": int((~df["isActive"]).sum()),
        "recentlyAdded": int(recently_added.sum()),
        "recentlyUpdated": int(recently_updated.sum()),
        "categories": int(df["category"].nunique(dropna=False)),
        "withImages": int(has_image.sum()),
        "withPrices": int(has_price.sum()),
        "byCategory": {str(name): int(count) for name, count in category_counts.items()},
    }
