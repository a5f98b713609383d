"""크롤링 결과 제품 레코드 정의."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .utils import coerce_price

# JSON 키 (camelCase) -> 속성 이름
FIELD_KEYS = {
    "name": "name",
    "nameEn": "name_en",
    "description": "description",
    "price": "price",
    "externalImageUrl": "external_image_url",
    "category": "category",
    "externalCategory": "external_category",
    "externalId": "external_id",
    "externalUrl": "external_url",
}

# 업로드 시 변경 여부를 비교하는 필드
MUTABLE_FIELDS = (
    "name",
    "nameEn",
    "description",
    "price",
    "externalImageUrl",
    "category",
    "externalCategory",
    "externalUrl",
)


@dataclass
class ExtractedProduct:
    """
    사이트에서 추출한 단일 메뉴 레코드.

    출력 JSON 파일의 한 원소와 1:1로 대응한다.
    """

    name: str
    external_id: str
    external_url: str
    category: str = "Drinks"
    name_en: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Union[int, float]] = None
    external_image_url: Optional[str] = None
    external_category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON 직렬화용 딕셔너리로 변환한다.

        Returns:
            camelCase 키를 가진 딕셔너리
        """
        return {key: getattr(self, attr) for key, attr in FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedProduct":
        """
        JSON 딕셔너리에서 레코드를 생성한다.

        선택 필드(nameEn, description, externalImageUrl, externalCategory)의
        빈 문자열은 None으로 읽으므로 빈 문자열을 가진 레코드는 그대로
        왕복되지 않는다.

        Args:
            data: camelCase 키를 가진 딕셔너리

        Returns:
            ExtractedProduct 인스턴스

        Raises:
            ValueError: name 또는 externalId가 비어 있거나 price가 숫자가 아닌 경우
        """
        if not isinstance(data, dict):
            raise ValueError(f"레코드가 객체가 아닙니다: {type(data).__name__}")

        raw_name = data.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) else ""
        if not name:
            raise ValueError("name 필드가 비어 있습니다")

        external_id = data.get("externalId")
        if external_id is None or not str(external_id).strip():
            raise ValueError(f"externalId 필드가 비어 있습니다 (name={name})")

        return cls(
            name=name,
            external_id=str(external_id).strip(),
            external_url=data.get("externalUrl") or "",
            category=data.get("category") or "Drinks",
            name_en=data.get("nameEn") or None,
            description=data.get("description") or None,
            price=coerce_price(data.get("price")),
            external_image_url=data.get("externalImageUrl") or None,
            external_category=data.get("externalCategory") or None,
        )

