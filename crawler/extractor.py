"""사이트 공통 메뉴 추출기."""

from typing import List, Optional

from playwright.async_api import Locator, Page

from .locators import first_attribute, first_match, first_text
from .models import ExtractedProduct
from .profiles import Category, SiteProfile
from .utils import absolute_url, clean_text, parse_price, setup_logger
from .validator import ProductValidator


class SiteExtractor:
    """
    로드된 페이지에서 메뉴 레코드를 추출하는 클래스.

    컨테이너 셀렉터를 우선순위대로 시도해 처음 매칭되는 목록을 사용하고,
    각 필드는 독립적으로 폴백한다. 컨테이너 하나의 실패는 해당 레코드만
    누락시킨다.
    """

    HOVER_TIMEOUT = 500

    def __init__(self, profile: SiteProfile, validator: Optional[ProductValidator] = None):
        """
        추출기를 초기화한다.

        Args:
            profile: 사이트 프로필
            validator: 메뉴명 검증기 (없으면 새로 생성)
        """
        self.profile = profile
        self.validator = validator or ProductValidator()
        self.logger = setup_logger(self.__class__.__name__)

    async def extract(self, page: Page, category: Category) -> List[ExtractedProduct]:
        """
        목록 페이지의 모든 제품 컨테이너에서 레코드를 추출한다.

        Args:
            page: 로드된 페이지
            category: 현재 카테고리

        Returns:
            DOM 순서의 레코드 목록 (externalId 중복 제거됨)
        """
        containers, selector = await first_match(page, self.profile.container_selectors)
        if containers is None:
            self.logger.warning(f"제품 컨테이너를 찾지 못함: {page.url}")
            return []

        count = await containers.count()
        self.logger.debug(f"컨테이너 {count}개 발견 (셀렉터: {selector})")

        page_url = page.url
        products = []
        for i in range(count):
            try:
                product = await self._extract_container(containers.nth(i), category, page_url)
            except Exception as e:
                self.logger.warning(f"컨테이너 추출 실패 ({i + 1}/{count}): {str(e)}")
                continue
            if product:
                products.append(product)

        products = self.validator.deduplicate(products)
        self.logger.info(f"[{category.label}] {len(products)}개 제품 추출")
        return products

    async def extract_detail(self, page: Page, category: Category) -> Optional[ExtractedProduct]:
        """
        상세 페이지에서 단일 레코드를 추출한다.

        Args:
            page: 로드된 상세 페이지
            category: 목록에서 넘어온 카테고리

        Returns:
            추출된 레코드 또는 None
        """
        fields = self.profile.fields
        name, name_en = await self._extract_names(page)
        native_id = self.profile.detail_id_from_url(page.url)
        if not self.validator.accept_name(name, native_id or ""):
            return None

        description = await first_text(page, fields.description)
        external_category = await first_text(page, fields.external_category) or category.label

        return ExtractedProduct(
            name=name,
            name_en=name_en,
            description=description,
            price=await self._extract_price(page),
            external_image_url=await self._extract_image(page),
            category=self.profile.category,
            external_category=external_category,
            external_id=self.profile.build_external_id(name, category, native_id),
            external_url=page.url,
        )

    async def _extract_container(
        self,
        container: Locator,
        category: Category,
        page_url: str
    ) -> Optional[ExtractedProduct]:
        """컨테이너 하나에서 레코드를 만든다. 메뉴명이 유효하지 않으면 None."""
        fields = self.profile.fields
        name, name_en = await self._extract_names(container)

        native_id = None
        if fields.native_id:
            native_id = await first_attribute(container, fields.native_id, "id")

        if not self.validator.accept_name(name, native_id or ""):
            return None

        description = await first_text(container, fields.description)
        if not description and self.profile.hover_for_description and fields.description:
            description = await self._hover_description(container)

        return ExtractedProduct(
            name=name,
            name_en=name_en,
            description=description,
            price=await self._extract_price(container),
            external_image_url=await self._extract_image(container),
            category=self.profile.category,
            external_category=category.label,
            external_id=self.profile.build_external_id(name, category, native_id),
            external_url=page_url,
        )

    async def _extract_names(self, root):
        """메뉴명과 영문명을 추출한다. 영문명이 메뉴명에 포함되면 제거한다."""
        fields = self.profile.fields
        name = await first_text(root, fields.name)
        name_en = await first_text(root, fields.name_en) if fields.name_en else None

        if name and name_en and name_en != name and name_en in name:
            name = clean_text(name.replace(name_en, ""))
        return name, name_en

    async def _extract_image(self, root) -> Optional[str]:
        fields = self.profile.fields
        src = await first_attribute(root, fields.image, "src")
        if not src:
            src = await first_attribute(root, fields.image, "data-src")
        return absolute_url(src, self.profile.base_url)

    async def _extract_price(self, root):
        if not self.profile.fields.price:
            return None
        return parse_price(await first_text(root, self.profile.fields.price))

    async def _hover_description(self, container: Locator) -> Optional[str]:
        """hover 후 설명을 다시 읽는다."""
        try:
            await container.hover(timeout=self.HOVER_TIMEOUT)
            return await first_text(container, self.profile.fields.description)
        except Exception as e:
            self.logger.debug(f"hover 설명 추출 실패: {str(e)}")
            return None
