"""셀렉터 폴백 헬퍼.

사이트마다 마크업이 조금씩 달라서 모든 필드는 우선순위가 있는 셀렉터
목록으로 정의한다. 여기의 함수들은 목록을 앞에서부터 시도하고 처음으로
매칭되는 요소를 사용한다. 각 시도는 독립적이며 실패하면 다음 셀렉터로
넘어간다.
"""

import logging
from typing import Optional, Sequence, Tuple

from playwright.async_api import Locator

from .utils import clean_text

logger = logging.getLogger(__name__)


async def first_match(root, selectors: Sequence[str]) -> Tuple[Optional[Locator], Optional[str]]:
    """
    매칭되는 요소가 있는 첫 번째 셀렉터를 찾는다.

    Args:
        root: Page 또는 Locator
        selectors: 우선순위 순 셀렉터 목록

    Returns:
        (매칭된 Locator, 사용된 셀렉터). 매칭이 없으면 (None, None)
    """
    for selector in selectors:
        try:
            locator = root.locator(selector)
            if await locator.count() > 0:
                return locator, selector
        except Exception as e:
            logger.debug(f"셀렉터 조회 실패 ({selector}): {str(e)}")
    return None, None


async def first_text(root, selectors: Sequence[str], inner: bool = False) -> Optional[str]:
    """
    셀렉터 목록에서 비어 있지 않은 첫 번째 텍스트를 반환한다.

    Args:
        root: Page 또는 Locator
        selectors: 우선순위 순 셀렉터 목록
        inner: True이면 inner_text, 아니면 text_content 사용

    Returns:
        정리된 텍스트 또는 None
    """
    for selector in selectors:
        try:
            locator = root.locator(selector)
            if await locator.count() == 0:
                continue
            element = locator.first
            raw = await element.inner_text() if inner else await element.text_content()
            text = clean_text(raw or "")
            if text:
                return text
        except Exception as e:
            logger.debug(f"텍스트 추출 실패 ({selector}): {str(e)}")
    return None


async def first_attribute(root, selectors: Sequence[str], attribute: str) -> Optional[str]:
    """
    셀렉터 목록에서 속성값이 있는 첫 번째 요소의 값을 반환한다.

    Args:
        root: Page 또는 Locator
        selectors: 우선순위 순 셀렉터 목록
        attribute: 속성명

    Returns:
        속성값 또는 None
    """
    for selector in selectors:
        try:
            locator = root.locator(selector)
            if await locator.count() == 0:
                continue
            value = await locator.first.get_attribute(attribute)
            if value and value.strip():
                return value.strip()
        except Exception as e:
            logger.debug(f"속성 추출 실패 ({selector}@{attribute}): {str(e)}")
    return None
