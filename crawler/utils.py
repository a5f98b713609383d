"""크롤러 유틸리티 함수 모음."""

import logging
import random
import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urljoin

# 로그 디렉토리 생성
LOGS_DIR = Path(__file__).parent.parent / "logs"
LOGS_DIR.mkdir(exist_ok=True)


def setup_logger(name: str, level: int = None) -> logging.Logger:
    """
    로거를 설정하고 반환한다.

    Args:
        name: 로거 이름
        level: 로그 레벨 (None이면 환경변수 LOG_LEVEL 또는 기본값 INFO 사용)

    Returns:
        설정된 로거 인스턴스
    """
    logger = logging.getLogger(name)

    # 이미 핸들러가 있으면 중복 설정 방지
    if logger.handlers:
        if level is not None:
            set_logger_level(logger, level)
        return logger

    # 로그 레벨 결정 (우선순위: 파라미터 > 환경변수 > 기본값)
    if level is None:
        log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
        level = getattr(logging, log_level_str, logging.INFO)

    logger.setLevel(level)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    file_handler = logging.FileHandler(
        LOGS_DIR / f"crawl_{timestamp}.log",
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def set_logger_level(logger: logging.Logger, level: int) -> None:
    """로거와 모든 핸들러의 레벨을 변경한다."""
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_random_user_agent() -> str:
    """
    랜덤 User-Agent를 반환한다.

    Returns:
        랜덤하게 선택된 User-Agent 문자열
    """
    user_agents = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2_1) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15"
    ]
    return random.choice(user_agents)


def get_random_viewport() -> dict:
    """
    랜덤 viewport 크기를 반환한다.

    Returns:
        width와 height를 포함한 딕셔너리
    """
    viewports = [
        {"width": 1920, "height": 1080},
        {"width": 1440, "height": 900},
        {"width": 1366, "height": 768},
        {"width": 1280, "height": 720}
    ]
    return random.choice(viewports)


def parse_price(price_text: str) -> Optional[int]:
    """
    가격 텍스트를 파싱하여 정수로 변환한다.

    Args:
        price_text: 가격 텍스트 (예: "₩4,500", "4,500원")

    Returns:
        파싱된 가격 (정수), 실패 시 None
    """
    if not price_text:
        return None

    cleaned = ''.join(filter(str.isdigit, price_text))

    try:
        return int(cleaned)
    except ValueError:
        return None


def coerce_price(value) -> Optional[Union[int, float]]:
    """
    JSON에서 읽은 가격 값을 숫자로 정규화한다.

    Args:
        value: None, 숫자 또는 숫자 문자열

    Returns:
        int/float 가격 또는 None

    Raises:
        ValueError: 숫자로 해석할 수 없는 값
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"가격이 숫자가 아닙니다: {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if re.fullmatch(r'-?\d+', text):
            return int(text)
        try:
            return float(text)
        except ValueError:
            pass
    raise ValueError(f"가격이 숫자가 아닙니다: {value!r}")


def log_error(logger: logging.Logger, external_id: str, reason: str, trace: Optional[str] = None) -> None:
    """
    에러를 JSON 형식으로 로깅한다.

    Args:
        logger: 로거 인스턴스
        external_id: 제품 외부 ID 또는 URL
        reason: 에러 원인
        trace: 스택 트레이스 (옵션)
    """
    error_data = {
        "externalId": external_id,
        "reason": reason,
        "trace": trace or "",
        "timestamp": datetime.now().isoformat()
    }

    logger.error(json.dumps(error_data, ensure_ascii=False))


def clean_text(text: str) -> str:
    """
    텍스트를 정리한다.

    Args:
        text: 정리할 텍스트

    Returns:
        정리된 텍스트
    """
    if not text:
        return ""

    return " ".join(text.strip().split())


def absolute_url(url: Optional[str], base_url: str) -> Optional[str]:
    """
    상대 URL을 사이트 기준 절대 URL로 변환한다.

    Args:
        url: 원본 URL (절대, 프로토콜 상대, 루트 상대, 상대 경로)
        base_url: 사이트 기준 URL

    Returns:
        절대 URL 또는 None
    """
    if not url:
        return None
    url = url.strip()
    if not url or url.startswith(("data:", "javascript:")):
        return None
    return urljoin(base_url, url)

