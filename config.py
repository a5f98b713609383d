"""Configuration settings for the café menu crawler and uploader."""

import os
from pathlib import Path

import dotenv

# .env 파일의 환경변수 로드
dotenv.load_dotenv()

BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
LOGS_DIR = BASE_DIR / "logs"
OUTPUT_DIR = Path(os.getenv("CRAWLER_OUTPUT_DIR", BASE_DIR / "crawler-outputs"))
LOCKS_DIR = DATA_DIR / "locks"
IMAGES_DIR = DATA_DIR / "images"

# Create directories if they don't exist
DATA_DIR.mkdir(exist_ok=True)
LOGS_DIR.mkdir(exist_ok=True)

# Crawler settings
HEADLESS = os.getenv("HEADLESS", "true").lower() != "false"
REQUEST_TIMEOUT = 30
PAGE_TIMEOUT = 45000
MAX_RETRIES = 2
RETRY_DELAY = 2
MAX_PAGES = 50
MAX_CONCURRENCY = 5
RUN_TIMEOUT = int(os.getenv("CRAWL_RUN_TIMEOUT", "300"))

# Uploader settings
LOCK_TIMEOUT = 600
IMAGE_WORKERS = 4
IMAGE_TIMEOUT = 15
SAMPLE_SIZE = 3

# Logging settings
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# 카페 slug -> 표시 이름
CAFES = {
    "starbucks": "스타벅스",
    "compose": "컴포즈커피",
    "mega": "메가커피",
    "paik": "빽다방",
}


def get_store_url() -> str:
    """
    원격 저장소 URL을 반환한다.

    CONVEX_URL이 우선이며 없으면 DATABASE_URL을 사용한다.

    Returns:
        저장소 URL

    Raises:
        StoreConfigError: 두 환경변수가 모두 없는 경우
    """
    from uploader.errors import StoreConfigError

    url = os.getenv("CONVEX_URL") or os.getenv("DATABASE_URL")
    if not url:
        raise StoreConfigError("CONVEX_URL 또는 DATABASE_URL 환경변수가 설정되지 않았습니다.")
    return url
