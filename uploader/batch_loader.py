"""크롤링 결과 JSON 배치 로딩."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import config
from crawler.storage import find_latest_output
from uploader.errors import InputFileError

logger = logging.getLogger(__name__)


def resolve_input_file(
    file_path: Optional[Union[str, Path]],
    cafe_slug: Optional[str] = None,
    output_dir: Union[str, Path] = config.OUTPUT_DIR
) -> Path:
    """
    업로드할 파일 경로를 결정한다.

    파일을 지정하지 않으면 출력 디렉토리에서 해당 카페의 가장 최근 파일을
    사용한다.

    Args:
        file_path: 명시한 파일 경로 (없으면 None)
        cafe_slug: 카페 slug
        output_dir: 크롤링 출력 디렉토리

    Returns:
        파일 경로

    Raises:
        InputFileError: 파일이 없는 경우
    """
    if file_path:
        path = Path(file_path)
        if not path.is_file():
            raise InputFileError(f"파일을 찾을 수 없습니다: {path}")
        return path

    path = find_latest_output(output_dir, cafe_slug)
    if path is None:
        target = f"{cafe_slug}-products-*.json" if cafe_slug else "*.json"
        raise InputFileError(f"업로드할 파일을 찾을 수 없습니다: {Path(output_dir) / target}")

    logger.info(f"가장 최근 파일 사용: {path}")
    return path


def load_batch(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    JSON 배열 파일을 읽는다. 레코드 단위 검증은 하지 않는다.

    Args:
        path: 파일 경로

    Returns:
        레코드 딕셔너리 목록

    Raises:
        InputFileError: 파일이 없거나, JSON이 아니거나, 배열이 아닌 경우
    """
    path = Path(path)
    if not path.is_file():
        raise InputFileError(f"파일을 찾을 수 없습니다: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InputFileError(f"잘못된 JSON 파일입니다 ({path}): {str(e)}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise InputFileError(f"파일을 읽을 수 없습니다 ({path}): {str(e)}") from e

    if not isinstance(data, list):
        raise InputFileError(f"JSON 파일은 제품 배열이어야 합니다: {path}")

    logger.info(f"{len(data)}개 레코드 로드: {path}")
    return data
