"""업로더 예외 정의."""


class UploadError(Exception):
    """업로드 실행을 중단시키는 오류의 기본 클래스."""


class StoreConfigError(UploadError):
    """저장소 연결 정보가 없거나 잘못된 경우."""


class InputFileError(UploadError):
    """입력 JSON 파일을 찾을 수 없거나 형식이 잘못된 경우."""


class CafeNotFoundError(UploadError):
    """slug에 해당하는 카페가 없는 경우."""

    def __init__(self, slug: str):
        super().__init__(f"카페를 찾을 수 없습니다: {slug}")
        self.slug = slug


class StoreRequestError(UploadError):
    """원격 저장소 요청이 실패한 경우."""
