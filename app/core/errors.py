from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    GENERATION_FAILED = "GenerationFailed"
    REFINEMENT_FAILED = "RefinementFailed"
    INVALID_INPUT = "InvalidInput"
    STORAGE_QUOTA_EXCEEDED = "StorageQuotaExceeded"
    STORAGE_ERROR = "StorageError"
    AUTH_FAILED = "AuthFailed"
    UPLOAD_FAILED = "UploadFailed"
    NOT_FOUND = "NotFound"


class ImaginariumError(Exception):
    """모든 도메인 에러의 기반 클래스"""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class GenerationError(ImaginariumError):
    def __init__(self, message: str, kind: ErrorKind = ErrorKind.GENERATION_FAILED):
        super().__init__(kind, message)


class StorageError(ImaginariumError):
    def __init__(self, message: str, kind: ErrorKind = ErrorKind.STORAGE_ERROR):
        super().__init__(kind, message)


class QuotaExceededError(StorageError):
    def __init__(self, message: str):
        super().__init__(message, kind=ErrorKind.STORAGE_QUOTA_EXCEEDED)


class ImageNotFoundError(ImaginariumError):
    def __init__(self, image_id: str):
        super().__init__(ErrorKind.NOT_FOUND, f"Image not found: {image_id}")
        self.image_id = image_id


class AuthError(ImaginariumError):
    """
    identity provider 에러 (Firebase 스타일 코드 포함, 예: auth/wrong-password)
    """

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(ErrorKind.AUTH_FAILED, message or code)
        self.code = code


class InvalidInputError(ImaginariumError):
    """원격 호출 전에 걸러지는 입력 오류 (빈 이름, 불완전한 설정 등)"""

    def __init__(self, message: str):
        super().__init__(ErrorKind.INVALID_INPUT, message)


class UploadError(ImaginariumError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.UPLOAD_FAILED, message)
