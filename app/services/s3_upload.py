import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from urllib.parse import urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from app.core.errors import ImaginariumError, InvalidInputError, UploadError
from app.schemas.image import GeneratedImage, UploadResult
from app.schemas.s3_config import S3Config
from app.utils.data_uri import decode_image_data_uri

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpeg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}
DEFAULT_EXTENSION = ".png"


@dataclass
class Endpoint:
    scheme: str
    host: str
    port: int

    @property
    def use_ssl(self) -> bool:
        return self.scheme == "https"

    @property
    def base_url(self) -> str:
        # 기본 포트(80/443)는 URL 에서 생략
        if self.port in (80, 443):
            return f"{self.scheme}://{self.host}"
        return f"{self.scheme}://{self.host}:{self.port}"


def parse_endpoint(url: str) -> Endpoint:
    """
    S3 서비스 URL 파싱, scheme 없으면 http
    잘못된 URL/포트는 ValueError
    """
    full_url = url.strip()
    if not full_url.startswith("http://") and not full_url.startswith("https://"):
        full_url = f"http://{full_url}"

    parts = urlsplit(full_url)
    if not parts.hostname:
        raise ValueError(f"Invalid S3 URL format: {url}")

    try:
        port = parts.port
    except ValueError:
        raise ValueError(f"Invalid port in S3 URL: {url}")
    if port is None:
        port = 443 if parts.scheme == "https" else 80

    return Endpoint(scheme=parts.scheme, host=parts.hostname, port=port)


def extension_for_mime(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, DEFAULT_EXTENSION)


def build_filename(name: str, mime_type: str) -> str:
    """이름 뒤에 확장자를 한 번만 붙임 (대소문자 무시)"""
    base_name = name.strip()
    extension = extension_for_mime(mime_type)
    if base_name.lower().endswith(extension.lower()):
        return base_name
    return base_name + extension


def build_object_key(prefix: str, filename: str) -> str:
    """
    <prefix>/<filename>
    prefix 끝 슬래시는 정확히 하나, 키 앞 슬래시는 없음
    """
    key = filename.lstrip("/")
    if prefix and prefix.strip():
        normalized_prefix = prefix.strip().strip("/")
        if normalized_prefix:
            key = f"{normalized_prefix}/{key}"
    return key


def make_s3_client(endpoint: Endpoint, config: S3Config):
    return boto3.client(
        "s3",
        endpoint_url=endpoint.base_url,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name="us-east-1",
        use_ssl=endpoint.use_ssl,
        config=Config(s3={"addressing_style": "path"}, retries={"max_attempts": 1}),
    )


def describe_upload_error(error: Exception, config: S3Config) -> str:
    """업로드 에러 -> 사용자 메시지 (bucket 없음 / 권한 / 연결 거부 / 기타)"""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        message = error.response.get("Error", {}).get("Message") or "An unknown S3 error occurred."
        if code == "NoSuchBucket":
            return f'Bucket "{config.bucket_name}" does not exist.'
        if code == "AccessDenied":
            return (
                f'Access denied for S3 bucket "{config.bucket_name}". '
                "Check credentials, permissions, and bucket policy."
            )
        return f"S3 Upload Error ({code}): {message}"

    if isinstance(error, EndpointConnectionError) or "ECONNREFUSED" in str(error) or "Connection refused" in str(error):
        return f"Connection refused. Ensure S3 service at {config.url} is reachable."

    return f"S3 Upload Error: {str(error)}" if str(error) else "Failed to upload image to S3."


def _prepare_upload(image: GeneratedImage, config: Optional[S3Config]) -> Tuple[Endpoint, str, bytes]:
    """
    업로드 전 입력 검사, 실패시 InvalidInputError
    통과하면 (endpoint, mime, bytes)
    """
    if config is None:
        logger.warning("❌ S3 configuration was not provided. Cannot upload to S3.")
        raise InvalidInputError("S3 configuration not available. Please configure S3 settings.")

    if not image.url.startswith("data:image"):
        raise InvalidInputError("Image is not a valid data URI and cannot be uploaded.")

    if not config.is_complete():
        raise InvalidInputError(
            "S3 configuration (URL, Access Key, Secret Key, Bucket Name) is incomplete. Please check settings."
        )

    if not image.name or not image.name.strip():
        raise InvalidInputError("Image name is required for S3 upload. Please provide a name.")

    try:
        endpoint = parse_endpoint(config.url)
    except ValueError as e:
        raise InvalidInputError(str(e))

    decoded = decode_image_data_uri(image.url)
    if not decoded:
        raise InvalidInputError("Invalid image data URI format for S3 upload.")
    mime_type, image_bytes = decoded
    return endpoint, mime_type, image_bytes


def _build_client(client_factory: Optional[Callable], endpoint: Endpoint, config: S3Config):
    # botocore 는 잘못된 endpoint (예: minio_server 같은 밑줄 호스트) 를 ValueError 로 거부함
    try:
        return (client_factory or make_s3_client)(endpoint, config)
    except ValueError as e:
        logger.error(f"❌ S3 클라이언트 생성 실패: {str(e)}")
        raise UploadError(f"Invalid S3 URL format: {config.url}")


def upload_image_to_s3(
    image: GeneratedImage,
    config: Optional[S3Config],
    client_factory: Optional[Callable] = None,
) -> UploadResult:
    """
    data URI 이미지를 디코딩해서 S3 호환 스토리지에 PUT
    재시도 없음, 실패는 UploadResult(success=False) 로 반환
    """
    try:
        # ✅ 사전 조건 검사 (실패시 업로드 시도 안 함)
        endpoint, mime_type, image_bytes = _prepare_upload(image, config)
        file_name = build_filename(image.name, mime_type)
        object_key = build_object_key(config.prefix, file_name)

        logger.info(f"📦 S3 업로드 시도: bucket={config.bucket_name}, key={object_key}, mime={mime_type}")
        s3_client = _build_client(client_factory, endpoint, config)
        s3_client.put_object(
            Bucket=config.bucket_name,
            Key=object_key,
            Body=image_bytes,
            ContentType=mime_type,
        )
    except ImaginariumError as e:
        logger.warning(f"❌ S3 업로드 중단 ({e.kind.value}): {e.message}")
        return UploadResult(success=False, message=e.message)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"❌ S3 업로드 에러: {str(e)}")
        return UploadResult(success=False, message=describe_upload_error(e, config))

    uploaded_url = f"{endpoint.base_url}/{config.bucket_name}/{object_key}"
    logger.info(f"✅ S3 업로드 완료: {uploaded_url}")
    return UploadResult(
        success=True,
        message=f'Image "{file_name}" uploaded successfully to S3.',
        url=uploaded_url,
    )
