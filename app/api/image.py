from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
import io
import logging
import unicodedata
from urllib.parse import quote

from app.api.deps import get_current_user, get_gallery, get_store
from app.core.errors import ImageNotFoundError, StorageError
from app.models.user import User
from app.schemas.image import UploadResult
from app.services.gallery import GalleryManager
from app.services.s3_config import load_s3_config
from app.services.s3_upload import build_filename, upload_image_to_s3
from app.services.store import KeyedStore
from app.utils.data_uri import decode_image_data_uri

# ✅ 라우터 설정
router = APIRouter(prefix="/images", tags=["images"])

# ✅ 로거 설정
logger = logging.getLogger(__name__)


def content_disposition(file_name: str) -> str:
    """
    attachment 헤더: ASCII fallback + RFC 5987 filename* (UTF-8)
    따옴표 / 제어문자는 제거
    """
    cleaned = "".join(ch for ch in file_name if ch != '"' and ch != "\\" and unicodedata.category(ch)[0] != "C")
    fallback = cleaned.encode("ascii", "replace").decode("ascii").replace("?", "_") or "image"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(cleaned, safe='')}"


# ✅ 1. 이미지 다운로드 API (data URI 디코딩해서 파일로 반환)
@router.get("/{image_id}/download")
def download_image(image_id: str, gallery: GalleryManager = Depends(get_gallery)):
    """
    이름이 지정된 data URI 이미지만 다운로드 가능
    """
    logger.info(f"🖼️ 이미지 다운로드 시도: image_id={image_id}")
    try:
        image = gallery.get_image(image_id)
    except ImageNotFoundError:
        logger.error("❌ 이미지 없음")
        raise HTTPException(status_code=404, detail="Image not found")

    if not image.name.strip():
        raise HTTPException(status_code=400, detail="Please provide a name for the image before downloading.")

    decoded = decode_image_data_uri(image.url)
    if not decoded:
        logger.error("❌ data URI 아님")
        raise HTTPException(status_code=400, detail="Only generated images (data URIs) can be downloaded.")
    mime_type, image_bytes = decoded

    file_name = build_filename(image.name, mime_type)
    logger.info(f"✅ 이미지 다운로드 성공: {image_id}")
    return StreamingResponse(
        io.BytesIO(image_bytes),
        media_type=mime_type,
        headers={"Content-Disposition": content_disposition(file_name)},
    )


# ✅ 2. S3 업로드 API (사용자 설정 로드 후 업로드)
@router.post("/{image_id}/upload", response_model=UploadResult)
def upload_image(
    image_id: str,
    user: User = Depends(get_current_user),
    gallery: GalleryManager = Depends(get_gallery),
    store: KeyedStore = Depends(get_store),
):
    try:
        image = gallery.get_image(image_id)
    except ImageNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")

    try:
        config = load_s3_config(store, user.uid)
    except StorageError as e:
        logger.error(f"❌ S3 설정 로드 실패: {e.message}")
        return UploadResult(success=False, message=f"Failed to load S3 configuration: {e.message}")

    return upload_image_to_s3(image, config)
