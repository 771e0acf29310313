import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_gallery
from app.core.errors import ImageNotFoundError
from app.schemas.image import GeneratedImage, Notification, RefinePromptOutput
from app.services.gallery import GalleryManager

router = APIRouter(prefix="/gallery", tags=["gallery"])
logger = logging.getLogger(__name__)


class PromptBody(BaseModel):
    prompt: str


class SuggestionBody(BaseModel):
    suggestion: str


class RenameBody(BaseModel):
    name: str


class GalleryResponse(BaseModel):
    images: List[GeneratedImage]
    prompt: str
    refinement_target: Optional[GeneratedImage] = None
    refined_data: Optional[RefinePromptOutput] = None
    is_generating: bool
    is_refining_prompt: bool
    notifications: List[Notification] = []


def _view(gallery: GalleryManager, notifications: Optional[List[Notification]] = None) -> GalleryResponse:
    images = gallery.list_images()
    session = gallery.session
    with session.lock:
        return GalleryResponse(
            images=images,
            prompt=session.prompt,
            refinement_target=session.refinement_target,
            refined_data=session.refined_data,
            is_generating=session.is_generating,
            is_refining_prompt=session.is_refining_prompt,
            notifications=notifications or [],
        )


# ✅ 1. 내 갤러리 조회
@router.get("", response_model=GalleryResponse)
def get_gallery_view(gallery: GalleryManager = Depends(get_gallery)):
    return _view(gallery)


@router.put("/prompt", response_model=GalleryResponse)
def set_prompt(body: PromptBody, gallery: GalleryManager = Depends(get_gallery)):
    gallery.set_prompt(body.prompt)
    return _view(gallery)


# ✅ 2. 생성 또는 수정 (수정 대상이 선택되어 있으면 수정)
@router.post("/generate", response_model=GalleryResponse)
def generate_or_update(body: Optional[PromptBody] = None, gallery: GalleryManager = Depends(get_gallery)):
    if body is not None:
        gallery.set_prompt(body.prompt)
    return _view(gallery, gallery.generate_or_update())


@router.post("/refine-prompt", response_model=GalleryResponse)
def refine_prompt(body: Optional[PromptBody] = None, gallery: GalleryManager = Depends(get_gallery)):
    if body is not None:
        gallery.set_prompt(body.prompt)
    return _view(gallery, gallery.refine_prompt_text())


@router.post("/select-suggestion", response_model=GalleryResponse)
def select_suggestion(body: SuggestionBody, gallery: GalleryManager = Depends(get_gallery)):
    return _view(gallery, gallery.select_suggestion(body.suggestion))


@router.delete("/refine", response_model=GalleryResponse)
def cancel_refinement(gallery: GalleryManager = Depends(get_gallery)):
    return _view(gallery, gallery.cancel_image_refinement())


@router.get("/{image_id}", response_model=GeneratedImage)
def get_image(image_id: str, gallery: GalleryManager = Depends(get_gallery)):
    try:
        return gallery.get_image(image_id)
    except ImageNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{image_id}/refine", response_model=GalleryResponse)
def start_refinement(image_id: str, gallery: GalleryManager = Depends(get_gallery)):
    try:
        notes = gallery.start_image_refinement(image_id)
    except ImageNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return _view(gallery, notes)


@router.patch("/{image_id}/name", response_model=GalleryResponse)
def rename(image_id: str, body: RenameBody, gallery: GalleryManager = Depends(get_gallery)):
    return _view(gallery, gallery.rename_image(image_id, body.name))


# ✅ 3. 삭제
@router.delete("/{image_id}", response_model=GalleryResponse)
def delete(image_id: str, gallery: GalleryManager = Depends(get_gallery)):
    logger.info(f"🗑️ 이미지 삭제: {image_id}")
    return _view(gallery, gallery.delete_image(image_id))
