import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_current_user, get_state
from app.core.state import AppState
from app.models.user import User
from app.schemas.image import GeneratedImage, RefinePromptOutput
from app.services.images import handle_generate_image, handle_refine_existing_image, handle_refine_prompt

logger = logging.getLogger(__name__)

# ✅ FastAPI 라우터 (갤러리 상태 없이 모델만 호출)
router = APIRouter(prefix="/ai", tags=["ai"])


# ✅ 요청 모델
class PromptRequest(BaseModel):
    prompt: str


class RefineImageRequest(BaseModel):
    image: GeneratedImage
    refinement_prompt: str


@router.post("/refine-prompt", response_model=RefinePromptOutput)
def refine_prompt(request: PromptRequest, user: User = Depends(get_current_user), state: AppState = Depends(get_state)):
    logger.info(f"📡 프롬프트 개선 요청: user={user.uid}")
    return handle_refine_prompt(state.ai_client, request.prompt)


# ✅ 이미지 생성 (실패해도 placeholder 이미지 반환)
@router.post("/generate-image", response_model=GeneratedImage)
def generate_image(request: PromptRequest, user: User = Depends(get_current_user), state: AppState = Depends(get_state)):
    if not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Please enter a prompt.")
    logger.info(f"📡 이미지 생성 요청: user={user.uid}")
    return handle_generate_image(state.ai_client, request.prompt)


@router.post("/refine-image", response_model=GeneratedImage)
def refine_image(request: RefineImageRequest, user: User = Depends(get_current_user), state: AppState = Depends(get_state)):
    if not request.refinement_prompt.strip():
        raise HTTPException(status_code=400, detail="Please enter a prompt.")
    logger.info(f"📡 이미지 수정 요청: user={user.uid}, image={request.image.id}")
    return handle_refine_existing_image(state.ai_client, request.image, request.refinement_prompt)
