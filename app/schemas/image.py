from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class GeneratedImage(BaseModel):
    """
    생성된 이미지 한 장 (갤러리 항목)
    url은 data URI 또는 http(s) URL (placeholder / 업로드된 이미지)
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    prompt: str
    alt: str
    name: str = ""
    ai_hint: Optional[str] = Field(default=None, alias="aiHint")

    def is_data_uri(self) -> bool:
        return self.url.startswith("data:")


class RefinePromptOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refined_prompt: str = Field(alias="refinedPrompt")
    suggested_prompts: List[str] = Field(default_factory=list, alias="suggestedPrompts")


class UploadResult(BaseModel):
    success: bool
    message: str
    url: Optional[str] = None


class Notification(BaseModel):
    """토스트 알림 (title / description / variant)"""
    title: str
    description: str
    variant: str = "default"  # default | destructive


def dump_image(image: GeneratedImage) -> dict:
    # 저장 포맷은 camelCase, aiHint 없으면 생략
    return image.model_dump(by_alias=True, exclude_none=True)
