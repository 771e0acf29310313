import json
import logging
from typing import List, Optional

import requests

from app.core.config import Settings
from app.core.errors import ErrorKind, GenerationError
from app.schemas.image import RefinePromptOutput
from app.utils.data_uri import build_data_uri, split_data_uri

logger = logging.getLogger(__name__)

REFINE_PROMPT_TEMPLATE = """You are an expert prompt engineer specializing in refining prompts for image generation.

Given the original prompt from the user, your task is to:
1. Refine the prompt to be more specific, descriptive, and effective for generating high-quality images.
2. Suggest a list of related prompts that explore different aspects or variations of the original idea.

Original Prompt: {original_prompt}
Refined Prompt:
Suggested Prompts:"""

REFINE_PROMPT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "refinedPrompt": {"type": "STRING"},
        "suggestedPrompts": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["refinedPrompt", "suggestedPrompts"],
}

# 이미지 모델은 TEXT + IMAGE 둘 다 요청해야 함
IMAGE_MODALITIES = ["TEXT", "IMAGE"]


class GeminiClient:
    """
    Gemini generateContent REST API 클라이언트
    - 프롬프트 개선 (텍스트 모델, JSON 응답)
    - 이미지 생성 / 이미지 수정 (이미지 모델, data URI 반환)
    """

    def __init__(self, settings: Settings):
        self.api_key = settings.gemini_api_key
        self.api_base = settings.gemini_api_base
        self.text_model = settings.gemini_text_model
        self.image_model = settings.gemini_image_model
        self.timeout = settings.gemini_timeout

    def _generate_content(self, model: str, parts: List[dict], generation_config: dict) -> dict:
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
        }
        url = f"{self.api_base}/models/{model}:generateContent"

        logger.info(f"📡 Gemini 호출: model={model}, parts={len(parts)}")
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Gemini 요청 실패: {str(e)}")
            raise GenerationError(f"Gemini request failed: {str(e)}")

        try:
            return response.json()
        except ValueError:
            raise GenerationError("Gemini returned a non-JSON response")

    @staticmethod
    def _response_parts(response_data: dict) -> List[dict]:
        candidates = response_data.get("candidates") or []
        if not candidates:
            return []
        content = candidates[0].get("content") or {}
        return content.get("parts") or []

    def _first_media_url(self, response_data: dict) -> Optional[str]:
        for part in self._response_parts(response_data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return build_data_uri(mime_type, inline["data"])
            file_data = part.get("fileData") or part.get("file_data")
            if file_data and file_data.get("fileUri"):
                return file_data["fileUri"]
        return None

    def _extract_media(self, response_data: dict, kind: ErrorKind, failure: str) -> str:
        media_url = self._first_media_url(response_data)
        if not media_url:
            raise GenerationError(failure, kind=kind)

        if not media_url.startswith("data:"):
            logger.warning(f"Generated media URL is not a data URI: {media_url[:80]}. This might cause issues.")
        return media_url

    def refine_prompt_text(self, original_prompt: str) -> RefinePromptOutput:
        """원본 프롬프트를 개선하고 관련 프롬프트 목록을 제안"""
        response_data = self._generate_content(
            self.text_model,
            [{"text": REFINE_PROMPT_TEMPLATE.format(original_prompt=original_prompt)}],
            {"responseMimeType": "application/json", "responseSchema": REFINE_PROMPT_SCHEMA},
        )
        text = "".join(part.get("text", "") for part in self._response_parts(response_data))
        try:
            output = json.loads(text)
            if not isinstance(output, dict):
                raise ValueError("expected a JSON object")
        except ValueError:
            raise GenerationError("Prompt refinement returned malformed JSON", kind=ErrorKind.REFINEMENT_FAILED)

        return RefinePromptOutput(
            refinedPrompt=str(output.get("refinedPrompt", "")),
            suggestedPrompts=[str(p) for p in output.get("suggestedPrompts", []) if p],
        )

    def generate_image(self, prompt: str) -> str:
        """텍스트 프롬프트로 이미지 생성 -> data URI"""
        response_data = self._generate_content(
            self.image_model,
            [{"text": prompt}],
            {"responseModalities": IMAGE_MODALITIES},
        )
        return self._extract_media(
            response_data,
            ErrorKind.GENERATION_FAILED,
            "Image generation failed or returned no media URL.",
        )

    def refine_image(self, original_image_data_uri: str, refinement_prompt: str) -> str:
        """기존 이미지 + 수정 지시문 -> 새 data URI"""
        parts = split_data_uri(original_image_data_uri)
        if not parts:
            raise GenerationError("Original image is not a base64 data URI", kind=ErrorKind.REFINEMENT_FAILED)
        mime_type, payload = parts

        response_data = self._generate_content(
            self.image_model,
            [
                {"inlineData": {"mimeType": mime_type, "data": payload}},
                {"text": refinement_prompt},
            ],
            {"responseModalities": IMAGE_MODALITIES},
        )
        return self._extract_media(
            response_data,
            ErrorKind.REFINEMENT_FAILED,
            "Image refinement failed or returned no media URL.",
        )
