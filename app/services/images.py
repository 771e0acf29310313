import logging
import re
import time

from app.schemas.image import GeneratedImage, RefinePromptOutput

logger = logging.getLogger(__name__)

PLACEHOLDER_BASE = "https://placehold.co/512x512.png"
GENERATE_FALLBACK_URL = f"{PLACEHOLDER_BASE}?text=Error+Generating"
REFINE_FALLBACK_URL = f"{PLACEHOLDER_BASE}?text=Error+Refining"


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_image_id(text: str, marker: str = "") -> str:
    """<epoch-ms>-[marker-]<앞 10글자, 공백은 _>"""
    stem = re.sub(r"\s", "_", text[:10])
    if marker:
        return f"{_now_ms()}-{marker}-{stem}"
    return f"{_now_ms()}-{stem}"


def make_ai_hint(text: str) -> str:
    return " ".join(text.split(" ")[:2])


def handle_refine_prompt(client, original_prompt: str) -> RefinePromptOutput:
    if not original_prompt.strip():
        return RefinePromptOutput(refinedPrompt="", suggestedPrompts=[])

    try:
        return client.refine_prompt_text(original_prompt)
    except Exception as e:
        logger.error(f"❌ Error refining prompt: {str(e)}")
        # UI를 깨지 않도록 실패 결과 반환
        return RefinePromptOutput(refinedPrompt=f"Could not refine: {original_prompt}", suggestedPrompts=[])


def handle_generate_image(client, prompt: str) -> GeneratedImage:
    """
    이미지 생성, 실패해도 예외 없이 placeholder 이미지를 돌려줌
    """
    image_id = make_image_id(prompt)
    ai_hint = make_ai_hint(prompt)

    try:
        image_data_uri = client.generate_image(prompt)
        logger.info(f"✅ 이미지 생성 완료: {image_id}")
        return GeneratedImage(
            id=image_id,
            url=image_data_uri,
            prompt=prompt,
            alt=f"AI generated image for prompt: {prompt}",
            name=prompt,
            aiHint=ai_hint,
        )
    except Exception as e:
        logger.error(f"❌ Error generating image: {str(e)}")
        return GeneratedImage(
            id=image_id,
            url=GENERATE_FALLBACK_URL,
            prompt=prompt,
            alt=f"Error generating image for prompt: {prompt}. Placeholder shown.",
            name=prompt,
            aiHint=ai_hint,
        )


def handle_refine_existing_image(client, original: GeneratedImage, refinement_prompt: str) -> GeneratedImage:
    """
    기존 이미지를 지시문으로 수정
    원본 prompt / name 은 유지, aiHint 는 지시문 기준
    """
    image_id = make_image_id(refinement_prompt, marker="refined")
    ai_hint = make_ai_hint(refinement_prompt)

    # data URI 가 아니면 모델 호출 없이 placeholder
    if not original.is_data_uri():
        logger.error("❌ Original image for refinement is not a data URI.")
        return GeneratedImage(
            id=image_id,
            url=REFINE_FALLBACK_URL,
            prompt=original.prompt,
            alt=(
                "Error refining image. Original image was not a data URI. Placeholder shown. "
                f"Original prompt: '{original.prompt}'."
            ),
            name=original.name or "",
            aiHint=ai_hint,
        )

    try:
        image_data_uri = client.refine_image(original.url, refinement_prompt)
        logger.info(f"✅ 이미지 수정 완료: {original.id} -> {image_id}")
        return GeneratedImage(
            id=image_id,
            url=image_data_uri,
            prompt=original.prompt,
            alt=(
                f"AI-refined image. Original prompt: '{original.prompt}'. "
                f"Refinement instructions: '{refinement_prompt}'."
            ),
            name=original.name or "",
            aiHint=ai_hint,
        )
    except Exception as e:
        logger.error(f"❌ Error refining image: {str(e)}")
        return GeneratedImage(
            id=image_id,
            url=REFINE_FALLBACK_URL,
            prompt=original.prompt,
            alt=(
                f"Error refining image. Original prompt: '{original.prompt}'. "
                f"Attempted refinement: '{refinement_prompt}'. Placeholder shown."
            ),
            name=original.name or "",
            aiHint=ai_hint,
        )
