import json
import logging
import random
import string
import threading
import time
from typing import Dict, List, Optional
from urllib.parse import quote

from app.core.errors import ImageNotFoundError, QuotaExceededError, StorageError
from app.schemas.image import GeneratedImage, Notification, RefinePromptOutput, dump_image
from app.services.images import handle_generate_image, handle_refine_existing_image, handle_refine_prompt
from app.services.store import KeyedStore

logger = logging.getLogger(__name__)

MAX_STORED_IMAGES = 10
GALLERY_KEY = "generatedImages"
UNTITLED_PROMPT = "Untitled Prompt"
INVALID_IMAGE_URL = "https://placehold.co/512x512.png?text=Invalid+Image&seed={seed}"


def notify(title: str, description: str, variant: str = "default") -> Notification:
    return Notification(title=title, description=description, variant=variant)


# ✅ 순수 reducer 함수들 (I/O 없음)

def prepend(images: List[GeneratedImage], image: GeneratedImage) -> List[GeneratedImage]:
    return [image] + list(images)


def replace_or_prepend(images: List[GeneratedImage], target_id: str, image: GeneratedImage) -> List[GeneratedImage]:
    """target_id 항목을 같은 위치에서 교체, 없으면 맨 앞에 추가"""
    if not any(img.id == target_id for img in images):
        return prepend(images, image)
    return [image if img.id == target_id else img for img in images]


def remove_image(images: List[GeneratedImage], image_id: str) -> List[GeneratedImage]:
    return [img for img in images if img.id != image_id]


def rename_image(images: List[GeneratedImage], image_id: str, name: str) -> List[GeneratedImage]:
    return [img.model_copy(update={"name": name}) if img.id == image_id else img for img in images]


def truncate(images: List[GeneratedImage], limit: int = MAX_STORED_IMAGES) -> List[GeneratedImage]:
    return list(images[:limit])


def _fallback_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=13))
    return f"{int(time.time() * 1000)}-{suffix}"


def repair_images(raw_images: list) -> List[GeneratedImage]:
    """
    저장된 목록의 깨진 항목을 기본값으로 복구 (거부하지 않음)
    """
    repaired = []
    for raw in raw_images:
        entry = raw if isinstance(raw, dict) else {}

        image_id = entry.get("id")
        if not isinstance(image_id, str) or not image_id or image_id == "undefined":
            image_id = _fallback_id()
        prompt = entry.get("prompt") if isinstance(entry.get("prompt"), str) and entry.get("prompt") else UNTITLED_PROMPT
        url = entry.get("url") if isinstance(entry.get("url"), str) and entry.get("url") else None
        alt = entry.get("alt") if isinstance(entry.get("alt"), str) and entry.get("alt") else None
        ai_hint = entry.get("aiHint") if isinstance(entry.get("aiHint"), str) else None

        repaired.append(GeneratedImage(
            id=image_id,
            url=url or INVALID_IMAGE_URL.format(seed=quote(image_id, safe="")),
            prompt=prompt,
            alt=alt or f"Image for prompt: {prompt}",
            name=entry["name"] if isinstance(entry.get("name"), str) else "",
            aiHint=ai_hint,
        ))
    return repaired


class GallerySession:
    """
    사용자 한 명의 작업 상태 (갤러리 + 프롬프트 입력창 + 수정 대상)
    """

    def __init__(self):
        self.images: List[GeneratedImage] = []
        self.prompt = ""
        self.refinement_target: Optional[GeneratedImage] = None
        self.refined_data: Optional[RefinePromptOutput] = None
        self.is_generating = False
        self.is_refining_prompt = False
        self.loaded = False
        self.last_seen = time.monotonic()
        self.lock = threading.RLock()


class SessionRegistry:
    """
    user uid -> GallerySession
    idle_seconds 동안 접근 없는 세션은 다음 get() 때 정리 (갤러리는 저장소에서 다시 로드됨)
    """

    def __init__(self, idle_seconds: Optional[float] = None):
        self.idle_seconds = idle_seconds
        self._sessions: Dict[str, GallerySession] = {}
        self._lock = threading.Lock()

    def _evict_idle(self, now: float) -> None:
        if not self.idle_seconds:
            return
        expired = [uid for uid, s in self._sessions.items()
                   if now - s.last_seen > self.idle_seconds and not s.is_generating and not s.is_refining_prompt]
        for uid in expired:
            del self._sessions[uid]
        if expired:
            logger.info(f"🧹 유휴 갤러리 세션 정리: {len(expired)}개")

    def get(self, user_id: str) -> GallerySession:
        now = time.monotonic()
        with self._lock:
            self._evict_idle(now)
            if user_id not in self._sessions:
                self._sessions[user_id] = GallerySession()
            session = self._sessions[user_id]
            session.last_seen = now
            return session

    def drop(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class GalleryManager:
    """
    갤러리 오케스트레이션: 생성 / 수정 / 이름 변경 / 삭제 후 매번 저장
    원격 호출 실패는 예외 대신 알림(Notification) 으로 돌려줌
    같은 대상에 대한 동시 요청은 마지막에 끝난 결과가 남음
    """

    def __init__(self, session: GallerySession, store: KeyedStore, client, user_id: str):
        self.session = session
        self.store = store
        self.client = client
        self.user_id = user_id

    @property
    def storage_key(self) -> str:
        return f"{GALLERY_KEY}_{self.user_id}"

    # ✅ 저장 / 로드

    def load(self) -> List[GeneratedImage]:
        """저장소에서 목록 로드, 파싱 실패시 저장값 삭제"""
        with self.session.lock:
            raw = self.store.get_item(self.storage_key)
            images: List[GeneratedImage] = []
            if raw:
                try:
                    parsed = json.loads(raw)
                    if not isinstance(parsed, list):
                        raise ValueError("stored gallery is not a list")
                    images = truncate(repair_images(parsed))
                except ValueError as e:
                    logger.error(f"❌ Error parsing images from storage for user {self.user_id}: {str(e)}")
                    self.store.remove_item(self.storage_key)
                    images = []
            self.session.images = images
            self.session.loaded = True
            logger.info(f"📦 사용자 {self.user_id} 갤러리 로드: {len(images)}개")
            return list(images)

    def ensure_loaded(self) -> None:
        if not self.session.loaded:
            self.load()

    def persist(self) -> List[Notification]:
        """
        최근 MAX_STORED_IMAGES 개만 저장
        용량 초과시 가장 최근 1개만 다시 저장 시도
        """
        with self.session.lock:
            images_to_persist = truncate(self.session.images)
        payload = json.dumps([dump_image(img) for img in images_to_persist])

        try:
            self.store.set_item(self.storage_key, payload)
            return []
        except QuotaExceededError as e:
            logger.error(f"❌ Error saving images to storage (quota): {e.message}")
            notes = [notify(
                "Local Storage Full",
                "Could not save all recent images. Trying to save just the latest.",
                "destructive",
            )]
        except StorageError as e:
            logger.error(f"❌ Error saving images to storage: {e.message}")
            return [notify("Storage Error", "An unexpected error occurred while saving images.", "destructive")]

        try:
            if images_to_persist:
                self.store.set_item(self.storage_key, json.dumps([dump_image(images_to_persist[0])]))
            else:
                self.store.remove_item(self.storage_key)
        except StorageError as e:
            logger.error(f"❌ Failed to save even the single latest image after quota error: {e.message}")
            notes.append(notify(
                "Storage Critically Full",
                "Unable to save any images. Please clear some space.",
                "destructive",
            ))
        return notes

    # ✅ 조회

    def list_images(self) -> List[GeneratedImage]:
        self.ensure_loaded()
        with self.session.lock:
            return list(self.session.images)

    def get_image(self, image_id: str) -> GeneratedImage:
        self.ensure_loaded()
        with self.session.lock:
            for img in self.session.images:
                if img.id == image_id:
                    return img
        raise ImageNotFoundError(image_id)

    # ✅ 프롬프트 입력 / 제안

    def set_prompt(self, prompt: str) -> None:
        with self.session.lock:
            self.session.prompt = prompt

    def refine_prompt_text(self) -> List[Notification]:
        with self.session.lock:
            prompt = self.session.prompt
            if not prompt.strip():
                return [notify("Prompt empty", "Please enter a prompt to refine.", "destructive")]
            if self.session.is_refining_prompt:
                return [notify("Busy", "A prompt refinement is already in progress.", "destructive")]

            notes = []
            self.session.is_refining_prompt = True
            self.session.refined_data = None
            # 텍스트 개선과 이미지 수정은 동시에 불가
            if self.session.refinement_target is not None:
                self.session.refinement_target = None
                notes.append(notify("Exited Image Refinement", "Now refining prompt text for a new image."))

        try:
            result = handle_refine_prompt(self.client, prompt)
            with self.session.lock:
                self.session.refined_data = result
            if result.refined_prompt or result.suggested_prompts:
                notes.append(notify("Prompt Text Refined!", "Suggestions are ready for you."))
            else:
                notes.append(notify("No Text Refinements", "Could not find specific text refinements for this prompt."))
        except Exception as e:
            logger.error(f"❌ Error refining prompt text: {str(e)}")
            notes.append(notify("Prompt Text Refinement Failed", "Something went wrong. Please try again.", "destructive"))
        finally:
            with self.session.lock:
                self.session.is_refining_prompt = False
        return notes

    def select_suggestion(self, suggestion: str) -> List[Notification]:
        with self.session.lock:
            self.session.prompt = suggestion
            self.session.refined_data = None
        return [notify("Prompt Updated", "The selected suggestion is now in the prompt box.")]

    # ✅ 생성 / 수정

    def start_image_refinement(self, image_id: str) -> List[Notification]:
        image = self.get_image(image_id)
        with self.session.lock:
            self.session.prompt = ""
            self.session.refinement_target = image
            self.session.refined_data = None
        return [notify(
            "Refining Image",
            f"Enter changes for \"{image.name or 'this image'}\" and click 'Update Image'.",
        )]

    def cancel_image_refinement(self) -> List[Notification]:
        with self.session.lock:
            self.session.refinement_target = None
            self.session.prompt = ""
        return [notify("Refinement Cancelled", "Back to generating new images.")]

    def generate_or_update(self) -> List[Notification]:
        """
        수정 대상이 있으면 해당 이미지를 수정해서 같은 자리에 교체
        없으면 새 이미지를 생성해서 맨 앞에 추가
        """
        self.ensure_loaded()
        with self.session.lock:
            prompt = self.session.prompt
            if not prompt.strip():
                return [notify("Prompt empty", "Please enter a prompt.", "destructive")]
            if self.session.is_generating:
                return [notify("Busy", "An image is already being generated. Please wait.", "destructive")]
            self.session.is_generating = True
            self.session.refined_data = None
            target = self.session.refinement_target

        try:
            if target is not None:
                updated = handle_refine_existing_image(self.client, target, prompt)
                with self.session.lock:
                    self.session.images = truncate(replace_or_prepend(self.session.images, target.id, updated))
                    self.session.refinement_target = None
                    self.session.prompt = ""
                notes = [notify("Image Updated!", "Your refined image has been updated in the gallery.")]
            else:
                new_image = handle_generate_image(self.client, prompt)
                with self.session.lock:
                    self.session.images = truncate(prepend(self.session.images, new_image))
                    self.session.prompt = ""
                notes = [notify("Image Generated!", "Your new image has been added to the gallery.")]
        except Exception as e:
            logger.error(f"❌ Error generating/updating image: {str(e)}")
            title = "Update Failed" if target is not None else "Generation Failed"
            return [notify(title, "Something went wrong. Please try again.", "destructive")]
        finally:
            with self.session.lock:
                self.session.is_generating = False

        return notes + self.persist()

    # ✅ 삭제 / 이름 변경

    def delete_image(self, image_id: str) -> List[Notification]:
        self.ensure_loaded()
        with self.session.lock:
            self.session.images = remove_image(self.session.images, image_id)
            target = self.session.refinement_target
            if target is not None and target.id == image_id:
                self.session.refinement_target = None
                self.session.prompt = ""
                notes = [notify("Image Deleted", "The image has been removed and refinement mode exited.")]
            else:
                notes = [notify("Image Deleted", "The image has been removed from your gallery.")]
        return notes + self.persist()

    def rename_image(self, image_id: str, name: str) -> List[Notification]:
        self.ensure_loaded()
        with self.session.lock:
            self.session.images = rename_image(self.session.images, image_id, name)
        return self.persist()
