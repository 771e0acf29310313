import os
import logging
from dataclasses import dataclass
from dotenv import load_dotenv

# ✅ 환경 변수 로드
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ 로거 설정
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Browser local storage gives roughly 5 MiB per origin
DEFAULT_STORE_QUOTA_BYTES = 5 * 1024 * 1024


@dataclass
class Settings:
    gemini_api_key: str = ""
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_text_model: str = "gemini-2.0-flash"
    gemini_image_model: str = "gemini-2.0-flash-exp"
    gemini_timeout: float = 120.0
    google_client_id: str = ""
    email_password_enabled: bool = True
    session_ttl_hours: int = 24
    resend_api_key: str = ""
    sender_email: str = "noreply@imaginarium.app"
    frontend_url: str = "http://localhost:3000"
    store_quota_bytes: int = DEFAULT_STORE_QUOTA_BYTES


def load_settings() -> Settings:
    """
    환경 변수에서 설정을 읽어 Settings 객체로 반환
    """
    settings = Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_api_base=os.getenv("GEMINI_API_BASE", Settings.gemini_api_base).rstrip("/"),
        gemini_text_model=os.getenv("GEMINI_TEXT_MODEL", Settings.gemini_text_model),
        gemini_image_model=os.getenv("GEMINI_IMAGE_MODEL", Settings.gemini_image_model),
        gemini_timeout=float(os.getenv("GEMINI_TIMEOUT", Settings.gemini_timeout)),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        email_password_enabled=os.getenv("EMAIL_PASSWORD_ENABLED", "true").lower() in ("1", "true", "yes"),
        session_ttl_hours=int(os.getenv("SESSION_TTL_HOURS", Settings.session_ttl_hours)),
        resend_api_key=os.getenv("RESEND_API_KEY", ""),
        sender_email=os.getenv("SENDER_EMAIL", Settings.sender_email),
        frontend_url=os.getenv("FRONTEND_URL", Settings.frontend_url).rstrip("/"),
        store_quota_bytes=int(os.getenv("STORE_QUOTA_BYTES", DEFAULT_STORE_QUOTA_BYTES)),
    )

    # ✅ 필수 환경 변수 체크 (없어도 기동은 하되 경고)
    if not settings.gemini_api_key:
        logger.warning("❌ GEMINI_API_KEY is not set; image generation will fall back to placeholders")

    return settings
