from dataclasses import dataclass, field

from app.core.config import Settings
from app.services.gallery import SessionRegistry
from app.services.genai import GeminiClient
from app.services.mailer import Mailer


@dataclass
class AppState:
    """
    앱 시작 시 한 번 만드는 공유 상태 (composition root)
    라우터는 request.app.state.imaginarium 으로 받음
    """
    settings: Settings
    ai_client: GeminiClient
    mailer: Mailer
    sessions: SessionRegistry = field(default_factory=SessionRegistry)


def build_state(settings: Settings) -> AppState:
    # 로그인 세션 만료 시간이 지나도록 접근 없는 갤러리 세션은 정리
    return AppState(
        settings=settings,
        ai_client=GeminiClient(settings),
        mailer=Mailer(settings),
        sessions=SessionRegistry(idle_seconds=settings.session_ttl_hours * 3600),
    )
