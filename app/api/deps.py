from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.state import AppState
from app.models.user import User
from app.services.auth import AuthGate, IdentityProvider
from app.services.gallery import GalleryManager
from app.services.store import KeyedStore


def get_state(request: Request) -> AppState:
    return request.app.state.imaginarium


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization[7:].strip() or None


def get_auth_gate(db: Session = Depends(get_db), state: AppState = Depends(get_state)) -> AuthGate:
    return AuthGate(IdentityProvider(db, state.settings), state.mailer, state.settings)


# ✅ 로그인 필요 (Bearer 토큰)
def get_current_user(
    token: Optional[str] = Depends(bearer_token),
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
) -> User:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = IdentityProvider(db, state.settings).resolve_session(token)
    if not user:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return user


def get_store(db: Session = Depends(get_db), state: AppState = Depends(get_state)) -> KeyedStore:
    return KeyedStore(db, state.settings.store_quota_bytes)


def get_gallery(
    user: User = Depends(get_current_user),
    store: KeyedStore = Depends(get_store),
    state: AppState = Depends(get_state),
) -> GalleryManager:
    return GalleryManager(state.sessions.get(user.uid), store, state.ai_client, user.uid)
