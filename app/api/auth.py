import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from app.api.deps import bearer_token, get_auth_gate, get_state
from app.core.state import AppState
from app.services.auth import AuthGate, AuthResult, AuthState

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class EmailCredentials(BaseModel):
    email: EmailStr
    password: str


class GoogleSignIn(BaseModel):
    id_token: Optional[str] = None


class TokenRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


def _ok_or_400(result: AuthResult, status_code: int = 400) -> AuthResult:
    if not result.success:
        raise HTTPException(status_code=status_code, detail=result.message)
    return result


# ✅ 회원가입 API (인증 메일 발송, 세션 없음)
@router.post("/register", response_model=AuthResult)
def register(data: EmailCredentials, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.sign_up_with_email(data.email, data.password))


# ✅ 로그인 API (인증된 이메일만)
@router.post("/login", response_model=AuthResult)
def login(data: EmailCredentials, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.sign_in_with_email(data.email, data.password), status_code=401)


# ✅ Google 로그인 (팝업에서 받은 ID 토큰)
@router.post("/google", response_model=AuthResult)
def google_sign_in(data: GoogleSignIn, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.sign_in_with_google(data.id_token), status_code=401)


# ✅ 로그아웃 (세션 폐기 + 갤러리 작업 상태 정리)
@router.post("/logout", response_model=AuthResult)
def logout(
    token: Optional[str] = Depends(bearer_token),
    gate: AuthGate = Depends(get_auth_gate),
    state: AppState = Depends(get_state),
):
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    current = gate.current_state(token)
    result = gate.sign_out(token)
    if current.user:
        state.sessions.drop(current.user.uid)
    return result


@router.post("/verify-email", response_model=AuthResult)
def verify_email(data: TokenRequest, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.verify_email(data.token))


@router.post("/forgot-password", response_model=AuthResult)
def forgot_password(data: ForgotPasswordRequest, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.send_password_reset(data.email), status_code=500)


@router.post("/reset-password", response_model=AuthResult)
def reset_password(data: ResetPasswordRequest, gate: AuthGate = Depends(get_auth_gate)):
    return _ok_or_400(gate.reset_password(data.token, data.password))


# ✅ 현재 로그인 상태 (user + loading)
@router.get("/me", response_model=AuthState)
def me(token: Optional[str] = Depends(bearer_token), gate: AuthGate = Depends(get_auth_gate)):
    return gate.current_state(token)
