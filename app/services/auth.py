import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import AuthError
from app.models.auth_token import AuthToken
from app.models.user import User
from app.services.mailer import Mailer, MailError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
MIN_PASSWORD_LENGTH = 6

SESSION = "session"
VERIFY_EMAIL = "verify_email"
RESET_PASSWORD = "reset_password"

AUTH_ERROR_MESSAGES = {
    "auth/user-not-found": "Invalid email or password.",
    "auth/wrong-password": "Invalid email or password.",
    "auth/invalid-credential": (
        "Invalid credentials. If you recently signed up, please check your email for a verification link."
    ),
    "auth/email-already-in-use": "This email is already in use.",
    "auth/weak-password": "Password is too weak. It should be at least 6 characters.",
    "auth/popup-closed-by-user": "Google Sign-In popup was closed. Please try again.",
    "auth/cancelled-popup-request": "Google Sign-In was cancelled. Please try again.",
    "auth/operation-not-allowed": "Email/password accounts are not enabled. Please contact support.",
}


def auth_error_message(error: AuthError, default_message: str) -> str:
    """provider 에러 코드 -> 사용자 메시지"""
    if error.code in AUTH_ERROR_MESSAGES:
        return AUTH_ERROR_MESSAGES[error.code]
    if error.message and error.message != error.code:
        return error.message
    return default_message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite 는 tz 정보 없이 돌려줌
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class UserInfo(BaseModel):
    uid: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool
    provider: str


class AuthState(BaseModel):
    user: Optional[UserInfo] = None
    loading: bool = False


class AuthResult(BaseModel):
    success: bool
    message: str
    user: Optional[UserInfo] = None
    access_token: Optional[str] = None


def user_info(user: User) -> UserInfo:
    return UserInfo(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        email_verified=bool(user.email_verified),
        provider=user.provider,
    )


class IdentityProvider:
    """
    계정 / 토큰 저장소 (SQLAlchemy + passlib bcrypt)
    실패는 Firebase 스타일 코드의 AuthError 로 올림
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    # ✅ 토큰

    def issue_token(self, user: User, purpose: str, ttl: timedelta) -> str:
        token = secrets.token_urlsafe(32) if purpose == SESSION else uuid.uuid4().hex
        self.db.add(AuthToken(token=token, purpose=purpose, user_id=user.id, expires_at=_utcnow() + ttl))
        self.db.commit()
        return token

    def _find_token(self, token: str, purpose: str) -> Optional[AuthToken]:
        record = self.db.query(AuthToken).filter(AuthToken.token == token, AuthToken.purpose == purpose).first()
        if not record or record.used:
            return None
        if record.expires_at and _as_utc(record.expires_at) < _utcnow():
            return None
        return record

    def consume_token(self, token: str, purpose: str) -> User:
        record = self._find_token(token, purpose)
        if not record:
            raise AuthError("auth/invalid-action-code", "This link is invalid or has expired.")
        record.used = True
        self.db.commit()
        return self.db.query(User).filter(User.id == record.user_id).first()

    def resolve_session(self, token: str) -> Optional[User]:
        record = self._find_token(token, SESSION)
        if not record:
            return None
        return self.db.query(User).filter(User.id == record.user_id).first()

    def revoke_session(self, token: str) -> None:
        record = self.db.query(AuthToken).filter(AuthToken.token == token, AuthToken.purpose == SESSION).first()
        if record:
            record.used = True
            self.db.commit()

    # ✅ 계정

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def create_user(self, email: str, password: str) -> User:
        if not self.settings.email_password_enabled:
            raise AuthError("auth/operation-not-allowed")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("auth/weak-password")
        if self.find_by_email(email):
            raise AuthError("auth/email-already-in-use")

        user = User(
            uid=uuid.uuid4().hex,
            email=email.strip().lower(),
            hashed_password=pwd_context.hash(password),
            provider="password",
            email_verified=False,
        )
        return self._insert_user(user)

    def _insert_user(self, user: User) -> User:
        # 동시 가입은 email unique 제약에서 걸림
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"❌ 이미 가입된 이메일: {user.email}")
            raise AuthError("auth/email-already-in-use")
        self.db.refresh(user)
        return user

    def check_password(self, email: str, password: str) -> User:
        if not self.settings.email_password_enabled:
            raise AuthError("auth/operation-not-allowed")
        user = self.find_by_email(email)
        if not user:
            raise AuthError("auth/user-not-found")
        if not user.hashed_password or not pwd_context.verify(password, user.hashed_password):
            raise AuthError("auth/wrong-password")
        return user

    def set_password(self, user: User, password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("auth/weak-password")
        user.hashed_password = pwd_context.hash(password)
        self.db.commit()

    def mark_verified(self, user: User) -> None:
        user.email_verified = True
        self.db.commit()

    def google_user(self, id_token: Optional[str]) -> User:
        """
        Google ID 토큰 검증 (tokeninfo 엔드포인트) 후 계정 조회/생성
        """
        if not id_token:
            raise AuthError("auth/popup-closed-by-user")

        try:
            response = requests.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token}, timeout=10)
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Google tokeninfo 요청 실패: {str(e)}")
            raise AuthError("auth/network-request-failed", "Could not reach Google. Please try again.")

        if response.status_code != 200:
            raise AuthError("auth/invalid-credential")
        try:
            claims = response.json()
        except ValueError:
            logger.error("❌ Google tokeninfo 응답이 JSON 이 아님")
            raise AuthError("auth/invalid-credential")
        if not isinstance(claims, dict):
            raise AuthError("auth/invalid-credential")

        if self.settings.google_client_id and claims.get("aud") != self.settings.google_client_id:
            raise AuthError("auth/invalid-credential")
        email = claims.get("email")
        if not email:
            raise AuthError("auth/invalid-credential")

        user = self.find_by_email(email)
        if user is None:
            user = User(
                uid=uuid.uuid4().hex,
                email=email.strip().lower(),
                display_name=claims.get("name"),
                provider="google.com",
                email_verified=str(claims.get("email_verified", "")).lower() == "true",
            )
            return self._insert_user(user)
        if str(claims.get("email_verified", "")).lower() == "true":
            user.email_verified = True
        self.db.commit()
        self.db.refresh(user)
        return user


class AuthGate:
    """
    로그인 전략 3가지 (이메일 로그인 / 이메일 가입 / Google OAuth) + 로그아웃 / 비밀번호 재설정
    모든 결과는 AuthResult 로 반환 (예외를 밖으로 던지지 않음)
    """

    def __init__(self, provider: IdentityProvider, mailer: Mailer, settings: Settings):
        self.provider = provider
        self.mailer = mailer
        self.settings = settings

    def _session_ttl(self) -> timedelta:
        return timedelta(hours=self.settings.session_ttl_hours)

    def current_state(self, token: Optional[str]) -> AuthState:
        user = self.provider.resolve_session(token) if token else None
        return AuthState(user=user_info(user) if user else None, loading=False)

    def sign_up_with_email(self, email: str, password: str) -> AuthResult:
        try:
            user = self.provider.create_user(email, password)
        except AuthError as e:
            logger.error(f"❌ Sign-up failed for {email}: {e.code}")
            return AuthResult(success=False, message=auth_error_message(e, "Could not sign up with email."))

        # 가입만으로는 세션 없음, 이메일 인증 후 로그인
        token = self.provider.issue_token(user, VERIFY_EMAIL, timedelta(days=3))
        try:
            self.mailer.send_verification(user.email, token)
        except MailError:
            return AuthResult(
                success=False,
                message="Your account was created, but the verification email could not be sent. Please try again later.",
                user=user_info(user),
            )

        logger.info(f"✅ 회원가입 완료: {user.uid}")
        return AuthResult(
            success=True,
            message=(
                "A verification email has been sent. "
                "Please check your inbox and verify your account before signing in."
            ),
            user=user_info(user),
        )

    def sign_in_with_email(self, email: str, password: str) -> AuthResult:
        try:
            user = self.provider.check_password(email, password)
        except AuthError as e:
            logger.error(f"❌ Sign-in failed for {email}: {e.code}")
            return AuthResult(success=False, message=auth_error_message(e, "Could not sign in with email."))

        if not user.email_verified:
            # 인증 안 된 계정은 바로 로그아웃 처리 (세션 발급 안 함)
            logger.info(f"Unverified sign-in attempt for {user.uid}; signed back out")
            return AuthResult(
                success=False,
                message=(
                    "Please verify your email address before signing in. "
                    "Check your inbox for the verification link."
                ),
            )

        token = self.provider.issue_token(user, SESSION, self._session_ttl())
        logger.info(f"✅ 로그인 성공: {user.uid}")
        return AuthResult(success=True, message="Signed in.", user=user_info(user), access_token=token)

    def sign_in_with_google(self, id_token: Optional[str]) -> AuthResult:
        try:
            user = self.provider.google_user(id_token)
        except AuthError as e:
            logger.error(f"❌ Google sign-in failed: {e.code}")
            return AuthResult(success=False, message=auth_error_message(e, "Could not sign in with Google."))

        token = self.provider.issue_token(user, SESSION, self._session_ttl())
        logger.info(f"✅ Google 로그인 성공: {user.uid}")
        return AuthResult(success=True, message="Signed in.", user=user_info(user), access_token=token)

    def sign_out(self, token: str) -> AuthResult:
        self.provider.revoke_session(token)
        return AuthResult(success=True, message="Signed out.")

    def verify_email(self, token: str) -> AuthResult:
        try:
            user = self.provider.consume_token(token, VERIFY_EMAIL)
        except AuthError as e:
            return AuthResult(success=False, message=auth_error_message(e, "Could not verify email."))
        self.provider.mark_verified(user)
        logger.info(f"✅ 이메일 인증 완료: {user.uid}")
        return AuthResult(success=True, message="Email verified. You can now sign in.", user=user_info(user))

    def send_password_reset(self, email: str) -> AuthResult:
        # 이메일 존재 여부는 노출하지 않음
        generic = "If the email is registered, you will receive a password reset link."
        user = self.provider.find_by_email(email)
        if not user:
            return AuthResult(success=True, message=generic)

        token = self.provider.issue_token(user, RESET_PASSWORD, timedelta(hours=1))
        try:
            self.mailer.send_password_reset(user.email, token)
        except MailError:
            return AuthResult(success=False, message="Could not send the reset email. Please try again later.")
        return AuthResult(success=True, message=generic)

    def reset_password(self, token: str, new_password: str) -> AuthResult:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            return AuthResult(success=False, message=AUTH_ERROR_MESSAGES["auth/weak-password"])
        try:
            user = self.provider.consume_token(token, RESET_PASSWORD)
            self.provider.set_password(user, new_password)
        except AuthError as e:
            return AuthResult(success=False, message=auth_error_message(e, "Could not reset password."))
        logger.info(f"✅ 비밀번호 재설정 완료: {user.uid}")
        return AuthResult(success=True, message="Password updated. You can now sign in.")
