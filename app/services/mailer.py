import logging

import resend

from app.core.config import Settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


class Mailer:
    """Resend 로 인증 / 비밀번호 재설정 메일 발송"""

    def __init__(self, settings: Settings):
        self.api_key = settings.resend_api_key
        self.sender = settings.sender_email
        self.frontend_url = settings.frontend_url

    def _send(self, to: str, subject: str, html: str) -> None:
        if not self.api_key:
            # 개발 환경: 메일 대신 로그만 남김
            logger.warning(f"RESEND_API_KEY is not set; skipping email '{subject}' to {to}")
            return

        resend.api_key = self.api_key
        params = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        try:
            resend.Emails.send(params)
            logger.info(f"✅ Email '{subject}' sent to {to}")
        except Exception as e:
            logger.error(f"❌ Failed to send email '{subject}' to {to}: {e}")
            raise MailError(str(e))

    def send_verification(self, to: str, token: str) -> None:
        link = f"{self.frontend_url}/verify-email?token={token}"
        html = f"""
        <p>Welcome to Imaginarium!</p>
        <p>Please verify your email address before signing in:</p>
        <p><a href="{link}">Verify email</a></p>
        """
        self._send(to, "Verify your email for Imaginarium", html)

    def send_password_reset(self, to: str, token: str) -> None:
        link = f"{self.frontend_url}/reset-password?token={token}"
        html = f"""
        <p>We received a request to reset your Imaginarium password.</p>
        <p><a href="{link}">Reset password</a></p>
        <p>The link is valid for 1 hour. If you did not request this, ignore this email.</p>
        """
        self._send(to, "Reset your Imaginarium password", html)
