from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
import smtplib
from typing import Literal

from storeops.core.config import settings

EmailDeliveryStatus = Literal["sent", "not_configured", "failed"]


@dataclass(frozen=True)
class EmailDeliveryResult:
    status: EmailDeliveryStatus
    detail: str | None = None


def _smtp_configured() -> bool:
    return bool(settings.smtp_host and settings.smtp_sender_email)


def _build_password_reset_body(
    *,
    recipient_name: str,
    reset_token: str,
    expires_at: datetime,
    reset_link: str | None,
) -> str:
    lines = [
        f"Hi {recipient_name},",
        "",
        f"We received a request to reset your {settings.app_name} password.",
        f"This request expires: {expires_at.isoformat()}",
        "",
    ]
    if reset_link:
        lines.append(f"Reset your password: {reset_link}")
    else:
        lines.append("Use this reset token on the password reset page:")
        lines.append(reset_token)
    lines.append("")
    lines.append("If you did not request a password reset, you can ignore this email.")
    return "\n".join(lines)


def _deliver(message: EmailMessage) -> EmailDeliveryResult:
    try:
        if settings.smtp_use_ssl:
            with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=20) as server:
                if settings.smtp_username:
                    server.login(settings.smtp_username, settings.smtp_password or "")
                server.send_message(message)
        else:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as server:
                if settings.smtp_use_starttls:
                    server.starttls()
                if settings.smtp_username:
                    server.login(settings.smtp_username, settings.smtp_password or "")
                server.send_message(message)
    except Exception as exc:  # noqa: BLE001 - expose short status back to caller
        return EmailDeliveryResult(status="failed", detail=str(exc))

    return EmailDeliveryResult(status="sent", detail=None)


def send_password_reset_email(
    *,
    recipient_email: str,
    recipient_name: str,
    reset_token: str,
    expires_at: datetime,
    reset_link: str | None,
) -> EmailDeliveryResult:
    if not _smtp_configured():
        return EmailDeliveryResult(status="not_configured", detail="SMTP not configured")

    message = EmailMessage()
    message["Subject"] = f"Reset your {settings.app_name} password"
    message["From"] = settings.smtp_sender_email
    message["To"] = recipient_email
    if settings.smtp_reply_to_email:
        message["Reply-To"] = settings.smtp_reply_to_email
    message.set_content(
        _build_password_reset_body(
            recipient_name=recipient_name,
            reset_token=reset_token,
            expires_at=expires_at,
            reset_link=reset_link,
        )
    )
    return _deliver(message)
