from __future__ import annotations

from email.message import EmailMessage
import logging
import smtplib
import ssl
import time

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


class EmailNotConfiguredError(EmailDeliveryError):
    pass


def _build_from_header(from_email: str, from_name: str | None) -> str:
    if from_name:
        return f"{from_name} <{from_email}>"
    return from_email


def build_message(
    *,
    from_email: str,
    from_name: str | None,
    to_email: str,
    subject: str,
    text_content: str,
    html_content: str | None,
) -> EmailMessage:
    message = EmailMessage()
    message["From"] = _build_from_header(from_email, from_name)
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    if html_content:
        message.add_alternative(html_content, subtype="html")
    return message


def _is_connection_issue(exc: Exception) -> bool:
    return isinstance(
        exc,
        (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            smtplib.SMTPHeloError,
            OSError,
            TimeoutError,
        ),
    )


def send_email(*, to_email: str, subject: str, text_content: str, html_content: str | None = None) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_from_email:
        raise EmailNotConfiguredError("SMTP is not configured")

    message = build_message(
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        to_email=to_email,
        subject=subject,
        text_content=text_content,
        html_content=html_content,
    )
    timeout = max(1, settings.smtp_timeout_seconds)
    retry_attempts = max(1, settings.smtp_retry_attempts)
    backoff = max(0.0, settings.smtp_retry_backoff_seconds)

    last_error: Exception | None = None
    for attempt in range(1, retry_attempts + 1):
        try:
            if settings.smtp_use_ssl:
                with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
                    if settings.smtp_username:
                        smtp.login(settings.smtp_username, settings.smtp_password or "")
                    smtp.send_message(message)
                return
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
                if settings.smtp_use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if settings.smtp_username:
                    smtp.login(settings.smtp_username, settings.smtp_password or "")
                smtp.send_message(message)
            return
        except smtplib.SMTPAuthenticationError as exc:  # pragma: no cover - transport-specific behavior
            raise EmailDeliveryError("SMTP authentication failed") from exc
        except smtplib.SMTPRecipientsRefused as exc:  # pragma: no cover - transport-specific behavior
            raise EmailDeliveryError("SMTP recipient rejected") from exc
        except smtplib.SMTPException as exc:  # pragma: no cover - transport-specific behavior
            if not _is_connection_issue(exc):
                raise EmailDeliveryError("SMTP delivery rejected") from exc
            last_error = exc
        except OSError as exc:  # pragma: no cover - transport-specific behavior
            last_error = exc
        if attempt < retry_attempts and backoff > 0:
            time.sleep(backoff * attempt)
        logger.debug("SMTP attempt %s/%s to %s failed", attempt, retry_attempts, to_email)

    raise EmailDeliveryError("SMTP connection failed") from last_error
