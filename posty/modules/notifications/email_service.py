"""Email service for letter notifications via SMTP.

Security notes:
- All email headers are sanitized to prevent injection attacks
- Stored SMTP passwords are Fernet-encrypted and only decrypted here
- No credentials are ever logged

Delivery is best-effort: send_letter_notification() never raises and
reports the result as a NotificationOutcome.
"""

import asyncio
import logging
import re
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from pathlib import Path
from typing import Any, Dict, Optional

import html2text
import sentry_sdk
from cryptography.fernet import InvalidToken
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel

from posty.core.config import settings
from posty.core.security import decrypt_secret, mask_email
from posty.models.mail_item import MailItem
from posty.models.notification import NotificationOutcome, SkipReason
from posty.models.user import User
from posty.models.user_settings import UserSettings
from posty.modules.mail_items.intake import mime_type_for, upload_path

logger = logging.getLogger(__name__)

LETTER_SUBJECT = "Your scanned letter from Posty"
TEST_SUBJECT = "Posty test email"


class SmtpConfig(BaseModel):
    """Resolved SMTP transport settings (password in plaintext, never log)."""
    host: str
    port: int
    secure: bool = False
    username: str
    password: str
    from_name: str = "Posty"
    from_email: str

    def __repr__(self):
        return f"<SmtpConfig {self.host}:{self.port} secure={self.secure}>"


# Initialize Jinja2 environment for email templates
_template_env = None


def get_template_env() -> Environment:
    """Get or create Jinja2 environment for email templates."""
    global _template_env
    if _template_env is None:
        template_dir = Path(__file__).parent.parent.parent / "templates" / "emails"
        _template_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
    return _template_env


def render_email_template(template_name: str, data: Dict[str, Any]) -> tuple[str, str]:
    """
    Render email template (HTML + text version).

    Returns:
        Tuple of (html_body, text_body)
    """
    env = get_template_env()
    template = env.get_template(template_name)
    html_body = template.render(**data)

    # Convert HTML to plain text for text_body
    h = html2text.HTML2Text()
    h.ignore_links = False
    h.ignore_images = True
    h.body_width = 78
    text_body = h.handle(html_body)

    return html_body, text_body


def sanitize_email_header(value: str) -> str:
    """
    Sanitize email header to prevent injection attacks.

    Removes newlines, carriage returns, null bytes, and control characters
    that could be used for header injection.

    Example:
        >>> sanitize_email_header("user@example.com\\r\\nBcc: attacker@evil.com")
        'user@example.comBcc: attacker@evil.com'
    """
    sanitized = re.sub(r"[\r\n\0]", "", value)
    sanitized = re.sub(r"[\x00-\x1f\x7f]", "", sanitized)
    return sanitized.strip()


def validate_email(email: str) -> bool:
    """Basic email validation."""
    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


def default_smtp_config() -> Optional[SmtpConfig]:
    """Process-wide SMTP settings, or None if credentials are missing."""
    if not (settings.SMTP_HOST and settings.SMTP_USER and settings.SMTP_PASS):
        return None
    return SmtpConfig(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        secure=settings.SMTP_SECURE,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASS,
        from_name=settings.FROM_NAME,
        from_email=settings.FROM_EMAIL or settings.SMTP_USER,
    )


def resolve_smtp_config(user_settings: Optional[UserSettings]) -> Optional[SmtpConfig]:
    """
    Per-user SMTP config when complete, otherwise the process-wide defaults.

    A stored password that no longer decrypts is treated as unconfigured.
    """
    if user_settings is not None and user_settings.has_smtp_config:
        try:
            password = decrypt_secret(user_settings.encrypted_smtp_password)
        except (InvalidToken, ValueError):
            logger.warning(
                f"Stored SMTP password for user {user_settings.user_id} could not be decrypted",
                extra={"user_id": user_settings.user_id},
            )
        else:
            return SmtpConfig(
                host=user_settings.smtp_host,
                port=user_settings.smtp_port,
                secure=bool(user_settings.smtp_secure),
                username=user_settings.smtp_username,
                password=password,
                from_name=user_settings.smtp_from_name or settings.FROM_NAME,
                from_email=user_settings.smtp_from_email or user_settings.smtp_username,
            )
    return default_smtp_config()


def open_smtp_connection(config: SmtpConfig) -> smtplib.SMTP:
    """
    Open an authenticated SMTP connection (blocking).

    Implicit TLS when config.secure, otherwise STARTTLS if the server offers it.
    """
    context = ssl.create_default_context()
    timeout = settings.SMTP_TIMEOUT_SECONDS

    if config.secure:
        smtp = smtplib.SMTP_SSL(config.host, config.port, context=context, timeout=timeout)
    else:
        smtp = smtplib.SMTP(config.host, config.port, timeout=timeout)

    try:
        if not config.secure:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls(context=context)
                smtp.ehlo()
        smtp.login(config.username, config.password)
    except Exception:
        smtp.close()
        raise
    return smtp


def build_message(
    config: SmtpConfig,
    to: str,
    subject: str,
    html_body: str,
    text_body: str,
    attachment_path: Optional[Path] = None,
    attachment_name: Optional[str] = None,
) -> EmailMessage:
    """Assemble a multipart message with sanitized headers and an optional attachment."""
    msg = EmailMessage()
    msg["From"] = formataddr(
        (sanitize_email_header(config.from_name), sanitize_email_header(config.from_email))
    )
    msg["To"] = sanitize_email_header(to)
    msg["Subject"] = sanitize_email_header(subject)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=config.from_email.split("@")[-1] or None)

    msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")

    if attachment_path is not None:
        name = attachment_name or attachment_path.name
        maintype, subtype = mime_type_for(name).split("/", 1)
        msg.add_attachment(
            attachment_path.read_bytes(),
            maintype=maintype,
            subtype=subtype,
            filename=sanitize_email_header(name),
        )
    return msg


def _deliver(config: SmtpConfig, msg: EmailMessage) -> None:
    """Synchronous send, run in a worker thread."""
    with open_smtp_connection(config) as smtp:
        smtp.send_message(msg)


def letter_template_data(user: User, item: MailItem) -> Dict[str, Any]:
    return {
        "user_name": user.display_name,
        "title": item.title,
        "file_name": item.file_name,
        "upload_date": item.upload_date.strftime("%d %B %Y, %H:%M") if item.upload_date else "",
        "category": item.category,
        "reminder_date": item.reminder_date.isoformat() if item.reminder_date else None,
        "summary": item.summary,
        "extracted_text": item.extracted_text,
        "dashboard_link": f"{settings.APP_URL}/",
    }


async def send_letter_notification(
    user: User,
    item: MailItem,
    user_settings: Optional[UserSettings] = None,
) -> NotificationOutcome:
    """
    Email the user a copy of a newly processed letter.

    Never raises. Preconditions (toggle on, recipient present, attachment on
    disk, SMTP configured) are checked first; every failure becomes a
    SKIPPED outcome with a distinguishing log message.

    Usage:
        outcome = await send_letter_notification(user, item, user_settings)
        if not outcome.delivered:
            logger.info(outcome.reason)
    """
    log_extra = {"user_id": user.id, "mail_item_id": item.id}

    if user_settings is not None and not user_settings.email_notifications:
        logger.info("Email notifications disabled, skipping", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.NOTIFICATIONS_DISABLED)

    if not user.email or not validate_email(sanitize_email_header(user.email)):
        logger.warning("No valid recipient address, skipping notification", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.NO_RECIPIENT)

    attachment = upload_path(item.stored_file_name)
    if attachment is None or not attachment.is_file():
        logger.warning(
            f"Attachment {item.stored_file_name} missing, skipping notification",
            extra=log_extra,
        )
        return NotificationOutcome.skipped(SkipReason.ATTACHMENT_MISSING)

    config = resolve_smtp_config(user_settings)
    if config is None:
        logger.warning("SMTP not configured, skipping notification", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.SMTP_NOT_CONFIGURED)

    try:
        html_body, text_body = render_email_template("letter_notification.html", letter_template_data(user, item))
        msg = build_message(
            config,
            to=user.email,
            subject=LETTER_SUBJECT,
            html_body=html_body,
            text_body=text_body,
            attachment_path=attachment,
            attachment_name=item.file_name,
        )
        # Run blocking SMTP in thread pool to avoid blocking event loop
        await asyncio.to_thread(_deliver, config, msg)
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed for {config!r}: {e.smtp_code}", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.SMTP_AUTH_FAILED, detail=str(e.smtp_code))
    except (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected) as e:
        logger.error(f"SMTP connection failed for {config!r}: {e}", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.SMTP_CONNECTION_FAILED, detail=str(e))
    except smtplib.SMTPException as e:
        logger.error(f"SMTP delivery failed: {e}", extra=log_extra)
        sentry_sdk.capture_exception(e)
        return NotificationOutcome.skipped(SkipReason.DELIVERY_FAILED, detail=str(e))
    except OSError as e:
        # Socket errors, DNS failures and timeouts
        logger.error(f"SMTP connection failed for {config!r}: {e}", extra=log_extra)
        return NotificationOutcome.skipped(SkipReason.SMTP_CONNECTION_FAILED, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected notification failure: {e}", extra=log_extra, exc_info=True)
        sentry_sdk.capture_exception(e)
        return NotificationOutcome.skipped(SkipReason.DELIVERY_FAILED, detail=str(e))

    logger.info(
        f"Letter notification sent to {mask_email(user.email)}",
        extra=log_extra,
    )
    return NotificationOutcome.sent()


def _verify_connection(config: SmtpConfig) -> None:
    with open_smtp_connection(config) as smtp:
        smtp.noop()


async def verify_email_configuration(config: Optional[SmtpConfig]) -> Dict[str, Any]:
    """
    Connect and log in without sending anything.

    Returns:
        {"success": bool, "message": str}
    """
    if config is None:
        return {"success": False, "message": "SMTP credentials not configured"}

    try:
        await asyncio.to_thread(_verify_connection, config)
    except smtplib.SMTPAuthenticationError:
        return {"success": False, "message": "SMTP authentication failed - check username and password"}
    except smtplib.SMTPException as e:
        return {"success": False, "message": f"SMTP error: {e}"}
    except OSError as e:
        return {"success": False, "message": f"Could not connect to {config.host}:{config.port}: {e}"}

    return {"success": True, "message": f"Connected to {config.host}:{config.port} successfully"}


async def send_test_email(to: str, config: Optional[SmtpConfig]) -> None:
    """
    Send a short test message.

    Raises:
        ValueError: If SMTP is not configured or the recipient is invalid
        smtplib.SMTPException / OSError: On delivery failure
    """
    if config is None:
        raise ValueError("SMTP credentials not configured")
    if not to or not validate_email(sanitize_email_header(to)):
        raise ValueError("Invalid recipient email address")

    html_body, text_body = render_email_template(
        "test_email.html",
        {"smtp_host": config.host, "dashboard_link": f"{settings.APP_URL}/"},
    )
    msg = build_message(config, to=to, subject=TEST_SUBJECT, html_body=html_body, text_body=text_body)
    await asyncio.to_thread(_deliver, config, msg)
    logger.info(f"Test email sent to {mask_email(to)}")
