"""Transactional email delivery through SendGrid."""

from __future__ import annotations

import json
import logging
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.config import get_settings
from app.domain.entities import SupportTicket

logger = logging.getLogger(__name__)

_SIGNATURE = "Qualitest Medical"
_TRUNCATION_SUFFIX = "..."


def _extract_sendgrid_error_details(body: Any) -> str | None:
    """Return a human readable description for a SendGrid error payload."""

    if body in (None, "", b""):
        return None

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return body

    if isinstance(body, dict):
        messages: list[str] = []
        for item in body.get("errors") or []:
            if not isinstance(item, dict) or not item.get("message"):
                continue
            if item.get("help"):
                messages.append(f"{item['message']} (help: {item['help']})")
            else:
                messages.append(str(item["message"]))
        if messages:
            return "; ".join(messages)
        return json.dumps(body, default=str)

    if isinstance(body, list):
        return "; ".join(str(item) for item in body)

    return None


def _log_sendgrid_failure(status_code: Any, body: Any, exc: Exception | None = None) -> None:
    details = _extract_sendgrid_error_details(body)

    if status_code and details:
        logger.error("SendGrid request failed with status %s: %s", status_code, details)
    elif status_code:
        logger.error("SendGrid request failed with status %s", status_code)
    elif details:
        logger.error("SendGrid request failed: %s", details)
    elif exc is not None:
        logger.exception("Error sending email via SendGrid: %s", exc)
    else:
        logger.error("SendGrid request failed without details")


def truncate_message(message: str | None, max_length: int) -> str:
    """Shorten ``message`` to ``max_length`` characters for previews."""

    if not message:
        return ""
    if len(message) <= max_length:
        return message
    return message[: max_length - len(_TRUNCATION_SUFFIX)] + _TRUNCATION_SUFFIX


def send_email(recipient: str, subject: str, body: str) -> bool:
    """Send a plain-text email; return ``True`` when SendGrid accepted it.

    Delivery is fire-and-forget: provider failures are logged and reported as
    ``False``, never raised.
    """

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        logger.info("SendGrid configuration incomplete; skipping email to %s", recipient)
        return False

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        plain_text_content=body,
    )

    try:
        client = SendGridAPIClient(settings.sendgrid_api_key)
        http_client = getattr(client, "client", None)
        if http_client is not None:
            http_client.timeout = settings.mail_timeout_seconds
        response = client.send(message)
    except Exception as exc:  # pragma: no cover - network failures depend on environment
        _log_sendgrid_failure(
            getattr(exc, "status_code", None), getattr(exc, "body", None), exc
        )
        return False

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        _log_sendgrid_failure(status_code, getattr(response, "body", None))
        return False

    logger.info("Email '%s' sent to %s", subject, recipient)
    return True


def send_password_change_email(email: str, changed_at: str) -> bool:
    subject = "Password Changed - Medical App"
    body = (
        "Your password has been successfully changed. "
        "If you didn't make this change, please contact support immediately.\n\n"
        f"Time: {changed_at}\n"
        f"{_SIGNATURE} Security Team"
    )
    return send_email(email, subject, body)


def send_login_alert_email(
    email: str, *, timestamp: str, device_info: str, ip_address: str, location: str
) -> bool:
    subject = "New Login to Your Qualitest Medical Account"
    body = (
        "Hello,\n\n"
        "We detected a new login to your Qualitest Medical account.\n\n"
        "Login Details:\n"
        f"Time: {timestamp}\n"
        f"Device: {device_info}\n"
        f"IP Address: {ip_address}\n"
        f"Location: {location}\n\n"
        "If this was you, you can safely ignore this email.\n\n"
        "If you didn't log in, please:\n"
        "1. Change your password immediately\n"
        "2. Review your account activity\n"
        "3. Contact our support team\n\n"
        f"Stay secure,\n{_SIGNATURE} Security Team\n\n"
        "To disable login notifications, visit your account security settings."
    )
    return send_email(email, subject, body)


def send_suspicious_activity_email(
    email: str, *, activity_type: str, timestamp: str, details: str
) -> bool:
    subject = "Suspicious Activity Detected on Your Account"
    body = (
        "SECURITY ALERT\n\n"
        "We detected suspicious activity on your Qualitest Medical account.\n\n"
        "Activity Details:\n"
        f"Type: {activity_type}\n"
        f"Time: {timestamp}\n"
        f"Details: {details}\n\n"
        "Immediate actions required:\n"
        "1. Change your password immediately\n"
        "2. Review your recent account activity\n"
        "3. Enable two-factor authentication\n"
        "4. Contact our security team if needed\n\n"
        "If you recognize this activity, you can safely ignore this alert.\n\n"
        f"{_SIGNATURE} Security Team"
    )
    return send_email(email, subject, body)


def send_support_ticket_alert_email(recipient: str, ticket: SupportTicket) -> bool:
    subject = f"New Support Ticket #{ticket.ticket_number}"
    body = (
        f"New ticket from {ticket.name} ({ticket.email})\n"
        f"Subject: {ticket.subject}\n"
        f"Priority: {ticket.priority}\n"
        f"Category: {ticket.category or 'General'}\n\n"
        "Please respond within 4-6 hours during business hours."
    )
    return send_email(recipient, subject, body)


def agent_reply_email_body(*, first_name: str, agent_name: str, reply: str) -> str:
    return (
        f"Hello {first_name},\n\n"
        f"{agent_name} from our medical support team has replied to your inquiry:\n\n"
        f"\"{truncate_message(reply, 200)}\"\n\n"
        "Please check the app for the full conversation.\n\n"
        f"Best regards,\n{_SIGNATURE} Support Team"
    )
