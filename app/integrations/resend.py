"""
Resend API client for transactional email.

One call per message; the caller decides whether a failure is fatal.
"""
import logging
import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails to accept a message"""


def send_email(to: str, subject: str, text: str) -> str | None:
    """
    Send a plain-text email via Resend.
    Returns the provider message id. Raises EmailDeliveryError on failure.
    """
    if not settings.email_enabled:
        logger.info("Email disabled. Skipping send_email to %s", to)
        return None

    if settings.email_dev_mode:
        from app.integrations.resend_dev import send_email as dev_send
        return dev_send(to, subject, text)

    if not to:
        raise EmailDeliveryError("send_email called with empty recipient")

    url = f"{settings.resend_api_base}/emails"
    headers = {
        "Authorization": f"Bearer {settings.resend_api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "from": settings.email_from,
        "to": [to],
        "subject": subject,
        "text": text,
    }

    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Resend request failed: {e}") from e

    if response.status_code not in (200, 201):
        raise EmailDeliveryError(
            f"Resend returned {response.status_code}: {response.text}"
        )

    message_id = response.json().get("id")
    logger.info("Email sent to %s (id=%s)", to, message_id)
    return message_id
