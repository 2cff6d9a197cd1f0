"""
File-based email sink for dev/test.

Drop-in replacement for resend.send_email: writes one .txt file per message
under {email_dev_output_dir}/{recipient}/ instead of calling the Resend API.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path

from app.config import settings

logger = logging.getLogger(__name__)


def _safe_name(address: str) -> str:
    return "".join(c if c.isalnum() or c in "@.-_" else "_" for c in address)


def send_email(to: str, subject: str, text: str) -> str:
    """Write the message to disk and return the file name as its id."""
    now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H-%M-%S-%f")

    folder = Path(settings.email_dev_output_dir) / _safe_name(to)
    folder.mkdir(parents=True, exist_ok=True)
    file_path = folder / f"{ts}.txt"

    block = (
        f"TO: {to}\n"
        f"SUBJECT: {subject}\n"
        f"AT: {now.isoformat()}\n"
        f"---\n"
        f"{text}\n"
    )
    file_path.write_text(block, encoding="utf-8")

    logger.info("[DEV] Email to %s written to %s", to, file_path)
    return file_path.name
