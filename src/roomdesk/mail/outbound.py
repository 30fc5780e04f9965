"""Outbound email delivery.

Backend selection via MAIL_BACKEND env var:
- "log" (default): render and log metadata only, nothing leaves the process
- "smtp": deliver through SMTP_HOST / SMTP_PORT with optional login

Security: NEVER log the recipient address or the body. Only hashes and lengths.
"""

import os
import smtplib
import time
from email.message import EmailMessage

from roomdesk.observability.correlation import get_correlation_id
from roomdesk.observability.logging import get_logger
from roomdesk.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

SMTP_TIMEOUT = 10

MAX_RETRIES = 1
RETRY_DELAY = 0.2

DEFAULT_SENDER = "no-reply@roomdesk.local"

_TRANSIENT_ERRORS = (
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
    ConnectionError,
    TimeoutError,
)


def _get_config() -> dict[str, str | int | bool | None]:
    """Read mail settings from the environment."""
    return {
        "backend": os.environ.get("MAIL_BACKEND", "log").lower(),
        "host": os.environ.get("SMTP_HOST"),
        "port": int(os.environ.get("SMTP_PORT", "587")),
        "user": os.environ.get("SMTP_USER"),
        "password": os.environ.get("SMTP_PASSWORD"),
        "starttls": os.environ.get("SMTP_STARTTLS", "true").lower() in ("1", "true", "yes"),
        "sender": os.environ.get("MAIL_FROM", DEFAULT_SENDER),
    }


def _build_message(sender: str, to: str, subject: str, text: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.set_content(text)
    return msg


def _deliver_smtp(config: dict, msg: EmailMessage) -> None:
    """Send one message over SMTP. Raises on any transport error."""
    if not config["host"]:
        raise RuntimeError("Missing SMTP config: SMTP_HOST")

    with smtplib.SMTP(config["host"], config["port"], timeout=SMTP_TIMEOUT) as smtp:
        if config["starttls"]:
            smtp.starttls()
        if config["user"] and config["password"]:
            smtp.login(config["user"], config["password"])
        smtp.send_message(msg)


def send_email(*, to: str, subject: str, text: str) -> None:
    """Send a plain-text email.

    Args:
        to: Recipient address. NEVER logged.
        subject: Subject line.
        text: Body. NEVER logged.

    Raises:
        RuntimeError: If the backend is unknown or SMTP is not configured.
        smtplib.SMTPException, OSError: On transport errors (connection
            errors are retried once).
    """
    config = _get_config()
    backend = config["backend"]

    log_ctx = {
        **safe_log_context(correlationId=get_correlation_id(), text_len=len(text)),
        "to_hash": hash_identifier(to),
        "backend": backend,
    }

    if backend == "log":
        logger.info("email rendered (log backend)", extra={"extra_fields": log_ctx})
        return

    if backend != "smtp":
        raise RuntimeError(f"Unknown MAIL_BACKEND: {backend}")

    msg = _build_message(config["sender"], to, subject, text)
    logger.info("sending email", extra={"extra_fields": log_ctx})

    for attempt in range(MAX_RETRIES + 1):
        try:
            _deliver_smtp(config, msg)
            logger.info("email sent", extra={"extra_fields": {**log_ctx, "attempt": attempt}})
            return
        except _TRANSIENT_ERRORS as e:
            if attempt < MAX_RETRIES:
                logger.warning(
                    "email send failed, retrying",
                    extra={
                        "extra_fields": {
                            **log_ctx,
                            "attempt": attempt,
                            "error_type": type(e).__name__,
                        }
                    },
                )
                time.sleep(RETRY_DELAY)
                continue
            raise
