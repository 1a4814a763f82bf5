"""
Inbound message parsing.

Turns RFC 822 bytes into an InboundMessage: sender address, decoded subject
and a plain-text body. When a message only carries HTML the markup is
stripped to text.
"""

import email
import html
import re
from email import policy
from email.message import EmailMessage
from email.utils import parseaddr

from helpdesk.core import ValidationException
from helpdesk.ingestion.domain.entities import RawMessage, InboundMessage

_TAG_PATTERN = re.compile(r"<[^>]+>")
_BLOCK_PATTERN = re.compile(r"<\s*(br|/p|/div|/tr|/h\d)\b[^>]*>", re.IGNORECASE)
_STYLE_PATTERN = re.compile(r"<(style|script)\b.*?</\1>", re.IGNORECASE | re.DOTALL)


def html_to_text(markup: str) -> str:
    text = _STYLE_PATTERN.sub("", markup)
    text = _BLOCK_PATTERN.sub("\n", text)
    text = _TAG_PATTERN.sub("", text)
    text = html.unescape(text)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except LookupError:
        # Unknown charset; read the raw payload as UTF-8
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _body_text(message: EmailMessage) -> str:
    part = message.get_body(preferencelist=("plain",))
    if part is not None:
        return _part_text(part).strip()

    part = message.get_body(preferencelist=("html",))
    if part is not None:
        return html_to_text(_part_text(part))

    return ""


def parse_message(raw: RawMessage) -> InboundMessage:
    """
    Parse a raw message.

    Raises:
        ValidationException: the bytes are not a readable email
    """
    try:
        message = email.message_from_bytes(raw.content, policy=policy.default)
        _, sender = parseaddr(str(message.get("From", "")))
        subject = str(message.get("Subject", "") or "").strip()
        body = _body_text(message)
    except (LookupError, ValueError, TypeError, UnicodeError) as e:
        raise ValidationException(
            f"Unreadable message {raw.sequence_number}: {e}",
            {"sequence_number": raw.sequence_number}
        ) from e

    return InboundMessage(
        sequence_number=raw.sequence_number,
        sender=sender.strip(),
        subject=subject,
        body=body,
    )
