"""Raw RFC 2822 message construction for the Gmail send API.

The message is assembled by hand rather than through email.message so the
header set is exactly To, Subject, Content-Type and MIME-Version, with no
transfer encoding applied to the body. Decoding the transport string gives
back the original header values and body byte-for-byte.

Transport encoding is URL-safe base64 of the UTF-8 bytes with padding
stripped.
"""

from __future__ import annotations

import base64

from src.app.orchestration.schemas import BodyContentType, EmailPayload

CRLF = "\r\n"

_SUBTYPES = {
    BodyContentType.HTML: "html",
    BodyContentType.TEXT: "plain",
}


def _header_value(value: str) -> str:
    # Header values must stay on one line
    return " ".join(value.splitlines()).strip()


def build_raw_message(
    to: str,
    subject: str,
    content: str,
    content_type: BodyContentType = BodyContentType.HTML,
) -> str:
    """Assemble the RFC 2822 message text.

    Args:
        to: Recipient address.
        subject: Subject line.
        content: Body, inserted verbatim after the blank separator line.
        content_type: HTML (default) or Text.

    Returns:
        Message text with CRLF header line endings.
    """
    headers = [
        f"To: {_header_value(to)}",
        f"Subject: {_header_value(subject)}",
        f"Content-Type: text/{_SUBTYPES[content_type]}; charset=utf-8",
        "MIME-Version: 1.0",
    ]
    return CRLF.join(headers) + CRLF + CRLF + content


def encode_raw_message(message: str) -> str:
    """URL-safe unpadded base64 of the UTF-8 message bytes."""
    return base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii").rstrip("=")


def decode_raw_message(raw: str) -> str:
    """Inverse of encode_raw_message."""
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding).decode("utf-8")


def build_gmail_raw(payload: EmailPayload) -> str:
    """Build the ``raw`` field of a Gmail users.messages.send request."""
    message = build_raw_message(
        to=payload.to or "",
        subject=payload.subject,
        content=payload.body.content,
        content_type=payload.body.content_type,
    )
    return encode_raw_message(message)
