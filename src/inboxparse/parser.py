"""Extract headers and bodies from a Gmail message part tree."""

import base64
import binascii
import logging
import re
from typing import Optional

from inboxparse.client import GmailClient
from inboxparse.config import DEFAULT_USER
from inboxparse.errors import DecodeError, MissingPayloadError
from inboxparse.models import (
    AttachmentRef,
    InlineBody,
    Message,
    MessageEnvelope,
    MessagePart,
    MultipartChildren,
)

log = logging.getLogger(__name__)

CHARSET_RE = re.compile(r'charset="?([A-Za-z0-9_\-.:]+)"?', re.IGNORECASE)


def find_header(part: MessagePart, name: str) -> str:
    for header in part.headers:
        if header.name == name:
            return header.value
    return ""


def find_part_by_mime_type(part: MessagePart, mime_type: str) -> Optional[MessagePart]:
    """Depth-first, pre-order search for the first part of ``mime_type``."""
    if part.mime_type == mime_type:
        return part
    if isinstance(part.content, MultipartChildren):
        for child in part.content.parts:
            found = find_part_by_mime_type(child, mime_type)
            if found is not None:
                return found
    return None


def decode_body(data: str) -> bytes:
    """
    Decode the URL-safe base64 data Gmail returns. Missing ``=`` padding is
    tolerated; anything outside the alphabet raises ``DecodeError``.
    """
    if not data:
        return b""
    try:
        raw = data.encode("ascii")
    except UnicodeEncodeError as e:
        raise DecodeError(f"base64 decode: non-ASCII input: {e}") from e
    # altchars only adds "-_", the standard "+/" would still be accepted
    if b"+" in raw or b"/" in raw:
        raise DecodeError("base64 decode: '+' or '/' outside the URL-safe alphabet")
    raw += b"=" * (-len(raw) % 4)
    try:
        return base64.b64decode(raw, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"base64 decode: {e}") from e


def extract_body(
    client: GmailClient, user_id: str, message_id: str, part: MessagePart
) -> bytes:
    content = part.content
    if isinstance(content, AttachmentRef):
        data = client.get_attachment(message_id, content.attachment_id, user_id=user_id)
    elif isinstance(content, InlineBody):
        data = content.data
    else:
        raise DecodeError(
            f"Message {message_id}: part {part.part_id!r} ({part.mime_type}) "
            "has no body of its own"
        )

    try:
        return decode_body(data)
    except DecodeError as e:
        raise DecodeError(f"Message {message_id}: {e}") from e


def decode_text(data: bytes, part: MessagePart) -> str:
    """Decode body bytes with the part's declared charset, falling back to utf-8."""
    match = CHARSET_RE.search(find_header(part, "Content-Type"))
    if match:
        try:
            return data.decode(match.group(1), errors="replace")
        except LookupError:
            log.debug("Unknown charset %r, decoding as utf-8", match.group(1))
    return data.decode("utf-8", errors="replace")


def parse_message(
    client: GmailClient,
    envelope: MessageEnvelope,
    user_id: str = DEFAULT_USER,
    include_plain: bool = False,
) -> Message:
    """Flatten an envelope into a ``Message``.

    ``body_html`` is taken from the first text/html part and left empty when
    there is none. The plain-text body is only filled when ``include_plain``
    is set.
    """
    payload = envelope.payload
    if payload is None:
        raise MissingPayloadError(f"No payload in gmail message {envelope.id}.")

    body_plain = ""
    if include_plain:
        plain_part = find_part_by_mime_type(payload, "text/plain")
        if plain_part is not None:
            body_plain = decode_text(
                extract_body(client, user_id, envelope.id, plain_part), plain_part
            )

    body_html = ""
    html_part = find_part_by_mime_type(payload, "text/html")
    if html_part is not None:
        body_html = decode_text(
            extract_body(client, user_id, envelope.id, html_part), html_part
        )

    return Message(
        id=envelope.id,
        sender=find_header(payload, "From"),
        recipient=find_header(payload, "To"),
        subject=find_header(payload, "Subject"),
        body_plain=body_plain,
        body_html=body_html,
    )
