"""Email-summary tool.

The assistant decides *what* goes into the summary (transcript, known
facts, suggested parts and links); the email API only delivers it.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from langchain_core.tools import tool

from parts_assistant.memory import ChatMessage
from parts_assistant.services.email_client import get_email_client

logger = logging.getLogger(__name__)

SUBJECT = "Your PartSelect support conversation"

# RFC 5322-ish address pattern.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


def _validate_email(email: str) -> str | None:
    """Return an error message if *email* looks invalid, else ``None``."""
    if not email or not email.strip():
        return "No email address was provided."
    email = email.strip()
    if not _EMAIL_RE.match(email):
        return f'"{email}" does not look like a valid email address.'
    return None


def build_transcript(messages: list[ChatMessage]) -> str:
    """Plain-text transcript of the conversation, tool output left out."""
    lines = []
    for msg in messages:
        if msg["role"] == "user":
            lines.append(f"You: {msg['content']}")
        elif msg["role"] == "assistant":
            lines.append(f"Agent: {msg['content']}")
    return "\n\n".join(lines)


def _details_html(details: dict[str, Any]) -> str:
    esc = html.escape
    rows = []
    if details.get("product_model"):
        rows.append(f"<li>Appliance model: {esc(details['product_model'])}</li>")
    if details.get("part_number"):
        rows.append(f"<li>Part number: {esc(details['part_number'])}</li>")
    if details.get("symptoms"):
        rows.append(f"<li>Problems: {esc(', '.join(details['symptoms']))}</li>")

    last = details.get("last_tool_result") or {}
    data = last.get("data") if isinstance(last, dict) else None
    if isinstance(data, dict):
        for part in data.get("suggested_parts") or []:
            rows.append(
                f"<li>Suggested part: {esc(str(part.get('name')))} "
                f"(Part #{esc(str(part.get('part_number')))}) - ${esc(str(part.get('price')))}</li>"
            )
        if data.get("video_url"):
            url = esc(data["video_url"])
            rows.append(f'<li>Installation video: <a href="{url}">{url}</a></li>')

    if not rows:
        return ""
    return "<h3>Details</h3><ul>" + "".join(rows) + "</ul>"


def build_email_body(transcript: str, details: dict[str, Any] | None = None) -> str:
    """HTML body: known facts and links first, then the transcript."""
    paragraphs = "".join(
        f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
        for block in transcript.split("\n\n") if block.strip()
    )
    return (
        "<h2>Your PartSelect support conversation</h2>"
        + _details_html(details or {})
        + "<h3>Transcript</h3>"
        + (paragraphs or "<p>(empty conversation)</p>")
    )


@tool
def email_summary(email: str, transcript: str, details: dict | None = None) -> dict[str, Any]:
    """Email a summary of the conversation to the user.

    Args:
        email: The user's email address.
        transcript: Plain-text transcript of the conversation.
        details: Known facts and the last tool result to highlight.
    """
    error = _validate_email(email)
    if error:
        raise ValueError(error)

    email = email.strip()
    response = get_email_client().send(email, SUBJECT, build_email_body(transcript, details))
    return {"status": "sent", "email": email, "message_id": response.get("id")}
