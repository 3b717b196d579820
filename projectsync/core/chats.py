"""Render conversations into Markdown documents for local mirroring and export."""

import re
from datetime import datetime
from pathlib import Path

from .filesystem import LocalDirectory, LocalStore
from .frontmatter import render_frontmatter, split_frontmatter
from .remote import Conversation, ConversationSummary, RemoteStore

MAX_TITLE_LENGTH = 80

ROLE_LABELS = {
    "human": "User",
    "user": "User",
    "assistant": "Assistant",
}


def _format_time(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def sanitize_title(title: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """Turn a conversation title into a filesystem-safe name fragment.

    Illegal characters are removed, runs of whitespace/separators collapse to a
    single underscore and the result is length-bounded.
    """
    cleaned = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "", title)
    cleaned = re.sub(r"[\s_\-.]+", "_", cleaned).strip("_")
    cleaned = cleaned[:max_length].rstrip("_")
    return cleaned or "untitled"


def conversation_filename(conversation: Conversation | ConversationSummary) -> str:
    """Stable file name for a conversation export.

    The id prefix keeps names unique when titles collide and stable when the
    title stays the same across runs.
    """
    return f"{sanitize_title(conversation.name)}_{conversation.id[:8]}.md"


def format_conversation(conversation: Conversation) -> str:
    """Render a conversation with its full message history as Markdown."""
    title = conversation.name or "Untitled conversation"
    header: dict[str, object] = {
        "title": title,
        "created": _format_time(conversation.created_at),
        "updated": _format_time(conversation.updated_at),
        "conversation_id": conversation.id,
    }
    if conversation.project_id:
        header["project_id"] = conversation.project_id
    header["message_count"] = len(conversation.messages)

    parts = [render_frontmatter(header), f"# {title}\n\n"]
    for message in conversation.messages:
        role = ROLE_LABELS.get(message.sender, message.sender.capitalize() or "Unknown")
        stamp = _format_time(message.created_at)
        heading = f"## {role} ({stamp})" if stamp else f"## {role}"
        parts.append(f"{heading}\n\n{message.text}\n\n---\n\n")

    return "".join(parts)


def read_exported_updated_at(text: str | None) -> str | None:
    """Return the ``updated`` field of an exported conversation, if any."""
    if not text:
        return None
    data, _ = split_frontmatter(text)
    if not data:
        return None
    value = data.get("updated")
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else None


def export_conversation(
    remote: RemoteStore,
    local: LocalStore,
    org_id: str,
    conversation_id: str,
    directory: LocalDirectory,
) -> Path:
    """Fetch one conversation and write its export into ``directory``.

    Returns:
        Path of the written document

    Raises:
        APIError: If the conversation cannot be fetched
        LocalWriteError: If the document cannot be written
    """
    conversation = remote.get_conversation(org_id, conversation_id)
    filename = conversation_filename(conversation)
    local.write_text_file(directory, filename, format_conversation(conversation))
    return directory.path / filename
