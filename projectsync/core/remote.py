"""Remote store contract and the typed records crossing it.

API responses are mapped to these dataclasses at the client boundary so the
diff engine and orchestrator never handle raw JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol


class APIError(Exception):
    """Exception raised for remote API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type


class NotFoundError(APIError):
    """The requested remote resource does not exist."""


class AuthenticationError(APIError):
    """The session is missing, expired or invalid."""


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp from the API, returning None if absent."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Organization:
    id: str
    name: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Organization":
        return cls(id=data["uuid"], name=data.get("name", ""))


@dataclass(frozen=True)
class RemoteProject:
    id: str
    name: str
    description: str = ""
    instructions: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteProject":
        return cls(
            id=data["uuid"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            instructions=data.get("prompt_template"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class RemoteFile:
    id: str
    name: str
    content: str
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteFile":
        return cls(
            id=data["uuid"],
            name=data["file_name"],
            content=data.get("content") or "",
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class ChatMessage:
    id: str
    sender: str  # "human" or "assistant"
    text: str
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ChatMessage":
        text = data.get("text")
        if not text:
            # Newer payloads carry a list of content blocks instead of text
            blocks = data.get("content") or []
            text = "\n\n".join(
                b.get("text", "") for b in blocks
                if isinstance(b, dict) and b.get("type") == "text"
            )
        return cls(
            id=data.get("uuid", ""),
            sender=data.get("sender", "assistant"),
            text=text or "",
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class ConversationSummary:
    id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    project_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ConversationSummary":
        project_id = data.get("project_uuid")
        if not project_id and isinstance(data.get("project"), dict):
            project_id = data["project"].get("uuid")
        return cls(
            id=data["uuid"],
            name=data.get("name") or "",
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            project_id=project_id or None,
        )


@dataclass(frozen=True)
class Conversation:
    id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    project_id: str | None = None
    messages: tuple[ChatMessage, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Conversation":
        summary = ConversationSummary.from_api(data)
        messages = tuple(
            ChatMessage.from_api(m) for m in data.get("chat_messages") or []
        )
        return cls(
            id=summary.id,
            name=summary.name,
            created_at=summary.created_at,
            updated_at=summary.updated_at,
            project_id=summary.project_id,
            messages=messages,
        )


class RemoteStore(Protocol):
    """Operations the sync engine consumes from the remote project store.

    Every method may raise APIError. ``delete_file`` raises NotFoundError when
    the file is already gone.
    """

    def list_projects(self, org_id: str) -> list[RemoteProject]: ...

    def list_files(self, org_id: str, project_id: str) -> list[RemoteFile]: ...

    def get_instructions(self, org_id: str, project_id: str) -> str | None: ...

    def set_instructions(self, org_id: str, project_id: str, content: str) -> None: ...

    def upload_file(
        self, org_id: str, project_id: str, name: str, content: str
    ) -> RemoteFile: ...

    def delete_file(self, org_id: str, project_id: str, file_id: str) -> None: ...

    def list_conversations(self, org_id: str) -> list[ConversationSummary]: ...

    def get_conversation(self, org_id: str, conversation_id: str) -> Conversation: ...
