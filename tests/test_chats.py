"""Tests for conversation export formatting."""

from datetime import datetime, timezone
from pathlib import Path

from conftest import ORG_ID, FakeRemoteStore
from projectsync.core.chats import (
    MAX_TITLE_LENGTH,
    conversation_filename,
    export_conversation,
    format_conversation,
    read_exported_updated_at,
    sanitize_title,
)
from projectsync.core.filesystem import LocalDirectory, LocalStore
from projectsync.core.frontmatter import split_frontmatter
from projectsync.core.remote import ChatMessage, Conversation

CREATED = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
UPDATED = datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)


def make_conversation(name: str = "Design review", project_id: str | None = "p1") -> Conversation:
    return Conversation(
        id="abcdef123456",
        name=name,
        created_at=CREATED,
        updated_at=UPDATED,
        project_id=project_id,
        messages=(
            ChatMessage(id="m1", sender="human", text="What changed?", created_at=CREATED),
            ChatMessage(id="m2", sender="assistant", text="Two things:\n\n- a\n- b", created_at=UPDATED),
        ),
    )


class TestSanitizeTitle:
    """Tests for title to file name conversion."""

    def test_removes_illegal_characters(self) -> None:
        assert sanitize_title("Hello: World?") == "Hello_World"

    def test_collapses_separators(self) -> None:
        assert sanitize_title("a  -  b__c..d") == "a_b_c_d"

    def test_length_bounded(self) -> None:
        result = sanitize_title("word " * 50)

        assert len(result) <= MAX_TITLE_LENGTH
        assert not result.endswith("_")

    def test_empty_fallback(self) -> None:
        assert sanitize_title("") == "untitled"
        assert sanitize_title("???") == "untitled"

    def test_conversation_filename(self) -> None:
        assert conversation_filename(make_conversation()) == "Design_review_abcdef12.md"


class TestFormatConversation:
    """Tests for format_conversation."""

    def test_structure(self) -> None:
        document = format_conversation(make_conversation())
        data, body = split_frontmatter(document)

        assert data["title"] == "Design review"
        assert data["conversation_id"] == "abcdef123456"
        assert data["project_id"] == "p1"
        assert data["message_count"] == 2
        assert body.startswith("# Design review\n")
        assert "## User (2024-05-01T09:00:00+00:00)\n\nWhat changed?\n\n---" in body
        assert "## Assistant (2024-05-01T10:30:00+00:00)\n\nTwo things:\n\n- a\n- b\n" in body

    def test_deterministic(self) -> None:
        assert format_conversation(make_conversation()) == format_conversation(make_conversation())

    def test_standalone_has_no_project(self) -> None:
        data, _ = split_frontmatter(format_conversation(make_conversation(project_id=None)))

        assert "project_id" not in data

    def test_read_exported_updated_at(self) -> None:
        document = format_conversation(make_conversation())

        assert read_exported_updated_at(document) == UPDATED.isoformat()
        assert read_exported_updated_at(None) is None
        assert read_exported_updated_at("no frontmatter") is None


class TestExportConversation:
    """Tests for ad hoc export."""

    def test_writes_document(self, remote: FakeRemoteStore, tmp_path: Path) -> None:
        remote.add_conversation("c1234567-aaaa", "Planning chat", updated_at=UPDATED)

        path = export_conversation(remote, LocalStore(), ORG_ID, "c1234567-aaaa", LocalDirectory(tmp_path / "out"))

        assert path == tmp_path / "out" / "Planning_chat_c1234567.md"
        assert "# Planning chat" in path.read_text()
