"""Shared fixtures: an in-memory remote store and workspace directories."""

from datetime import datetime
from pathlib import Path

import pytest

from projectsync.core.operations import SyncOrchestrator
from projectsync.core.remote import (
    APIError,
    ChatMessage,
    Conversation,
    ConversationSummary,
    NotFoundError,
    RemoteFile,
    RemoteProject,
)

ORG_ID = "org-1"


class FakeRemoteStore:
    """In-memory RemoteStore recording every mutating call."""

    def __init__(self) -> None:
        self.projects: list[RemoteProject] = []
        self.files: dict[str, list[RemoteFile]] = {}
        self.instructions: dict[str, str | None] = {}
        self.conversations: dict[str, Conversation] = {}
        self.mutations: list[tuple[str, ...]] = []
        self.fetched_conversations: list[str] = []
        self.broken_projects: set[str] = set()
        self.broken_instructions: set[str] = set()
        self.missing_on_delete = False
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    # Setup helpers

    def add_project(
        self,
        project_id: str,
        name: str,
        instructions: str | None = None,
        files: dict[str, str] | None = None,
        updated_at: datetime | None = None,
    ) -> RemoteProject:
        project = RemoteProject(id=project_id, name=name, updated_at=updated_at)
        self.projects.append(project)
        self.instructions[project_id] = instructions
        self.files[project_id] = []
        for file_name, content in (files or {}).items():
            self.add_file(project_id, file_name, content)
        return project

    def add_file(
        self,
        project_id: str,
        name: str,
        content: str,
        created_at: datetime | None = None,
    ) -> RemoteFile:
        remote_file = RemoteFile(
            id=self._next_id("file"),
            name=name,
            content=content,
            created_at=created_at,
        )
        self.files[project_id].append(remote_file)
        return remote_file

    def remove_file(self, project_id: str, name: str) -> None:
        self.files[project_id] = [f for f in self.files[project_id] if f.name != name]

    def add_conversation(
        self,
        conversation_id: str,
        name: str,
        project_id: str | None = None,
        updated_at: datetime | None = None,
    ) -> Conversation:
        conversation = Conversation(
            id=conversation_id,
            name=name,
            created_at=updated_at,
            updated_at=updated_at,
            project_id=project_id,
            messages=(
                ChatMessage(id="m1", sender="human", text="Hi there", created_at=updated_at),
                ChatMessage(id="m2", sender="assistant", text="Hello!", created_at=updated_at),
            ),
        )
        self.conversations[conversation_id] = conversation
        return conversation

    def file_contents(self, project_id: str) -> dict[str, str]:
        return {f.name: f.content for f in self.files[project_id]}

    # RemoteStore

    def list_projects(self, org_id: str) -> list[RemoteProject]:
        return list(self.projects)

    def list_files(self, org_id: str, project_id: str) -> list[RemoteFile]:
        if project_id in self.broken_projects:
            raise APIError("API error 500: internal", 500)
        return list(self.files.get(project_id, []))

    def get_instructions(self, org_id: str, project_id: str) -> str | None:
        if project_id in self.broken_instructions:
            raise APIError("API error 500: internal", 500)
        return self.instructions.get(project_id)

    def set_instructions(self, org_id: str, project_id: str, content: str) -> None:
        self.mutations.append(("set_instructions", project_id))
        self.instructions[project_id] = content

    def upload_file(self, org_id: str, project_id: str, name: str, content: str) -> RemoteFile:
        self.mutations.append(("upload_file", project_id, name))
        return self.add_file(project_id, name, content)

    def delete_file(self, org_id: str, project_id: str, file_id: str) -> None:
        self.mutations.append(("delete_file", project_id, file_id))
        if self.missing_on_delete:
            raise NotFoundError("Resource not found", 404, "not_found")
        before = len(self.files[project_id])
        self.files[project_id] = [f for f in self.files[project_id] if f.id != file_id]
        if len(self.files[project_id]) == before:
            raise NotFoundError("Resource not found", 404, "not_found")

    def list_conversations(self, org_id: str) -> list[ConversationSummary]:
        return [
            ConversationSummary(
                id=c.id,
                name=c.name,
                created_at=c.created_at,
                updated_at=c.updated_at,
                project_id=c.project_id,
            )
            for c in self.conversations.values()
        ]

    def get_conversation(self, org_id: str, conversation_id: str) -> Conversation:
        self.fetched_conversations.append(conversation_id)
        return self.conversations[conversation_id]


def snapshot_tree(root: Path) -> dict[str, str]:
    """Relative path -> content for every file under root."""
    return {
        str(path.relative_to(root)): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "workspace.json"


@pytest.fixture
def orchestrator(remote: FakeRemoteStore, config_path: Path) -> SyncOrchestrator:
    return SyncOrchestrator(remote, config_path)
