"""Diff, result and progress models produced by the sync engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class FileDiff:
    """Comparison of a single file across both sides."""

    name: str
    status: str  # "added", "removed", "modified" or "unchanged"
    local_hash: str | None = None
    remote_hash: str | None = None


@dataclass
class ModifiedFileInfo:
    """Timestamps of a file modified on both sides."""

    local_time: datetime | None = None
    remote_time: datetime | None = None

    @property
    def is_local_newer(self) -> bool | None:
        """True if local is newer, None if either timestamp is unknown."""
        if self.local_time is None or self.remote_time is None:
            return None
        return self.local_time > self.remote_time


@dataclass
class RenamedFile:
    """A file present under different names with identical content.

    ``old_name`` is the name on the remote side, ``new_name`` the name on the
    local side. ``origin`` tells which side performed the rename, when known.
    """

    old_name: str
    new_name: str
    origin: str = "unknown"  # "local", "remote" or "unknown"


@dataclass
class ProjectDiff:
    """Differences between one remote project and its local folder."""

    name: str
    id: str
    folder: str
    remote_only_files: list[str] = field(default_factory=list)
    local_only_files: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    modified_files_info: dict[str, ModifiedFileInfo] = field(default_factory=dict)
    renamed_files: list[RenamedFile] = field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return bool(
            self.remote_only_files
            or self.local_only_files
            or self.modified_files
            or self.renamed_files
        )

    def file_diffs(self) -> list[FileDiff]:
        """Flatten into per-file entries (renames appear as removed + added)."""
        diffs = [FileDiff(name=n, status="removed") for n in self.remote_only_files]
        diffs += [FileDiff(name=n, status="added") for n in self.local_only_files]
        diffs += [FileDiff(name=n, status="modified") for n in self.modified_files]
        for rename in self.renamed_files:
            diffs.append(FileDiff(name=rename.old_name, status="removed"))
            diffs.append(FileDiff(name=rename.new_name, status="added"))
        return diffs


@dataclass
class RemoteOnlyProject:
    """A remote project with no local folder."""

    id: str
    name: str
    sanitized_name: str
    file_count: int | None = None


@dataclass
class WorkspaceDiff:
    """Aggregate diff for a whole workspace."""

    remote_project_count: int = 0
    local_folder_count: int = 0
    matched: list[ProjectDiff] = field(default_factory=list)
    remote_only: list[RemoteOnlyProject] = field(default_factory=list)
    local_only: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "remoteProjects": self.remote_project_count,
            "localFolders": self.local_folder_count,
            "matched": len(self.matched),
            "remoteOnly": len(self.remote_only),
            "localOnly": len(self.local_only),
        }

    @property
    def has_differences(self) -> bool:
        return bool(
            self.remote_only
            or self.local_only
            or any(p.has_differences for p in self.matched)
        )


@dataclass
class SyncStats:
    """Counters for one orchestrator run."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    uploaded: int = 0
    conflicts: int = 0
    chats: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "uploaded": self.uploaded,
            "conflicts": self.conflicts,
            "chats": self.chats,
        }


@dataclass
class SyncResult:
    """Result of a sync operation."""

    stats: SyncStats = field(default_factory=SyncStats)
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False
    messages: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors and self.stats.errors == 0

    def add_error(self, message: str) -> None:
        self.stats.errors += 1
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class SyncProgress:
    """Progress snapshot pushed to observers during long-running operations."""

    phase: str  # "initializing", "fetching", "syncing", "complete" or "error"
    total_projects: int = 0
    completed_projects: int = 0
    current_project: str | None = None
    message: str = ""

    @property
    def percentage(self) -> int:
        if self.total_projects <= 0:
            return 100 if self.phase == "complete" else 0
        return round(self.completed_projects / self.total_projects * 100)
