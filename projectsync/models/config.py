"""Workspace configuration and per-project metadata models."""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


CONFLICT_STRATEGIES = ("local", "remote", "newer", "prompt")
NEWER_FALLBACKS = ("local", "remote", "prompt")

CONFIG_DIRNAME = ".projectsync"
CONFIG_FILENAME = "workspace.json"


def sanitize_project_name(name: str) -> str:
    """Sanitize a project title for use as a folder name.

    Removes characters that are unsafe on common filesystems while keeping
    unicode (emoji, accents) intact.
    """
    sanitized = re.sub(r'[<>:"|?*/\\]+', '', name).strip()
    return sanitized or "unnamed_project"


def default_config_path(workspace_path: Path) -> Path:
    """Default location of the workspace config inside the workspace root."""
    return Path(workspace_path) / CONFIG_DIRNAME / CONFIG_FILENAME


@dataclass
class SyncSettings:
    """Synchronization settings."""

    auto_sync: bool = False
    sync_interval_minutes: int = 15
    bidirectional: bool = False
    sync_chats: bool = False
    # Add .md to file names without an extension
    auto_add_extension: bool = True
    # Keep a YAML frontmatter block on the local instructions file
    ensure_frontmatter: bool = False
    conflict_strategy: str = "remote"
    # Winner for the "newer" strategy when a timestamp is missing
    newer_fallback: str = "remote"

    def __post_init__(self) -> None:
        if self.conflict_strategy not in CONFLICT_STRATEGIES:
            raise ValueError(
                f"Unknown conflict strategy: {self.conflict_strategy} "
                f"(expected one of {', '.join(CONFLICT_STRATEGIES)})"
            )
        if self.newer_fallback not in NEWER_FALLBACKS:
            raise ValueError(
                f"Unknown newer fallback: {self.newer_fallback} "
                f"(expected one of {', '.join(NEWER_FALLBACKS)})"
            )
        if self.sync_interval_minutes < 0:
            raise ValueError("syncIntervalMinutes must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted (camelCase) dictionary."""
        return {
            "autoSync": self.auto_sync,
            "syncIntervalMinutes": self.sync_interval_minutes,
            "bidirectional": self.bidirectional,
            "syncChats": self.sync_chats,
            "autoAddExtension": self.auto_add_extension,
            "ensureFrontmatter": self.ensure_frontmatter,
            "conflictStrategy": self.conflict_strategy,
            "newerFallback": self.newer_fallback,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncSettings":
        """Create from dictionary."""
        return cls(
            auto_sync=bool(data.get("autoSync", False)),
            sync_interval_minutes=int(data.get("syncIntervalMinutes", 15)),
            bidirectional=bool(data.get("bidirectional", False)),
            sync_chats=bool(data.get("syncChats", False)),
            auto_add_extension=bool(data.get("autoAddExtension", True)),
            ensure_frontmatter=bool(data.get("ensureFrontmatter", False)),
            conflict_strategy=data.get("conflictStrategy", "remote"),
            newer_fallback=data.get("newerFallback", "remote"),
        )


# Persisted key -> attribute name, used by update_settings and the CLI
SETTING_KEYS = {
    "autoSync": "auto_sync",
    "syncIntervalMinutes": "sync_interval_minutes",
    "bidirectional": "bidirectional",
    "syncChats": "sync_chats",
    "autoAddExtension": "auto_add_extension",
    "ensureFrontmatter": "ensure_frontmatter",
    "conflictStrategy": "conflict_strategy",
    "newerFallback": "newer_fallback",
}


@dataclass
class WorkspaceConfig:
    """Persisted mapping between remote projects and local folders.

    A project id maps to at most one folder name; folder names are unique
    across the map.
    """

    workspace_path: str = ""
    project_map: dict[str, str] = field(default_factory=dict)
    last_sync: str | None = None
    settings: SyncSettings = field(default_factory=SyncSettings)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "workspacePath": self.workspace_path,
            "projectMap": dict(self.project_map),
            "lastSync": self.last_sync,
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceConfig":
        """Create from dictionary."""
        return cls(
            workspace_path=data.get("workspacePath", ""),
            project_map=dict(data.get("projectMap") or {}),
            last_sync=data.get("lastSync"),
            settings=SyncSettings.from_dict(data.get("settings") or {}),
        )

    @classmethod
    def load(cls, config_path: Path) -> "WorkspaceConfig":
        """Load config from disk, or return defaults if the file is missing."""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, config_path: Path) -> None:
        """Save config to disk."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            f.write("\n")

    @staticmethod
    def reset(config_path: Path) -> None:
        """Delete the persisted config (explicit workspace reset)."""
        Path(config_path).unlink(missing_ok=True)

    def update_settings(self, **changes: Any) -> None:
        """Apply settings changes by attribute name or persisted key.

        Raises:
            KeyError: On unknown setting name
            ValueError: On invalid values
        """
        data = self.settings.to_dict()
        reverse = {attr: key for key, attr in SETTING_KEYS.items()}
        for name, value in changes.items():
            key = name if name in SETTING_KEYS else reverse.get(name)
            if key is None:
                raise KeyError(f"Unknown setting: {name}")
            data[key] = value
        self.settings = SyncSettings.from_dict(data)

    def folder_for(self, project_id: str) -> str | None:
        """Get the mapped folder name for a project."""
        return self.project_map.get(project_id)

    def project_for_folder(self, folder_name: str) -> str | None:
        """Reverse lookup: project id mapped to a folder name."""
        for project_id, folder in self.project_map.items():
            if folder == folder_name:
                return project_id
        return None

    def assign_folder(self, project_id: str, project_name: str) -> str:
        """Return the folder for a project, assigning a unique one if unmapped.

        Collisions with folders mapped to other projects are resolved by
        appending ``_1``, ``_2``, ... to the sanitized name.
        """
        existing = self.project_map.get(project_id)
        if existing:
            return existing

        base = sanitize_project_name(project_name)
        taken = {f for pid, f in self.project_map.items() if pid != project_id}
        folder_name = base
        counter = 1
        while folder_name in taken:
            folder_name = f"{base}_{counter}"
            counter += 1

        self.project_map[project_id] = folder_name
        return folder_name

    def mark_synced(self) -> None:
        """Update last_sync to now."""
        self.last_sync = datetime.now(timezone.utc).isoformat()


@dataclass
class ProjectMetadata:
    """Identity record stored in each project folder's hidden subfolder."""

    id: str
    name: str
    org_id: str
    synced_at: str
    # normalized file name -> content hash at last sync
    file_hashes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "orgId": self.org_id,
            "syncedAt": self.synced_at,
            "fileHashes": dict(self.file_hashes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMetadata":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            org_id=data.get("orgId", ""),
            synced_at=data.get("syncedAt", ""),
            file_hashes=dict(data.get("fileHashes") or {}),
        )
