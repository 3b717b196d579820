"""Data models for the sync system."""

from .config import (
    CONFLICT_STRATEGIES,
    ProjectMetadata,
    SyncSettings,
    WorkspaceConfig,
    default_config_path,
    sanitize_project_name,
)
from .results import (
    FileDiff,
    ModifiedFileInfo,
    ProjectDiff,
    RemoteOnlyProject,
    RenamedFile,
    SyncProgress,
    SyncResult,
    SyncStats,
    WorkspaceDiff,
)

__all__ = [
    "CONFLICT_STRATEGIES",
    "FileDiff",
    "ModifiedFileInfo",
    "ProjectDiff",
    "ProjectMetadata",
    "RemoteOnlyProject",
    "RenamedFile",
    "SyncProgress",
    "SyncResult",
    "SyncSettings",
    "SyncStats",
    "WorkspaceConfig",
    "WorkspaceDiff",
    "default_config_path",
    "sanitize_project_name",
]
