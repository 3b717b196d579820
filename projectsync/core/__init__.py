"""Core sync functionality."""

from .auth import SessionAuth
from .client import ClaudeClient
from .conflict import ConflictResolver, Resolution
from .diff import DiffEngine, detect_renames
from .filesystem import LocalDirectory, LocalReadError, LocalStore, LocalWriteError, WorkspacePermissionError
from .operations import ProjectSyncError, SyncInProgressError, SyncOrchestrator
from .remote import APIError, AuthenticationError, NotFoundError, RemoteStore

__all__ = [
    "APIError",
    "AuthenticationError",
    "ClaudeClient",
    "ConflictResolver",
    "DiffEngine",
    "LocalDirectory",
    "LocalReadError",
    "LocalStore",
    "LocalWriteError",
    "NotFoundError",
    "ProjectSyncError",
    "RemoteStore",
    "Resolution",
    "SessionAuth",
    "SyncInProgressError",
    "SyncOrchestrator",
    "WorkspacePermissionError",
    "detect_renames",
]
