"""Local filesystem access for workspace synchronization.

Directories are passed around as ``LocalDirectory`` capabilities. A workspace
capability is acquired per run with ``LocalStore.open_workspace`` and is never
persisted; callers re-acquire it for every run.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".md"

_RESERVED_NAMES = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$", re.IGNORECASE)


class WorkspacePermissionError(Exception):
    """The workspace directory is missing or not readable and writable."""


class LocalWriteError(OSError):
    """Writing a local file failed; no partial file was left behind."""

    def __init__(self, filename: str, cause: Exception) -> None:
        super().__init__(f"Failed to write {filename}: {cause}")
        self.filename = filename


class LocalReadError(OSError):
    """A local file exists but is not readable as UTF-8 text."""

    def __init__(self, filename: str, cause: Exception) -> None:
        super().__init__(f"Failed to read {filename}: {cause}")
        self.filename = filename


def sanitize_file_name(file_name: str) -> str:
    """Sanitize a file name for cross-platform filesystems.

    Invalid characters become dashes, whitespace is normalized, Windows
    reserved names are prefixed with an underscore and trailing dots/spaces
    are removed.
    """
    sanitized = re.sub(r'[<>:"|?*]', "-", file_name)
    sanitized = re.sub(r"[/\\]", "-", sanitized)
    sanitized = re.sub(r"\s+", " ", sanitized).strip()

    stem = re.sub(r"\.[^.]*$", "", sanitized)
    if _RESERVED_NAMES.match(stem):
        sanitized = f"_{sanitized}"

    sanitized = re.sub(r"[.\s]+$", "", sanitized)

    if not sanitized or sanitized == ".":
        sanitized = "unnamed_file"
    return sanitized


def has_extension(file_name: str) -> bool:
    """True if the name has a non-empty extension (dotfiles don't count)."""
    stem, dot, ext = file_name.lstrip(".").rpartition(".")
    return bool(dot and stem and ext)


def normalize_file_name(file_name: str, add_extension: bool = True) -> str:
    """Name a file is stored under locally.

    Both sides of a diff are keyed by this name, so a remote ``notes`` and a
    local ``notes.md`` are the same file when ``add_extension`` is on.
    """
    name = sanitize_file_name(file_name)
    if add_extension and not has_extension(name):
        name += DEFAULT_EXTENSION
    return name


def strip_default_extension(file_name: str) -> str | None:
    """Name without the extension added by normalization, None if not added."""
    if file_name.endswith(DEFAULT_EXTENSION) and len(file_name) > len(DEFAULT_EXTENSION):
        return file_name[: -len(DEFAULT_EXTENSION)]
    return None


@dataclass(frozen=True)
class LocalDirectory:
    """Capability for one local directory. It may not exist yet."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    def exists(self) -> bool:
        return self.path.is_dir()


class LocalStore:
    """Scoped text-file operations on local directories."""

    def open_workspace(self, workspace_path: Path) -> LocalDirectory:
        """Acquire a workspace capability and verify it is usable.

        Raises:
            WorkspacePermissionError: If the directory is missing or not writable
        """
        workspace = LocalDirectory(Path(workspace_path).expanduser().resolve())
        self.verify_permission(workspace)
        return workspace

    def verify_permission(self, directory: LocalDirectory) -> None:
        """Check read/write access before a write session.

        Raises:
            WorkspacePermissionError: If access is not granted
        """
        if not directory.exists():
            raise WorkspacePermissionError(f"Workspace directory not found: {directory.path}")
        if not os.access(directory.path, os.R_OK | os.W_OK | os.X_OK):
            raise WorkspacePermissionError(f"No permission to access workspace directory: {directory.path}")

    def get_directory(self, parent: LocalDirectory, name: str) -> LocalDirectory:
        """Get a child directory capability without creating it."""
        return LocalDirectory(parent.path / name)

    def get_or_create_directory(self, parent: LocalDirectory, name: str) -> LocalDirectory:
        """Get a child directory, creating it if needed."""
        child = self.get_directory(parent, name)
        child.path.mkdir(parents=True, exist_ok=True)
        return child

    def read_text_file(self, directory: LocalDirectory, name: str) -> str | None:
        """Read a text file, returning None if it does not exist.

        Raises:
            LocalReadError: If the file is not valid UTF-8 (e.g. an image)
        """
        filepath = directory.path / sanitize_file_name(name)
        try:
            return filepath.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError):
            return None
        except UnicodeDecodeError as e:
            raise LocalReadError(filepath.name, e) from e

    def write_text_file(self, directory: LocalDirectory, name: str, content: str) -> None:
        """Write a text file atomically.

        The content goes to a temporary file in the same directory which then
        replaces the target, so a failure never leaves a partial file.

        Raises:
            LocalWriteError: Naming the file that could not be written
        """
        filename = sanitize_file_name(name)
        tmp_path: str | None = None
        try:
            directory.path.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{filename}.", suffix=".tmp", dir=directory.path)
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.replace(tmp_path, directory.path / filename)
            tmp_path = None
        except OSError as e:
            raise LocalWriteError(filename, e) from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_path)

    def delete_file(self, directory: LocalDirectory, name: str) -> bool:
        """Delete a file. Returns False if it was already absent."""
        filepath = directory.path / sanitize_file_name(name)
        try:
            filepath.unlink()
        except (FileNotFoundError, NotADirectoryError):
            return False
        return True

    def file_exists(self, directory: LocalDirectory, name: str) -> bool:
        return (directory.path / sanitize_file_name(name)).is_file()

    def list_files(self, directory: LocalDirectory) -> list[str]:
        """List regular, non-hidden files in a directory (sorted)."""
        if not directory.exists():
            return []
        return sorted(
            entry.name for entry in directory.path.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )

    def list_directories(self, directory: LocalDirectory) -> list[str]:
        """List subdirectories (sorted)."""
        if not directory.exists():
            return []
        return sorted(entry.name for entry in directory.path.iterdir() if entry.is_dir())

    def get_modified_time(self, directory: LocalDirectory, name: str) -> datetime | None:
        """Get a file's modification time, None if it does not exist."""
        filepath = directory.path / sanitize_file_name(name)
        try:
            mtime = filepath.stat().st_mtime
        except (FileNotFoundError, NotADirectoryError):
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
