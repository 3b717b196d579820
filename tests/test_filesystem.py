"""Tests for local filesystem access."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from projectsync.core.filesystem import (
    LocalDirectory,
    LocalReadError,
    LocalStore,
    LocalWriteError,
    WorkspacePermissionError,
    has_extension,
    normalize_file_name,
    sanitize_file_name,
    strip_default_extension,
)


class TestFileNames:
    """Tests for file name sanitization and normalization."""

    def test_invalid_characters_become_dashes(self) -> None:
        assert sanitize_file_name('a<b>c:"d"') == "a-b-c--d-"
        assert sanitize_file_name("dir/file\\name.md") == "dir-file-name.md"

    def test_whitespace_normalized(self) -> None:
        assert sanitize_file_name("  two   words .md ") == "two words .md"

    def test_reserved_names(self) -> None:
        assert sanitize_file_name("CON.txt") == "_CON.txt"
        assert sanitize_file_name("lpt1") == "_lpt1"

    def test_trailing_dots_removed(self) -> None:
        assert sanitize_file_name("name...") == "name"

    def test_empty_fallback(self) -> None:
        assert sanitize_file_name("") == "unnamed_file"
        assert sanitize_file_name("...") == "unnamed_file"

    def test_has_extension(self) -> None:
        assert has_extension("notes.md")
        assert not has_extension("notes")
        assert not has_extension(".env")

    def test_normalize_adds_extension(self) -> None:
        assert normalize_file_name("notes") == "notes.md"
        assert normalize_file_name("data.txt") == "data.txt"
        assert normalize_file_name("notes", add_extension=False) == "notes"

    def test_strip_default_extension(self) -> None:
        assert strip_default_extension("notes.md") == "notes"
        assert strip_default_extension("data.txt") is None
        assert strip_default_extension(".md") is None


class TestLocalStore:
    """Tests for LocalStore operations."""

    @pytest.fixture
    def store(self) -> LocalStore:
        return LocalStore()

    def test_open_workspace(self, store: LocalStore, tmp_path: Path) -> None:
        workspace = store.open_workspace(tmp_path)

        assert workspace.path == tmp_path.resolve()
        assert workspace.exists()

    def test_open_missing_workspace(self, store: LocalStore, tmp_path: Path) -> None:
        with pytest.raises(WorkspacePermissionError, match="not found"):
            store.open_workspace(tmp_path / "missing")

    def test_open_unwritable_workspace(self, store: LocalStore, tmp_path: Path) -> None:
        with patch("projectsync.core.filesystem.os.access", return_value=False):
            with pytest.raises(WorkspacePermissionError, match="No permission"):
                store.open_workspace(tmp_path)

    def test_write_and_read(self, store: LocalStore, tmp_path: Path) -> None:
        directory = LocalDirectory(tmp_path / "nested" / "dir")

        store.write_text_file(directory, "notes.md", "héllo\n")

        assert store.read_text_file(directory, "notes.md") == "héllo\n"
        assert store.file_exists(directory, "notes.md")
        assert store.list_files(directory) == ["notes.md"]

    def test_read_missing(self, store: LocalStore, tmp_path: Path) -> None:
        assert store.read_text_file(LocalDirectory(tmp_path), "missing.md") is None
        assert store.read_text_file(LocalDirectory(tmp_path / "nope"), "missing.md") is None

    def test_read_binary_file(self, store: LocalStore, tmp_path: Path) -> None:
        (tmp_path / "image.png").write_bytes(b"\x89PNG\xff\xfe\x00")

        with pytest.raises(LocalReadError, match="image.png") as exc_info:
            store.read_text_file(LocalDirectory(tmp_path), "image.png")

        assert exc_info.value.filename == "image.png"
        assert isinstance(exc_info.value, OSError)

    def test_failed_write_leaves_no_partial_file(self, store: LocalStore, tmp_path: Path) -> None:
        directory = LocalDirectory(tmp_path)
        store.write_text_file(directory, "notes.md", "original")

        with patch("projectsync.core.filesystem.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(LocalWriteError, match="notes.md") as exc_info:
                store.write_text_file(directory, "notes.md", "replacement")

        assert exc_info.value.filename == "notes.md"
        assert sorted(os.listdir(tmp_path)) == ["notes.md"]
        assert store.read_text_file(directory, "notes.md") == "original"

    def test_delete_file(self, store: LocalStore, tmp_path: Path) -> None:
        directory = LocalDirectory(tmp_path)
        store.write_text_file(directory, "a.md", "a")

        assert store.delete_file(directory, "a.md") is True
        assert store.delete_file(directory, "a.md") is False

    def test_list_files_skips_hidden_and_directories(self, store: LocalStore, tmp_path: Path) -> None:
        (tmp_path / "b.md").write_text("b")
        (tmp_path / "a.md").write_text("a")
        (tmp_path / ".hidden").write_text("h")
        (tmp_path / "sub").mkdir()

        assert store.list_files(LocalDirectory(tmp_path)) == ["a.md", "b.md"]
        assert store.list_directories(LocalDirectory(tmp_path)) == ["sub"]

    def test_get_or_create_directory(self, store: LocalStore, tmp_path: Path) -> None:
        parent = LocalDirectory(tmp_path)

        child = store.get_directory(parent, "child")
        assert not child.exists()

        created = store.get_or_create_directory(parent, "child")
        assert created.exists()
        assert created.name == "child"

    def test_get_modified_time(self, store: LocalStore, tmp_path: Path) -> None:
        directory = LocalDirectory(tmp_path)
        store.write_text_file(directory, "a.md", "a")

        modified = store.get_modified_time(directory, "a.md")

        assert modified is not None
        assert modified.tzinfo is not None
        assert store.get_modified_time(directory, "missing.md") is None
