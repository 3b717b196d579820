"""Tests for data models."""

import json
import tempfile
from pathlib import Path

import pytest

from projectsync.models.config import (
    ProjectMetadata,
    SyncSettings,
    WorkspaceConfig,
    default_config_path,
    sanitize_project_name,
)
from projectsync.models.results import (
    ModifiedFileInfo,
    ProjectDiff,
    RenamedFile,
    SyncProgress,
    SyncResult,
    WorkspaceDiff,
)


class TestSanitizeProjectName:
    """Tests for project folder naming."""

    def test_removes_unsafe_characters(self) -> None:
        assert sanitize_project_name('My: "Project"?') == "My Project"
        assert sanitize_project_name("a/b\\c") == "abc"

    def test_keeps_unicode(self) -> None:
        assert sanitize_project_name("Café 🚀") == "Café 🚀"

    def test_empty_fallback(self) -> None:
        assert sanitize_project_name("???") == "unnamed_project"


class TestSyncSettings:
    """Tests for SyncSettings model."""

    def test_defaults(self) -> None:
        settings = SyncSettings()

        assert settings.auto_sync is False
        assert settings.sync_interval_minutes == 15
        assert settings.bidirectional is False
        assert settings.sync_chats is False
        assert settings.auto_add_extension is True
        assert settings.conflict_strategy == "remote"
        assert settings.newer_fallback == "remote"

    def test_to_dict(self) -> None:
        result = SyncSettings(conflict_strategy="newer", sync_chats=True).to_dict()

        assert result["conflictStrategy"] == "newer"
        assert result["syncChats"] is True
        assert result["syncIntervalMinutes"] == 15

    def test_from_dict(self) -> None:
        settings = SyncSettings.from_dict({
            "autoSync": True,
            "syncIntervalMinutes": 30,
            "conflictStrategy": "local",
        })

        assert settings.auto_sync is True
        assert settings.sync_interval_minutes == 30
        assert settings.conflict_strategy == "local"
        assert settings.bidirectional is False

    def test_invalid_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            SyncSettings(conflict_strategy="merge")


class TestWorkspaceConfig:
    """Tests for WorkspaceConfig persistence and folder mapping."""

    def test_load_missing_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = WorkspaceConfig.load(Path(tmpdir) / "missing.json")

            assert config.project_map == {}
            assert config.last_sync is None
            assert config.settings == SyncSettings()

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = default_config_path(Path(tmpdir))
            config = WorkspaceConfig(workspace_path=tmpdir, project_map={"p1": "Alpha"})
            config.settings.sync_chats = True
            config.mark_synced()
            config.save(config_path)

            data = json.loads(config_path.read_text())
            assert data["projectMap"] == {"p1": "Alpha"}
            assert data["settings"]["syncChats"] is True

            loaded = WorkspaceConfig.load(config_path)
            assert loaded.project_map == {"p1": "Alpha"}
            assert loaded.last_sync == config.last_sync
            assert loaded.settings.sync_chats is True

    def test_reset(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "workspace.json"
            WorkspaceConfig(project_map={"p1": "Alpha"}).save(config_path)

            WorkspaceConfig.reset(config_path)
            WorkspaceConfig.reset(config_path)

            assert WorkspaceConfig.load(config_path).project_map == {}

    def test_assign_folder_collision(self) -> None:
        config = WorkspaceConfig()

        assert config.assign_folder("p1", "Notes") == "Notes"
        assert config.assign_folder("p2", "Notes") == "Notes_1"
        assert config.assign_folder("p3", "Notes") == "Notes_2"
        assert config.assign_folder("p1", "Renamed remotely") == "Notes"

    def test_folder_lookups(self) -> None:
        config = WorkspaceConfig(project_map={"p1": "Alpha"})

        assert config.folder_for("p1") == "Alpha"
        assert config.folder_for("p2") is None
        assert config.project_for_folder("Alpha") == "p1"
        assert config.project_for_folder("Beta") is None

    def test_update_settings(self) -> None:
        config = WorkspaceConfig()

        config.update_settings(conflictStrategy="newer", sync_chats=True)

        assert config.settings.conflict_strategy == "newer"
        assert config.settings.sync_chats is True

    def test_update_settings_unknown_key(self) -> None:
        with pytest.raises(KeyError):
            WorkspaceConfig().update_settings(color="blue")

    def test_update_settings_invalid_value(self) -> None:
        config = WorkspaceConfig()

        with pytest.raises(ValueError):
            config.update_settings(conflict_strategy="merge")
        assert config.settings.conflict_strategy == "remote"


class TestProjectMetadata:
    """Tests for ProjectMetadata model."""

    def test_round_trip(self) -> None:
        metadata = ProjectMetadata(
            id="p1",
            name="Alpha",
            org_id="org-1",
            synced_at="2026-01-31T12:00:00+00:00",
            file_hashes={"a.md": "abc"},
        )

        data = metadata.to_dict()
        assert data["orgId"] == "org-1"
        assert data["fileHashes"] == {"a.md": "abc"}
        assert ProjectMetadata.from_dict(data) == metadata


class TestResults:
    """Tests for diff and result models."""

    def test_sync_result_success(self) -> None:
        result = SyncResult()
        assert result.success

        result.add_error("Alpha: boom")

        assert not result.success
        assert result.stats.errors == 1
        assert result.to_dict()["errors"] == ["Alpha: boom"]

    def test_progress_percentage(self) -> None:
        assert SyncProgress("syncing", total_projects=4, completed_projects=1).percentage == 25
        assert SyncProgress("initializing").percentage == 0
        assert SyncProgress("complete").percentage == 100

    def test_is_local_newer_unknown(self) -> None:
        assert ModifiedFileInfo().is_local_newer is None

    def test_project_diff(self) -> None:
        diff = ProjectDiff(name="Alpha", id="p1", folder="Alpha")
        assert not diff.has_differences

        diff.renamed_files.append(RenamedFile("old.md", "new.md"))
        diff.modified_files.append("a.md")

        assert diff.has_differences
        statuses = {(d.name, d.status) for d in diff.file_diffs()}
        assert statuses == {("a.md", "modified"), ("old.md", "removed"), ("new.md", "added")}

    def test_workspace_diff_summary(self) -> None:
        diff = WorkspaceDiff(remote_project_count=2, local_folder_count=1, local_only=["Orphan"])

        assert diff.summary["localOnly"] == 1
        assert diff.has_differences
