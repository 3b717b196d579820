"""Tests for conflict resolution."""

from datetime import datetime, timezone

import pytest

from projectsync.core.conflict import ConflictResolver, Resolution
from projectsync.models.results import ModifiedFileInfo

OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)
NEW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestConflictResolver:
    """Tests for ConflictResolver strategies."""

    def test_remote_wins(self) -> None:
        resolver = ConflictResolver("remote")
        assert resolver.resolve("a.md", ModifiedFileInfo(NEW, OLD)) is Resolution.DOWNLOAD

    def test_local_wins(self) -> None:
        resolver = ConflictResolver("local")
        assert resolver.resolve("a.md", ModifiedFileInfo(OLD, NEW)) is Resolution.UPLOAD

    def test_prompt_skips(self) -> None:
        resolver = ConflictResolver("prompt")
        assert resolver.resolve("a.md", ModifiedFileInfo(NEW, OLD)) is Resolution.SKIP

    def test_newer_local(self) -> None:
        resolver = ConflictResolver("newer")
        assert resolver.resolve("a.md", ModifiedFileInfo(local_time=NEW, remote_time=OLD)) is Resolution.UPLOAD

    def test_newer_remote(self) -> None:
        resolver = ConflictResolver("newer")
        assert resolver.resolve("a.md", ModifiedFileInfo(local_time=OLD, remote_time=NEW)) is Resolution.DOWNLOAD

    def test_newer_equal_times_download(self) -> None:
        resolver = ConflictResolver("newer")
        assert resolver.resolve("a.md", ModifiedFileInfo(local_time=OLD, remote_time=OLD)) is Resolution.DOWNLOAD

    def test_newer_missing_timestamp_uses_fallback(self) -> None:
        assert ConflictResolver("newer").resolve("a.md", ModifiedFileInfo(local_time=NEW)) is Resolution.DOWNLOAD
        assert ConflictResolver("newer", "local").resolve("a.md", None) is Resolution.UPLOAD
        assert ConflictResolver("newer", "prompt").resolve("a.md", ModifiedFileInfo()) is Resolution.SKIP

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            ConflictResolver("merge")

    def test_unknown_fallback(self) -> None:
        with pytest.raises(ValueError, match="Unknown newer fallback"):
            ConflictResolver("newer", "newer")
