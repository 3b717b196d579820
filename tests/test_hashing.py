"""Tests for content hashing."""

import tempfile
from pathlib import Path

from projectsync.core.hashing import compute_hash, hash_file


class TestHashing:
    """Tests for compute_hash and hash_file."""

    def test_compute_hash(self) -> None:
        hash1 = compute_hash("Hello, World!")
        hash2 = compute_hash("Hello, World!")

        assert hash1 == hash2
        assert len(hash1) == 64  # SHA-256 hex length

    def test_compute_hash_different_content(self) -> None:
        assert compute_hash("Hello") != compute_hash("World")

    def test_compute_hash_unicode(self) -> None:
        # Composed and decomposed forms are different content
        assert compute_hash("caf\u00e9") != compute_hash("cafe\u0301")

    def test_hash_file(self) -> None:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".md", delete=False, encoding="utf-8") as f:
            f.write("test content")
            filepath = Path(f.name)

        try:
            assert hash_file(filepath) == compute_hash("test content")
        finally:
            filepath.unlink()

    def test_hash_file_nonexistent(self) -> None:
        assert hash_file(Path("/nonexistent/file.md")) is None
