"""Content hashing for change and rename detection."""

import hashlib
from pathlib import Path


def compute_hash(content: str) -> str:
    """Compute SHA-256 hash of text content (UTF-8 encoded)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def hash_file(filepath: Path) -> str | None:
    """Compute SHA-256 hash of a text file, or None if it does not exist."""
    filepath = Path(filepath)
    if not filepath.is_file():
        return None
    return compute_hash(filepath.read_text(encoding="utf-8"))
