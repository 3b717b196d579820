"""Resolution of files modified on both sides."""

import enum
import logging

from ..models.config import CONFLICT_STRATEGIES, NEWER_FALLBACKS
from ..models.results import ModifiedFileInfo

logger = logging.getLogger(__name__)


class Resolution(enum.Enum):
    """What to do with a modified file."""

    UPLOAD = "upload"  # local wins
    DOWNLOAD = "download"  # remote wins
    SKIP = "skip"  # left for explicit per-file resolution


class ConflictResolver:
    """Applies a conflict strategy to modified files.

    Strategies:
        remote: remote content always wins
        local: local content always wins
        newer: the side with the later modification time wins; when either
            timestamp is unknown, ``newer_fallback`` decides
        prompt: nothing is resolved automatically
    """

    _FALLBACKS = {
        "remote": Resolution.DOWNLOAD,
        "local": Resolution.UPLOAD,
        "prompt": Resolution.SKIP,
    }

    def __init__(self, strategy: str, newer_fallback: str = "remote") -> None:
        if strategy not in CONFLICT_STRATEGIES:
            raise ValueError(f"Unknown conflict strategy: {strategy}")
        if newer_fallback not in NEWER_FALLBACKS:
            raise ValueError(f"Unknown newer fallback: {newer_fallback}")
        self.strategy = strategy
        self.newer_fallback = newer_fallback

    def resolve(self, name: str, info: ModifiedFileInfo | None = None) -> Resolution:
        """Decide which side wins for one modified file."""
        if self.strategy == "remote":
            return Resolution.DOWNLOAD
        if self.strategy == "local":
            return Resolution.UPLOAD
        if self.strategy == "prompt":
            return Resolution.SKIP

        is_local_newer = info.is_local_newer if info else None
        if is_local_newer is None:
            logger.debug(
                "No timestamps for %s, using newer fallback '%s'", name, self.newer_fallback
            )
            return self._FALLBACKS[self.newer_fallback]
        return Resolution.UPLOAD if is_local_newer else Resolution.DOWNLOAD
