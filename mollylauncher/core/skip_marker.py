"""
Persisted skip marker: the version an update attempt targeted but which is
not yet confirmed running.

The file holds only the version string. A missing or blank file means
"no skip".
"""

import logging
import os
import threading
from typing import Optional

from mollylauncher.core.errors import IoError

logger = logging.getLogger(__name__)


class SkipMarkerStore:
    """Single-writer store for the skip marker file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Held by callers doing read-modify-write across several calls."""
        return self._lock

    def read(self) -> Optional[str]:
        with self._lock:
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    value = f.read().strip()
            except FileNotFoundError:
                return None
            except OSError as e:
                logger.warning("Cannot read skip marker %s: %s", self.path, e)
                return None
            return value or None

    def write(self, version: str) -> None:
        """
        Replace the marker with ``version``.

        Raises:
            ValueError: version is empty
            IoError: the marker file cannot be written
        """
        version = (version or "").strip()
        if not version:
            raise ValueError("Skip marker version must not be empty")

        with self._lock:
            tmp_path = self.path + ".tmp"
            try:
                os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    f.write(version)
                os.replace(tmp_path, self.path)
            except OSError as e:
                raise IoError(f"Cannot write skip marker {self.path}: {e}") from e
        logger.info("Skip marker set to %s", version)

    def clear(self) -> None:
        with self._lock:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                return
            except OSError as e:
                raise IoError(f"Cannot clear skip marker {self.path}: {e}") from e
        logger.info("Skip marker cleared")
