"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    PROGRESS-TRACKING DOWNLOADER                               ║
║              Streams remote binaries straight to disk                         ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  📥 Chunked streaming (never buffers the whole payload)                      ║
║  🔀 Bounded redirect following                                               ║
║  🧹 Destination is complete or absent - partial files are removed            ║
║  🔌 Decoupled: NO GUI imports, uses callbacks for communication             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from mollylauncher.core.errors import (
    DownloadCancelled,
    HttpStatusError,
    IoError,
    NetworkError,
)
from mollylauncher.core.transport import MAX_REDIRECTS, open_url

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


@dataclass(frozen=True)
class DownloadProgress:
    """Progress of a running download. ``percent`` is None when the size is unknown."""
    percent: Optional[float]
    transferred: int
    total: Optional[int]

    def as_payload(self) -> dict:
        return {
            "percent": self.percent,
            "downloaded": self.transferred,
            "total": self.total,
        }


# Type alias for callbacks
ProgressCallback = Callable[[DownloadProgress], None]


def _remove_quietly(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


class Downloader:
    """
    Streams a URL to a local file with progress reporting.

    One download at a time per instance; ``cancel()`` may be called from any
    thread and takes effect before the next chunk is written.

    Usage:
        def on_progress(progress: DownloadProgress):
            print(progress.percent, progress.transferred, progress.total)

        downloader = Downloader()
        path = downloader.download("https://example.com/setup.exe",
                                   "/tmp/setup.exe", on_progress)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 120,
        chunk_size: int = CHUNK_SIZE,
        max_redirects: int = MAX_REDIRECTS,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.max_redirects = max_redirects

        self._cancelled = threading.Event()
        self._running = False

    def download(
        self,
        url: str,
        dest_path: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Download ``url`` to ``dest_path``.

        This method is BLOCKING and designed to run in a background thread.

        Returns:
            str: ``dest_path`` once the file is completely written

        Raises:
            HttpStatusError: terminal response is not 200
            NetworkError: connection failure (RedirectLoopError past the bound)
            IoError: destination cannot be written
            DownloadCancelled: ``cancel()`` was called mid-transfer
        """
        self._cancelled.clear()
        self._running = True
        try:
            return self._download(url, dest_path, on_progress)
        finally:
            self._running = False

    def _download(self, url: str, dest_path: str, on_progress: Optional[ProgressCallback]) -> str:
        try:
            dest_dir = os.path.dirname(os.path.abspath(dest_path))
            os.makedirs(dest_dir, exist_ok=True)
            if os.path.exists(dest_path):
                os.remove(dest_path)
        except OSError as e:
            raise IoError(f"Cannot prepare {dest_path}: {e}") from e

        response = open_url(
            self.session,
            url,
            stream=True,
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )

        with response:
            if response.status_code != 200:
                raise HttpStatusError(response.status_code, url)

            total = self._content_length(response)
            logger.info("📥 Downloading %s (%s bytes) -> %s", url, total or "unknown", dest_path)

            transferred = 0
            try:
                with open(dest_path, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if self._cancelled.is_set():
                            raise DownloadCancelled(f"Download of {url} cancelled")
                        if not chunk:
                            continue
                        f.write(chunk)
                        transferred += len(chunk)
                        if on_progress:
                            on_progress(self._progress(transferred, total))
            except requests.RequestException as e:
                _remove_quietly(dest_path)
                raise NetworkError(f"Connection lost while downloading {url}: {e}") from e
            except OSError as e:
                _remove_quietly(dest_path)
                raise IoError(f"Cannot write {dest_path}: {e}") from e
            except BaseException:
                _remove_quietly(dest_path)
                raise

        logger.info("✓ Download complete: %d bytes", transferred)
        return dest_path

    @staticmethod
    def _content_length(response: requests.Response) -> Optional[int]:
        value = response.headers.get("Content-Length") or response.headers.get("content-length")
        try:
            total = int(value) if value is not None else None
        except (TypeError, ValueError):
            return None
        return total if total and total > 0 else None

    @staticmethod
    def _progress(transferred: int, total: Optional[int]) -> DownloadProgress:
        percent = None
        if total:
            percent = min(transferred / total * 100.0, 100.0)
        return DownloadProgress(percent=percent, transferred=transferred, total=total)

    def cancel(self) -> None:
        """Cancel the current download."""
        if self._running:
            self._cancelled.set()
            logger.warning("⏹️ Download cancel requested")

    @property
    def is_running(self) -> bool:
        """Check if a download is currently in progress."""
        return self._running
