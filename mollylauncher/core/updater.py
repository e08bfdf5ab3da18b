"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        UPDATE ORCHESTRATOR                                    ║
║              Version check, loop guard, download & install                    ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🧠 Smart Versioning - Check before download                                 ║
║  🛑 Loop Guard - a version that failed to land is never retried blindly     ║
║  🔄 Install & Restart - silent installer + detached relaunch                 ║
║  📞 Pure Logic - No GUI imports, events go to an injected sink              ║
╚══════════════════════════════════════════════════════════════════════════════╝

Skip marker lifecycle:

    install(url, "1.1.0")      -> marker = "1.1.0" (before the download)
    restart, still on 1.0.0    -> check() reports SKIPPED for manifest 1.1.0
    restart, now on 1.1.0      -> check() clears the marker first
"""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

from mollylauncher.core.downloader import Downloader, DownloadProgress
from mollylauncher.core.errors import InvalidVersionError, UpdateError
from mollylauncher.core.installer import SILENT_INSTALL_ARGS, InstallSequencer
from mollylauncher.core.manifest import ManifestFetcher, VersionManifest
from mollylauncher.core.scheduler import UpdateScheduler
from mollylauncher.core.skip_marker import SkipMarkerStore
from mollylauncher.core.versioning import compare_versions, is_newer, parse_version

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# EVENTS
# ══════════════════════════════════════════════════════════════════════════════

EVENT_CHECKING = "checking"
EVENT_AVAILABLE = "available"
EVENT_NOT_AVAILABLE = "not-available"
EVENT_DOWNLOADING = "downloading"
EVENT_PROGRESS = "progress"
EVENT_DOWNLOADED = "downloaded"
EVENT_ERROR = "error"


class NotificationSink(Protocol):
    """Presentation layer endpoint. Calls are one-way and must not block."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class NullSink:
    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        pass


# ══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ══════════════════════════════════════════════════════════════════════════════

class UpdateState(Enum):
    CHECKING = "checking"
    UP_TO_DATE = "up-to-date"
    UPDATE_AVAILABLE = "update-available"
    SKIPPED = "skipped"
    INSTALLING = "installing"
    ERROR = "error"


class CheckOutcome(Enum):
    NO_UPDATE = "no-update"
    UPDATE_AVAILABLE = "update-available"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class UpdateCheckResult:
    """Result of a single update check"""
    outcome: CheckOutcome
    current_version: str
    latest_version: Optional[str] = None
    download_url: Optional[str] = None
    changelog: Tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @property
    def update_available(self) -> bool:
        return self.outcome is CheckOutcome.UPDATE_AVAILABLE


@dataclass
class InstallResult:
    """Result of an install command"""
    success: bool
    error: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════════
# ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════════════

class UpdateOrchestrator:
    """
    Checks the remote manifest and drives download + install.

    Commands accepted from the presentation layer:
        check()                              -> UpdateCheckResult
        install(download_url, target_version) -> InstallResult
        get_current_version()                -> str

    ``run_cycle()`` is the scheduled entry point: a check, followed by an
    install when ``auto_install`` is on. Only one cycle runs at a time; a
    cycle requested while another is running is dropped.
    """

    def __init__(
        self,
        current_version: str,
        manifest_url: str,
        skip_marker: SkipMarkerStore,
        sink: Optional[NotificationSink] = None,
        fetcher: Optional[ManifestFetcher] = None,
        downloader: Optional[Downloader] = None,
        sequencer: Optional[InstallSequencer] = None,
        download_dir: Optional[str] = None,
        artifact_name: str = "MollysLauncher-update.exe",
        install_args: Tuple[str, ...] = SILENT_INSTALL_ARGS,
        auto_install: bool = False,
        check_interval: float = 30 * 60,
        initial_delay: float = 3.0,
    ):
        self.current_version = current_version
        self.manifest_url = manifest_url
        self.skip_marker = skip_marker
        self.sink = sink or NullSink()
        self.fetcher = fetcher or ManifestFetcher()
        self.downloader = downloader or Downloader()
        self.sequencer = sequencer
        self.download_dir = download_dir or tempfile.gettempdir()
        self.artifact_name = artifact_name
        self.install_args = install_args
        self.auto_install = auto_install

        self.state = UpdateState.CHECKING
        self.last_result: Optional[UpdateCheckResult] = None
        self._cycle_lock = threading.Lock()
        self._install_lock = threading.Lock()
        self.scheduler = UpdateScheduler(self.run_cycle, check_interval, initial_delay)

    # ── Commands ─────────────────────────────────────────────────────

    def get_current_version(self) -> str:
        return self.current_version

    def check(self) -> UpdateCheckResult:
        """Fetch the manifest and run the loop guard decision."""
        self.state = UpdateState.CHECKING
        self._notify(EVENT_CHECKING)
        logger.info("Checking for updates (current %s)", self.current_version)

        try:
            manifest = self.fetcher.fetch(self.manifest_url)
            result = self.evaluate(manifest)
        except UpdateError as e:
            return self._check_failed(e)

        if result.outcome is CheckOutcome.UPDATE_AVAILABLE:
            logger.info("🆕 Update available: %s -> %s", self.current_version, result.latest_version)
            self._notify(EVENT_AVAILABLE, {
                "version": result.latest_version,
                "downloadUrl": result.download_url,
                "changelog": list(result.changelog),
            })
        else:
            self._notify(EVENT_NOT_AVAILABLE)

        self.last_result = result
        return result

    def evaluate(self, manifest: VersionManifest) -> UpdateCheckResult:
        """
        Decide what ``manifest`` means for the running version.

        Raises:
            InvalidVersionError: running or manifest version is malformed
        """
        current = self.current_version
        latest = manifest.version

        with self.skip_marker.lock:
            marker = self._settle_marker()

            if is_newer(latest, current):
                if marker is not None and compare_versions(latest, marker) == 0:
                    logger.info("Skipping %s: a previous install did not take effect", latest)
                    self.state = UpdateState.SKIPPED
                    return UpdateCheckResult(
                        outcome=CheckOutcome.SKIPPED,
                        current_version=current,
                        latest_version=latest,
                    )

                self.state = UpdateState.UPDATE_AVAILABLE
                return UpdateCheckResult(
                    outcome=CheckOutcome.UPDATE_AVAILABLE,
                    current_version=current,
                    latest_version=latest,
                    download_url=manifest.download_url,
                    changelog=manifest.changelog,
                )

        logger.info("Launcher is up to date (%s, latest %s)", current, latest)
        self.state = UpdateState.UP_TO_DATE
        return UpdateCheckResult(
            outcome=CheckOutcome.NO_UPDATE,
            current_version=current,
            latest_version=latest,
        )

    def _settle_marker(self) -> Optional[str]:
        """Clear the marker once the running version has caught up with it."""
        marker = self.skip_marker.read()
        if marker is None:
            return None

        try:
            parse_version(marker)
        except InvalidVersionError:
            logger.warning("Discarding unreadable skip marker %r", marker)
            self.skip_marker.clear()
            return None

        if compare_versions(self.current_version, marker) >= 0:
            logger.info("Update to %s confirmed running", marker)
            self.skip_marker.clear()
            return None
        return marker

    def install(self, download_url: str, target_version: Optional[str]) -> InstallResult:
        """
        Download the installer for ``target_version`` and hand over to it.

        On success the process terminates and this method does not return.
        Every failed attempt is also reported to the sink as an ``error`` event.
        """
        if not self._install_lock.acquire(blocking=False):
            logger.warning("Install already in progress, request dropped")
            return self._rejected("An update is already being installed")

        try:
            return self._install(download_url, target_version)
        finally:
            self._install_lock.release()

    def _install(self, download_url: str, target_version: Optional[str]) -> InstallResult:
        try:
            if self._is_stale_target(target_version):
                if target_version:
                    self.skip_marker.write(target_version)
                logger.warning("Install aborted: stale target %r (running %s)",
                               target_version, self.current_version)
                return self._rejected("Target version is already installed")

            if not download_url:
                return self._rejected("No download URL")

            # Marker goes down before the first byte so a crash mid-download
            # results in a skip on the next run.
            self.skip_marker.write(target_version)
            self.state = UpdateState.INSTALLING

            self._notify(EVENT_DOWNLOADING, {"version": target_version})
            artifact_path = os.path.join(self.download_dir, self.artifact_name)
            self.downloader.download(download_url, artifact_path, self._on_progress)
            self._notify(EVENT_DOWNLOADED, {"version": target_version})

            if self.sequencer is None:
                logger.info("No install sequencer configured, installer left at %s", artifact_path)
                return InstallResult(True)

            logger.info("Download complete, installing %s", target_version)
            self.sequencer.install_and_relaunch(artifact_path, self.install_args)
            return InstallResult(True)

        except UpdateError as e:
            self.state = UpdateState.ERROR
            logger.error("❌ Update install failed: %s", e)
            self._notify(EVENT_ERROR, {"message": str(e)})
            return InstallResult(False, str(e))

    def _rejected(self, message: str) -> InstallResult:
        self._notify(EVENT_ERROR, {"message": message})
        return InstallResult(False, message)

    def _is_stale_target(self, target_version: Optional[str]) -> bool:
        if not target_version:
            return True
        return compare_versions(target_version, self.current_version) == 0

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        """Begin the startup + recurring checks."""
        self.scheduler.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Cancel the recurring checks (application shutdown)."""
        self.scheduler.stop(timeout)

    def check_now(self):
        """On-demand cycle on a background thread, dropped if one is running."""
        return self.scheduler.trigger()

    # ── Scheduled cycle ──────────────────────────────────────────────

    def run_cycle(self) -> Optional[UpdateCheckResult]:
        """Check, and install when ``auto_install`` is on. Dropped when busy."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Update cycle already running, request dropped")
            return None

        try:
            result = self.check()
            if self.auto_install and result.update_available:
                self.install(result.download_url, result.latest_version)
            return result
        finally:
            self._cycle_lock.release()

    @property
    def is_busy(self) -> bool:
        return self._cycle_lock.locked() or self._install_lock.locked()

    # ── Internals ────────────────────────────────────────────────────

    def _check_failed(self, error: UpdateError) -> UpdateCheckResult:
        self.state = UpdateState.ERROR
        logger.error("Check for updates failed: %s", error)
        self._notify(EVENT_ERROR, {"message": str(error)})
        result = UpdateCheckResult(
            outcome=CheckOutcome.ERROR,
            current_version=self.current_version,
            error=str(error),
        )
        self.last_result = result
        return result

    def _on_progress(self, progress: DownloadProgress) -> None:
        self._notify(EVENT_PROGRESS, progress.as_payload())

    def _notify(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.sink.notify(event, payload or {})
        except Exception:
            logger.exception("Notification sink failed on %r", event)
