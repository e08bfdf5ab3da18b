"""
Core Package - Update Logic (Decoupled from GUI)
"""

from .errors import (
    UpdateError,
    NetworkError,
    RedirectLoopError,
    RemoteError,
    HttpStatusError,
    DecodeError,
    InvalidVersionError,
    IoError,
    DownloadCancelled,
    InstallLaunchError,
)
from .versioning import compare_versions
from .manifest import ManifestFetcher, VersionManifest
from .downloader import Downloader, DownloadProgress
from .skip_marker import SkipMarkerStore
from .installer import InstallSequencer, ProcessLauncher
from .scheduler import UpdateScheduler, run_in_thread
from .settings import SettingsManager
from .updater import (
    UpdateOrchestrator,
    UpdateCheckResult,
    InstallResult,
    CheckOutcome,
    UpdateState,
)
from .products import ProductCatalog, Product

__all__ = [
    "UpdateError",
    "NetworkError",
    "RedirectLoopError",
    "RemoteError",
    "HttpStatusError",
    "DecodeError",
    "InvalidVersionError",
    "IoError",
    "DownloadCancelled",
    "InstallLaunchError",
    "compare_versions",
    "ManifestFetcher",
    "VersionManifest",
    "Downloader",
    "DownloadProgress",
    "SkipMarkerStore",
    "InstallSequencer",
    "ProcessLauncher",
    "UpdateScheduler",
    "run_in_thread",
    "SettingsManager",
    "UpdateOrchestrator",
    "UpdateCheckResult",
    "InstallResult",
    "CheckOutcome",
    "UpdateState",
    "ProductCatalog",
    "Product",
]
