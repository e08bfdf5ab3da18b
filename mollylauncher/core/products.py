"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        PRODUCT CATALOG                                        ║
║              Loader catalog sync, download cache, launching                   ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🔄 Sync loader_versions.json from the remote catalog                        ║
║  🆕 Detect products whose published version changed                          ║
║  📦 Cached executable downloads (metadata kept in settings)                  ║
║  🚀 Detached product launch                                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from mollylauncher.core.downloader import Downloader, ProgressCallback
from mollylauncher.core.errors import DecodeError, IoError, UpdateError
from mollylauncher.core.installer import ProcessLauncher
from mollylauncher.core.manifest import ManifestFetcher
from mollylauncher.core.settings import SettingsManager

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class Product:
    """One entry of the loader catalog"""
    id: str
    name: str
    version: str
    download_url: str
    exe_path: str = ""
    original_file_name: str = ""
    category: str = "Unknown"
    icon: str = "🎮"
    executables: List[str] = field(default_factory=list)
    last_check: Optional[str] = None
    is_downloaded: bool = False

    @classmethod
    def from_entry(cls, product_id: str, entry: Dict[str, Any]) -> "Product":
        exe_path = entry.get("ExecutablePath") or ""
        return cls(
            id=product_id,
            name=entry.get("DisplayName") or product_id,
            version=str(entry.get("Version") or ""),
            download_url=entry.get("DownloadUrl") or "",
            exe_path=exe_path,
            original_file_name=entry.get("OriginalFileName") or "",
            category=entry.get("Category") or "Unknown",
            icon=entry.get("Icon") or "🎮",
            executables=list(entry.get("AssociatedExecutables") or []),
            last_check=entry.get("LastCheck"),
            is_downloaded=bool(exe_path) and os.path.exists(exe_path),
        )


@dataclass
class ProductUpdate:
    id: str
    name: str
    old_version: str
    new_version: str


@dataclass
class CachedDownload:
    """Result of a product download request"""
    path: str
    cached: bool


def format_bytes(size: int) -> str:
    """Human-readable size (``1536`` -> ``"1.5 KB"``)."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


# ══════════════════════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════════════════════

class ProductCatalog:
    """
    Local mirror of the remote loader catalog.

    The local file maps product ids to entries with ``DisplayName``,
    ``Version``, ``DownloadUrl``, ``ExecutablePath``, ``OriginalFileName``
    and ``LastCheck``.
    """

    def __init__(
        self,
        remote_url: str,
        local_file: str,
        products_dir: str,
        cache_dir: str,
        fetcher: Optional[ManifestFetcher] = None,
        downloader: Optional[Downloader] = None,
        launcher: Optional[ProcessLauncher] = None,
    ):
        self.remote_url = remote_url
        self.local_file = local_file
        self.products_dir = products_dir
        self.cache_dir = cache_dir
        self.fetcher = fetcher or ManifestFetcher()
        self.downloader = downloader or Downloader()
        self.launcher = launcher or ProcessLauncher()
        self._busy = threading.Lock()

    # ── Local catalog ────────────────────────────────────────────────

    def _read_local(self) -> Dict[str, Any]:
        try:
            with open(self.local_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except OSError as e:
            raise IoError(f"Cannot read {self.local_file}: {e}") from e
        except ValueError as e:
            raise DecodeError(f"{self.local_file} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError(f"{self.local_file} is not a product mapping")
        return data

    def get_all_products(self) -> List[Product]:
        """All catalog products, syncing from the remote first when no local copy exists."""
        if not os.path.exists(self.local_file):
            logger.info("Local catalog not found, fetching from remote...")
            self.sync_with_remote()

        data = self._read_local()
        return [Product.from_entry(pid, entry) for pid, entry in data.items()
                if isinstance(entry, dict)]

    def get_product(self, product_id: str) -> Optional[Product]:
        for product in self.get_all_products():
            if product.id == product_id:
                return product
        return None

    # ── Remote sync ──────────────────────────────────────────────────

    def _fetch_remote(self) -> Dict[str, Any]:
        data = self.fetcher.fetch_json(self.remote_url)
        if not isinstance(data, dict):
            raise DecodeError("Remote catalog is not a product mapping")
        return data

    def check_updates(self) -> List[ProductUpdate]:
        """Products whose remote version differs from the local catalog."""
        remote = self._fetch_remote()
        local = self._read_local() if os.path.exists(self.local_file) else {}

        updates = []
        for pid, remote_entry in remote.items():
            if not isinstance(remote_entry, dict):
                continue
            local_entry = local.get(pid) or {}
            old_version = str(local_entry.get("Version") or "N/A")
            new_version = str(remote_entry.get("Version") or "")
            if not local_entry or old_version != new_version:
                updates.append(ProductUpdate(
                    id=pid,
                    name=remote_entry.get("DisplayName") or pid,
                    old_version=old_version,
                    new_version=new_version,
                ))
        return updates

    def sync_with_remote(self) -> Dict[str, Any]:
        """Replace the local catalog with the remote one and create product folders."""
        logger.info("Syncing products with %s", self.remote_url)
        remote = self._fetch_remote()

        now = datetime.now(timezone.utc).isoformat()
        for entry in remote.values():
            if isinstance(entry, dict):
                entry["LastCheck"] = now

        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.local_file)), exist_ok=True)
            tmp_path = self.local_file + ".tmp"
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(remote, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.local_file)

            for pid in remote:
                folder = os.path.join(self.products_dir, pid)
                if not os.path.exists(folder):
                    os.makedirs(folder, exist_ok=True)
                    logger.info("Created folder for %s", pid)
        except OSError as e:
            raise IoError(f"Cannot write catalog: {e}") from e

        logger.info("Products synced (%d entries)", len(remote))
        return remote

    # ── Download cache ───────────────────────────────────────────────

    def cache_path(self, filename: str) -> str:
        return os.path.join(self.cache_dir, os.path.basename(filename))

    def download_product(
        self,
        product: Product,
        on_progress: Optional[ProgressCallback] = None,
        force: bool = False,
    ) -> CachedDownload:
        """Download ``product`` into the cache unless it is already there."""
        filename = product.original_file_name or f"{product.id}.exe"
        path = self.cache_path(filename)

        if os.path.exists(path) and not force:
            logger.info("File %s already in cache", filename)
            return CachedDownload(path=path, cached=True)

        logger.info("Downloading %s from %s", filename, product.download_url)
        self.downloader.download(product.download_url, path, on_progress)

        metadata = SettingsManager.get_cache_metadata()
        metadata[product.id] = {
            "filename": filename,
            "path": path,
            "version": product.version,
            "downloadedAt": int(time.time() * 1000),
            "url": product.download_url,
        }
        SettingsManager.set_cache_metadata(metadata)
        return CachedDownload(path=path, cached=False)

    def check_cache(self, filename: str) -> Optional[Dict[str, Any]]:
        path = self.cache_path(filename)
        if not os.path.exists(path):
            return None
        stats = os.stat(path)
        return {"path": path, "size": stats.st_size, "modifiedAt": stats.st_mtime}

    def clear_cache(self) -> int:
        """Delete every cached download. Returns the number of files removed."""
        removed = 0
        for entry in SettingsManager.get_cache_metadata().values():
            path = entry.get("path")
            if path and os.path.exists(path):
                try:
                    os.remove(path)
                    removed += 1
                except OSError as e:
                    logger.warning("Cannot delete cached file %s: %s", path, e)
        SettingsManager.set_cache_metadata({})
        return removed

    def get_cache_size(self) -> int:
        total = 0
        for entry in SettingsManager.get_cache_metadata().values():
            path = entry.get("path")
            if path and os.path.exists(path):
                total += os.path.getsize(path)
        return total

    def get_cache_info(self) -> Dict[str, Any]:
        """Cache size in bytes plus a display string (``{"size", "sizeFormatted"}``)."""
        size = self.get_cache_size()
        return {"size": size, "sizeFormatted": format_bytes(size)}

    # ── Launch ───────────────────────────────────────────────────────

    def launch(self, path: str, args: Sequence[str] = ()) -> None:
        """
        Start a product executable detached from the launcher.

        Raises:
            IoError: file does not exist or cannot be started
        """
        if not os.path.exists(path):
            raise IoError(f"File not found: {path}")
        logger.info("Launching %s", path)
        try:
            self.launcher.spawn_detached([path, *args], cwd=os.path.dirname(path) or None)
        except OSError as e:
            raise IoError(f"Cannot launch {path}: {e}") from e

    # ── Busy-gated refresh ───────────────────────────────────────────

    def sync_and_download_updates(self) -> Optional[List[ProductUpdate]]:
        """
        Check for changed products, sync the catalog and re-download the
        changed ones that are already cached.

        Returns None when another refresh is still running.
        """
        if not self._busy.acquire(blocking=False):
            logger.info("Product refresh already running, request dropped")
            return None

        try:
            updates = self.check_updates()
            if not updates:
                return []

            self.sync_with_remote()
            cached_ids = set(SettingsManager.get_cache_metadata())
            for update in updates:
                if update.id not in cached_ids:
                    continue
                product = self.get_product(update.id)
                if product is None or not product.download_url:
                    continue
                try:
                    self.download_product(product, force=True)
                except UpdateError as e:
                    logger.error("Auto-download of %s failed: %s", update.id, e)
            return updates
        finally:
            self._busy.release()
