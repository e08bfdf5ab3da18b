"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                       MOLLY'S LAUNCHER v1.2                                  ║
║                       Clean Entry Point                                       ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🏗️ Package-Based Architecture                                               ║
║  🔄 Self-Updating (check, download, silent install, relaunch)                ║
║  📦 Modular Design for Easy Maintenance                                       ║
╚══════════════════════════════════════════════════════════════════════════════╝

Entry Point for Molly's Launcher.

All application logic is organized in the mollylauncher/ package:

    mollylauncher/
    ├── utils/       # Paths and constants
    ├── core/        # Update logic, product catalog, settings
    └── ui/          # GUI window (notification sink)

Usage:
    python main.py

    Or as PyInstaller executable:
    "Molly's Launcher.exe"
"""

import logging
import sys

from mollylauncher.core.installer import POST_UPDATE_FLAG

logger = logging.getLogger("mollylauncher")


def setup_logging() -> None:
    """Log to the launcher log file and the console."""
    from mollylauncher.utils.paths import LOG_FILE, ensure_dirs

    ensure_dirs()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(),
        ],
    )


def main() -> None:
    """Application entry point."""
    # Import here to ensure proper module loading after path setup
    from mollylauncher.core import (
        InstallSequencer,
        ProductCatalog,
        SettingsManager,
        SkipMarkerStore,
        UpdateOrchestrator,
    )
    from mollylauncher.ui.app import LauncherApp
    from mollylauncher.utils.paths import (
        APP_VERSION,
        CACHE_DIR,
        LOCAL_PRODUCTS_FILE,
        PRODUCTS_DIR,
        PRODUCTS_JSON_URL,
        SKIP_MARKER_FILE,
        STARTUP_CHECK_DELAY,
        UPDATE_ARTIFACT_NAME,
        UPDATE_DIR,
        UPDATE_JSON_URL,
        get_installed_exe_path,
    )

    app = LauncherApp(APP_VERSION)

    orchestrator = UpdateOrchestrator(
        current_version=APP_VERSION,
        manifest_url=UPDATE_JSON_URL,
        skip_marker=SkipMarkerStore(SKIP_MARKER_FILE),
        sink=app,
        sequencer=InstallSequencer(get_installed_exe_path(), exit_delay=1.5),
        download_dir=UPDATE_DIR,
        artifact_name=UPDATE_ARTIFACT_NAME,
        auto_install=SettingsManager.is_auto_update(),
        check_interval=SettingsManager.get_check_interval(),
        initial_delay=STARTUP_CHECK_DELAY,
    )
    app.attach(orchestrator)

    catalog = ProductCatalog(PRODUCTS_JSON_URL, LOCAL_PRODUCTS_FILE, PRODUCTS_DIR, CACHE_DIR)
    refresh_products(catalog)

    # The window stops the orchestrator when it closes
    orchestrator.start()
    app.mainloop()


def refresh_products(catalog) -> None:
    """Sync the loader catalog in the background."""
    from mollylauncher.core import UpdateError, run_in_thread

    @run_in_thread
    def _refresh():
        try:
            updates = catalog.sync_and_download_updates()
        except UpdateError as e:
            logger.error("Product sync failed: %s", e)
            return
        if updates:
            logger.info("🆕 %d product update(s): %s", len(updates),
                        ", ".join(f"{u.name} {u.old_version} -> {u.new_version}" for u in updates))
        logger.info("Download cache: %s", catalog.get_cache_info()["sizeFormatted"])

    _refresh()


if __name__ == "__main__":
    setup_logging()

    # Handle post-update flag (from self-update process)
    if POST_UPDATE_FLAG in sys.argv:
        logger.info("✅ Update completed successfully!")

    main()
