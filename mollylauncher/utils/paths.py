"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    PATH CONFIGURATION MODULE                                  ║
║              Centralized Path Management for Frozen/Dev Modes                 ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🏭 Production Mode: Detects PyInstaller frozen state                        ║
║  🛠️ Development Mode: Uses project directory                                  ║
║  📁 Launcher data lives under DATA_DIR (MOLLY_LAUNCHER_HOME overrides)       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import os
import sys


def is_frozen() -> bool:
    """
    Detect if application is running as a frozen PyInstaller executable.

    Returns:
        bool: True if running as .exe, False if running as .py script
    """
    return getattr(sys, 'frozen', False)


def _get_base_dir() -> str:
    """
    Determine the base directory based on execution mode.

    Returns:
        str: Absolute path to the application's base directory
    """
    if is_frozen():
        return os.path.dirname(sys.executable)
    # mollylauncher/utils/paths.py -> project root
    utils_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.dirname(os.path.dirname(utils_dir))


def _get_data_dir() -> str:
    override = os.environ.get("MOLLY_LAUNCHER_HOME")
    if override:
        return os.path.abspath(override)
    if sys.platform == "win32":
        root = os.environ.get("APPDATA") or os.path.expanduser("~")
        return os.path.join(root, "MollysLauncher")
    return os.path.join(os.path.expanduser("~"), ".mollys-launcher")


def _get_products_dir() -> str:
    if sys.platform == "win32" and not os.environ.get("MOLLY_LAUNCHER_HOME"):
        return "C:\\MOLLY_Multiloader"
    return os.path.join(DATA_DIR, "products")


# ══════════════════════════════════════════════════════════════════════════════
# 📁 DIRECTORY PATHS
# ══════════════════════════════════════════════════════════════════════════════

BASE_DIR: str = _get_base_dir()
DATA_DIR: str = _get_data_dir()
LOG_DIR: str = os.path.join(DATA_DIR, "logs")
CACHE_DIR: str = os.path.join(DATA_DIR, "cache")
UPDATE_DIR: str = os.path.join(DATA_DIR, "updates")
PRODUCTS_DIR: str = _get_products_dir()

SETTINGS_FILE: str = os.path.join(DATA_DIR, "settings.json")
SKIP_MARKER_FILE: str = os.path.join(DATA_DIR, "update-skip.txt")
LOCAL_PRODUCTS_FILE: str = os.path.join(PRODUCTS_DIR, "loader_versions.json")
LOG_FILE: str = os.path.join(LOG_DIR, "launcher.log")


# ══════════════════════════════════════════════════════════════════════════════
# 🔧 INSTALLED EXECUTABLE
# ══════════════════════════════════════════════════════════════════════════════

APP_EXE_NAME: str = "Molly's Launcher.exe"
UPDATE_ARTIFACT_NAME: str = "MollysLauncher-update.exe"


def get_installed_exe_path() -> str:
    """
    Well-known location of the launcher executable after a per-user install.

    When running frozen, the executable that is currently running wins.
    """
    if is_frozen():
        return sys.executable
    local_app_data = os.environ.get("LOCALAPPDATA") or os.path.expanduser("~")
    return os.path.join(local_app_data, "Programs", "mollys-launcher", APP_EXE_NAME)


# ══════════════════════════════════════════════════════════════════════════════
# 🔄 APP VERSION & UPDATE CONFIGURATION
# ══════════════════════════════════════════════════════════════════════════════

APP_VERSION: str = "1.2.0"
UPDATE_JSON_URL: str = "https://raw.githubusercontent.com/liuytd/Molly-s-Launcher/main/version.ml.json"
PRODUCTS_JSON_URL: str = "https://raw.githubusercontent.com/liuytd/Molly-s-Launcher/main/loader_versions.json"

STARTUP_CHECK_DELAY: float = 3.0           # seconds
DEFAULT_CHECK_INTERVAL_MINUTES: int = 30


def ensure_dirs() -> None:
    """Create launcher data directories if they don't exist."""
    for directory in (DATA_DIR, LOG_DIR, CACHE_DIR, UPDATE_DIR, PRODUCTS_DIR):
        os.makedirs(directory, exist_ok=True)
