"""
Utils Package - Helper Modules
"""

from .paths import (
    BASE_DIR,
    DATA_DIR,
    LOG_DIR,
    LOG_FILE,
    CACHE_DIR,
    UPDATE_DIR,
    PRODUCTS_DIR,
    SETTINGS_FILE,
    SKIP_MARKER_FILE,
    LOCAL_PRODUCTS_FILE,
    APP_VERSION,
    UPDATE_JSON_URL,
    PRODUCTS_JSON_URL,
    UPDATE_ARTIFACT_NAME,
    STARTUP_CHECK_DELAY,
    get_installed_exe_path,
    ensure_dirs,
    is_frozen,
)

__all__ = [
    "BASE_DIR",
    "DATA_DIR",
    "LOG_DIR",
    "LOG_FILE",
    "CACHE_DIR",
    "UPDATE_DIR",
    "PRODUCTS_DIR",
    "SETTINGS_FILE",
    "SKIP_MARKER_FILE",
    "LOCAL_PRODUCTS_FILE",
    "APP_VERSION",
    "UPDATE_JSON_URL",
    "PRODUCTS_JSON_URL",
    "UPDATE_ARTIFACT_NAME",
    "STARTUP_CHECK_DELAY",
    "get_installed_exe_path",
    "ensure_dirs",
    "is_frozen",
]
