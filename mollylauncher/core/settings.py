"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                       SETTINGS MANAGER MODULE                                 ║
║              Persistent Configuration with JSON Storage                       ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  💾 Cache-based settings to reduce I/O                                       ║
║  📁 JSON file persistence                                                     ║
║  ⭐ Favorites and download-cache metadata                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import copy
import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional

from mollylauncher.utils.paths import DEFAULT_CHECK_INTERVAL_MINUTES, SETTINGS_FILE

logger = logging.getLogger(__name__)


class SettingsManager:
    """
    Persistent Settings Manager with Caching

    Manages launcher settings using JSON file storage.
    Uses class-level caching to minimize disk I/O.
    """

    settings_file: str = SETTINGS_FILE
    _cache: Optional[Dict[str, Any]] = None
    _lock = threading.RLock()

    DEFAULT_SETTINGS: Dict[str, Any] = {
        "auto_update": True,
        "check_interval_minutes": DEFAULT_CHECK_INTERVAL_MINUTES,
        "favorites": [],
        "cache_metadata": {},
    }

    @classmethod
    def load(cls) -> Dict[str, Any]:
        """
        Load settings from file (uses cache if available).

        Returns:
            Dict[str, Any]: Settings dictionary merged with defaults
        """
        with cls._lock:
            if cls._cache is not None:
                return cls._cache

            defaults = copy.deepcopy(cls.DEFAULT_SETTINGS)
            try:
                if os.path.exists(cls.settings_file):
                    with open(cls.settings_file, 'r', encoding='utf-8') as f:
                        settings = json.load(f)
                    if isinstance(settings, dict):
                        cls._cache = {**defaults, **settings}
                        logger.info("Loaded settings from %s", cls.settings_file)
                        return cls._cache
                    logger.warning("Ignoring malformed settings file %s", cls.settings_file)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load settings: %s", e)

            cls._cache = defaults
            return cls._cache

    @classmethod
    def save(cls, settings: Dict[str, Any]) -> bool:
        """
        Save settings to file and update cache.

        Returns:
            bool: True if save was successful
        """
        with cls._lock:
            try:
                os.makedirs(os.path.dirname(os.path.abspath(cls.settings_file)), exist_ok=True)
                with open(cls.settings_file, 'w', encoding='utf-8') as f:
                    json.dump(settings, f, ensure_ascii=False, indent=2)
                cls._cache = settings
                logger.debug("Saved settings to %s", cls.settings_file)
                return True
            except (OSError, TypeError) as e:
                logger.error("Failed to save settings: %s", e)
                return False

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        return cls.load().get(key, default)

    @classmethod
    def set(cls, key: str, value: Any) -> bool:
        with cls._lock:
            settings = cls.load()
            settings[key] = value
            return cls.save(settings)

    # ── Update preferences ───────────────────────────────────────────

    @classmethod
    def is_auto_update(cls) -> bool:
        return bool(cls.get("auto_update", True))

    @classmethod
    def get_check_interval(cls) -> float:
        """Check interval in seconds (never below one minute)."""
        try:
            minutes = float(cls.get("check_interval_minutes", DEFAULT_CHECK_INTERVAL_MINUTES))
        except (TypeError, ValueError):
            minutes = DEFAULT_CHECK_INTERVAL_MINUTES
        return max(minutes, 1.0) * 60

    # ── Favorites ────────────────────────────────────────────────────

    @classmethod
    def get_favorites(cls) -> List[str]:
        return list(cls.get("favorites", []))

    @classmethod
    def add_favorite(cls, product_id: str) -> List[str]:
        favorites = cls.get_favorites()
        if product_id not in favorites:
            favorites.append(product_id)
            cls.set("favorites", favorites)
        return favorites

    @classmethod
    def remove_favorite(cls, product_id: str) -> List[str]:
        favorites = cls.get_favorites()
        if product_id in favorites:
            favorites.remove(product_id)
            cls.set("favorites", favorites)
        return favorites

    @classmethod
    def toggle_favorite(cls, product_id: str) -> List[str]:
        if product_id in cls.get_favorites():
            return cls.remove_favorite(product_id)
        return cls.add_favorite(product_id)

    # ── Download cache metadata ──────────────────────────────────────

    @classmethod
    def get_cache_metadata(cls) -> Dict[str, Dict[str, Any]]:
        return dict(cls.get("cache_metadata", {}))

    @classmethod
    def set_cache_metadata(cls, metadata: Dict[str, Dict[str, Any]]) -> bool:
        return cls.set("cache_metadata", metadata)

    @classmethod
    def invalidate_cache(cls) -> None:
        """Force reload settings from disk on next access."""
        with cls._lock:
            cls._cache = None
