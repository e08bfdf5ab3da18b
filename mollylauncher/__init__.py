"""
Molly's Launcher - self-updating loader launcher.
"""

from mollylauncher.utils.paths import APP_VERSION

__version__ = APP_VERSION
