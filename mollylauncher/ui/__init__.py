"""
UI Package - User Interface Components (CustomTkinter)
"""

from .app import LauncherApp

__all__ = [
    "LauncherApp",
]
