"""Configuration package for Starlight.

Re-exports the settings symbols so that callers can write::

    from starlight.config import get_settings
"""

from __future__ import annotations

from starlight.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
