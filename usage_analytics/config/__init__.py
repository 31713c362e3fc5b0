"""
Service configuration.

Settings are read from the environment (optionally seeded from a ``.env`` file).
"""

from usage_analytics.config.settings import Settings, load_settings

__all__ = [
    "Settings",
    "load_settings",
]
