"""
rulebook configuration.

Pydantic-based settings read from environment variables (RULEBOOK_ prefix)
and .env files.
"""

from rulebook.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
