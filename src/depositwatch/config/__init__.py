"""Configuration module for depositwatch.

Usage:
    from depositwatch.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.indexer_url)
"""

from depositwatch.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
