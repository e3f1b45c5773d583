"""Configuration for LineWatch."""

from linewatch.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
