"""Configuration package for card checkout."""
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
