"""Configuration module for the capacity sync engine."""
from capacity_sync.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
