"""Configuration management for scRNA-seq integration."""

from scrna_recom.config.settings import Settings, get_settings, reset_settings

__all__ = ["Settings", "get_settings", "reset_settings"]
