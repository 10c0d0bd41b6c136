"""Configuration module for the identity manager."""
from .settings import AppConfig, get_settings, load_settings

__all__ = ["AppConfig", "get_settings", "load_settings"]
