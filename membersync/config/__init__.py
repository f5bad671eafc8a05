"""Configuration module for the membership sync service."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
