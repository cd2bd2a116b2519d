"""Configuration module for the connector application."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
