"""Configuration for the Conduit service."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
