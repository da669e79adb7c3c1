"""
Application configuration.

Everything is read from environment variables (or a .env file) by
pydantic-settings. Storage and converter each have a mock mode for
running without external services.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
