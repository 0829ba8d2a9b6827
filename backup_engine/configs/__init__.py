"""
Configuration management module.

Type-safe configuration built on pydantic-settings. Each concern lives in
its own module and reads its own environment prefix.
"""

from backup_engine.configs.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
