"""
Application-scoped service providers.

Provides cached provider functions for core infrastructure services.
"""

from infrastructure.services.providers import get_settings

__all__ = [
    "get_settings",
]
