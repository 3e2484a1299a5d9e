"""Core module for configuration and utilities."""

from app.core.config import settings
from app.core.storage import StorageConfig, create_storage_backend

__all__ = [
    "settings",
    "StorageConfig",
    "create_storage_backend",
]
