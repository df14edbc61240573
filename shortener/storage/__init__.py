"""
Storage backends for the link shortener.
"""

from .base import BaseStorage
from .storage import MemoryStorage
from .storage_factory import get_storage

__all__ = ["BaseStorage", "MemoryStorage", "get_storage"]
