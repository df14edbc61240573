"""
shortener package initializer.
"""

from . import errors
from . import service
from . import storage

__all__ = ["errors", "service", "storage"]
