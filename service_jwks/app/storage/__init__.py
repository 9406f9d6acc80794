"""
Key stores.

Every source of keys implements ``Storage``: the in-memory store, the
remote HTTP store, and the resolution client itself.
"""

from .base import Storage
from .http import HTTPClientStorageOptions, HTTPStorage
from .memory import MemoryStorage

__all__ = [
    "HTTPClientStorageOptions",
    "HTTPStorage",
    "MemoryStorage",
    "Storage",
]
