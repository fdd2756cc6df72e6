"""
Storage module - persisted user preferences.
"""

from .client import RedisClient
from .preferences import (
    FilePreferenceStore,
    MemoryPreferenceStore,
    PreferenceStore,
    RedisPreferenceStore,
    create_preference_store,
)

__all__ = [
    "RedisClient",
    "PreferenceStore",
    "MemoryPreferenceStore",
    "FilePreferenceStore",
    "RedisPreferenceStore",
    "create_preference_store",
]
