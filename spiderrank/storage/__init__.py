"""
Storage layer for the scored index and crawled documents.
"""

from .index_store import (
    IndexStoreManager, IndexStore, FileIndexStore, RedisIndexStore,
    IndexStoreError, IndexedDocument,
)

__all__ = [
    'IndexStoreManager', 'IndexStore', 'FileIndexStore', 'RedisIndexStore',
    'IndexStoreError', 'IndexedDocument',
]
