"""
数据模块
包含嵌套集合存储和缓存后端
"""

from .storage import NestedSetStore, MemoryStore, SQLiteStore, create_store
from .cache import MemoryCacheBackend, NullCacheBackend, create_cache_backend

__all__ = [
    'NestedSetStore',
    'MemoryStore',
    'SQLiteStore',
    'create_store',
    'MemoryCacheBackend',
    'NullCacheBackend',
    'create_cache_backend',
]
