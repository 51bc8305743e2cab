"""
存储模块
提供嵌套集合的存储后端
"""

from .adapter import NestedSetStore
from .memory_store import MemoryStore
from .sqlite_store import SQLiteStore

# 存储类型映射
STORAGE_TYPES = {
    'memory': MemoryStore,
    'sqlite': SQLiteStore
}


def create_store(
        store_type: str = 'memory',
        **kwargs
) -> NestedSetStore:
    """
    创建存储适配器

    Args:
        store_type: 存储类型 ('memory', 'sqlite')
        **kwargs: 传递给存储构造函数的参数

    Returns:
        存储适配器实例
    """
    store_class = STORAGE_TYPES.get(store_type.lower())
    if not store_class:
        raise ValueError(f"不支持的存储类型: {store_type}")

    return store_class(**kwargs)


__all__ = [
    'NestedSetStore',
    'MemoryStore',
    'SQLiteStore',
    'create_store',
    'STORAGE_TYPES'
]
