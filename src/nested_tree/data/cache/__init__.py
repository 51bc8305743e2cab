"""
缓存后端模块
"""

from .memory_cache import MemoryCacheBackend
from .null_cache import NullCacheBackend
from ...interfaces import ICacheBackend

# 缓存类型映射
CACHE_TYPES = {
    'memory': MemoryCacheBackend,
    'null': NullCacheBackend
}


def create_cache_backend(cache_type: str = 'memory', **kwargs) -> ICacheBackend:
    """
    创建缓存后端

    Args:
        cache_type: 缓存类型 ('memory', 'null')
        **kwargs: 传递给后端构造函数的参数
    """
    backend_class = CACHE_TYPES.get(cache_type.lower())
    if not backend_class:
        raise ValueError(f"不支持的缓存类型: {cache_type}")

    return backend_class(**kwargs)


__all__ = [
    'MemoryCacheBackend',
    'NullCacheBackend',
    'create_cache_backend',
    'CACHE_TYPES'
]
