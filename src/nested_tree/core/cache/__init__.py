"""
层级查询缓存模块
"""

from . import tags
from .tree_cache import TreeCache

__all__ = ['TreeCache', 'tags']
