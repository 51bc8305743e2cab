"""
嵌套集合树 - 带标签缓存的层级数据仓库
"""

__version__ = "1.0.0"

from .system import NestedTreeSystem
from .core import TreeNode, TreeRepository, ParentRef, TreeCache

__all__ = ['NestedTreeSystem', 'TreeNode', 'TreeRepository', 'ParentRef', 'TreeCache']
