"""
节点模块 - 节点实体和带缓存的节点仓库
"""

from .entity import TreeNode
from .repository import TreeRepository, ParentRef

__all__ = ['TreeNode', 'TreeRepository', 'ParentRef']
