"""
核心模块包
包含节点实体、节点仓库和层级查询缓存
"""

# 导入缓存模块
from .cache import TreeCache

# 导入节点模块
from .node import TreeNode, TreeRepository, ParentRef

__all__ = [
    # 缓存模块
    'TreeCache',

    # 节点模块
    'TreeNode',
    'TreeRepository',
    'ParentRef',
]
