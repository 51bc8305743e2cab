"""
嵌套集合存储接口
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Callable

from .inode import INode


NodeListener = Callable[[INode], None]


class ITreeStore(ABC):
    """嵌套集合存储接口 - 左右值与深度只由实现类维护"""

    # ========== 写操作 ==========

    @abstractmethod
    def insert(self, attributes: Dict[str, Any]) -> INode:
        """
        新建根节点

        Args:
            attributes: 业务属性

        Returns:
            持久化后的节点
        """
        pass

    @abstractmethod
    def save(self, node: INode, attributes: Dict[str, Any]) -> INode:
        """更新业务属性，触发saved事件"""
        pass

    @abstractmethod
    def touch(self, node: INode) -> INode:
        """仅更新updated_at，触发saved事件"""
        pass

    @abstractmethod
    def move(self, node: INode, parent: Optional[INode]) -> INode:
        """
        移动节点

        Args:
            node: 被移动的节点
            parent: 新父节点，None表示移为根节点

        Raises:
            StructuralConflictError: 目标是节点自身或其后代
        """
        pass

    @abstractmethod
    def validate_move(self, node: INode, parent: Optional[INode]) -> None:
        """
        只做检查不写入，规则与 move 相同

        Raises:
            StructuralConflictError: 目标是节点自身或其后代
        """
        pass

    @abstractmethod
    def delete(self, node: INode, soft: bool = False) -> bool:
        """删除节点及其子树，触发deleted事件"""
        pass

    # ========== 查询 ==========

    @abstractmethod
    def find(self, node_id: Any) -> Optional[INode]:
        """按标识查找，不存在返回None"""
        pass

    @abstractmethod
    def query_parent(self, node: INode) -> Optional[INode]:
        pass

    @abstractmethod
    def query_children(self, node: INode) -> List[INode]:
        pass

    @abstractmethod
    def query_ancestors(self, node: INode, include_self: bool = True) -> List[INode]:
        pass

    @abstractmethod
    def query_descendants(self, node: INode, include_self: bool = True) -> List[INode]:
        pass

    @abstractmethod
    def query_roots(self) -> List[INode]:
        pass

    @abstractmethod
    def query_trunks(self, node: Optional[INode] = None) -> List[INode]:
        """既有父节点又有子节点的节点"""
        pass

    @abstractmethod
    def query_leaves(self, node: Optional[INode] = None) -> List[INode]:
        """没有子节点的节点"""
        pass

    # ========== 生命周期事件 ==========

    @abstractmethod
    def on_moved(self, listener: NodeListener) -> None:
        pass

    @abstractmethod
    def on_saved(self, listener: NodeListener) -> None:
        pass

    @abstractmethod
    def on_deleted(self, listener: NodeListener) -> None:
        pass

    @abstractmethod
    def off_moved(self, listener: NodeListener) -> bool:
        pass

    @abstractmethod
    def off_saved(self, listener: NodeListener) -> bool:
        pass

    @abstractmethod
    def off_deleted(self, listener: NodeListener) -> bool:
        pass
