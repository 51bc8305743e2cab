"""
嵌套集合存储适配器基类
提供生命周期事件注册和左右值重算，具体读写由子类实现
"""
from abc import abstractmethod
from typing import Dict, List, Any, Optional, Tuple, Type

from ...interfaces import ITreeStore, INode, NodeListener
from ...core.node.entity import TreeNode
from ...exceptions import StructuralConflictError, NodeNotFoundError


EVENTS = ('moved', 'saved', 'deleted')

Bounds = Tuple[int, int, int]  # (lft, rgt, depth)


class NestedSetStore(ITreeStore):
    """
    嵌套集合存储适配器抽象基类

    约定：
    - 只有存储层修改 lft / rgt / depth
    - 插入和移动后根据父指针整体重算左右值，保证一次操作内原子完成
    - 硬删除不压缩左右值，留下的空隙仍是合法的嵌套集合
    - 事件在写入提交后同步触发
    """

    store_type = "abstract"

    def __init__(self, node_class: Type[TreeNode] = TreeNode):
        """
        Args:
            node_class: 查询结果使用的节点类型，构造时绑定
        """
        self.node_class = node_class
        self._listeners: Dict[str, List[NodeListener]] = {event: [] for event in EVENTS}

    # ========== 生命周期事件 ==========

    def on_moved(self, listener: NodeListener) -> None:
        self._listeners['moved'].append(listener)

    def on_saved(self, listener: NodeListener) -> None:
        self._listeners['saved'].append(listener)

    def on_deleted(self, listener: NodeListener) -> None:
        self._listeners['deleted'].append(listener)

    def off(self, event: str, listener: NodeListener) -> bool:
        """注销监听器，返回是否找到"""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def off_moved(self, listener: NodeListener) -> bool:
        return self.off('moved', listener)

    def off_saved(self, listener: NodeListener) -> bool:
        return self.off('saved', listener)

    def off_deleted(self, listener: NodeListener) -> bool:
        return self.off('deleted', listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def _fire(self, event: str, node: INode) -> None:
        """同步触发事件；监听器抛出的异常直接向调用方传播"""
        for listener in list(self._listeners[event]):
            listener(node)

    # ========== 左右值计算 ==========

    @staticmethod
    def compute_bounds(rows: Dict[Any, Tuple[Optional[Any], int]]) -> Dict[Any, Bounds]:
        """
        根据父指针计算整片森林的左右值和深度

        Args:
            rows: node_id -> (parent_id, position)

        Returns:
            node_id -> (lft, rgt, depth)
        """
        children: Dict[Optional[Any], List[Tuple[int, Any]]] = {}
        for node_id, (parent_id, position) in rows.items():
            # 父节点已不存在的行按根节点处理
            key = parent_id if parent_id in rows else None
            children.setdefault(key, []).append((position, node_id))
        for siblings in children.values():
            siblings.sort(key=lambda item: (item[0], item[1]))

        bounds: Dict[Any, Bounds] = {}
        counter = 1
        for _, root_id in children.get(None, []):
            # 迭代式深度优先，避免深树触发递归上限
            stack = [(root_id, 0, False)]
            lefts: Dict[Any, int] = {}
            while stack:
                node_id, depth, closing = stack.pop()
                if closing:
                    bounds[node_id] = (lefts.pop(node_id), counter, depth)
                    counter += 1
                    continue
                lefts[node_id] = counter
                counter += 1
                stack.append((node_id, depth, True))
                for _, child_id in reversed(children.get(node_id, [])):
                    stack.append((child_id, depth + 1, False))

        return bounds

    @staticmethod
    def check_move(node: INode, target: Optional[INode]) -> None:
        """拒绝把节点移动到自身或其后代之下"""
        if target is None:
            return
        if target.node_id == node.node_id:
            raise StructuralConflictError(node.node_id, target.node_id, "不能成为自己的子节点")
        if node.lft < target.lft and node.rgt > target.rgt:
            raise StructuralConflictError(node.node_id, target.node_id, "目标是该节点的后代")

    def validate_move(self, node: INode, parent: Optional[INode]) -> None:
        current = self._require(node)
        target = self._require(parent) if parent is not None else None
        self.check_move(current, target)

    def _require(self, node: Any) -> INode:
        """把节点或标识解析为存储中的当前节点"""
        node_id = node.node_id if isinstance(node, INode) else node
        current = self.find(node_id)
        if current is None:
            raise NodeNotFoundError(node_id)
        return current

    def _to_node(self, row: Dict[str, Any]) -> TreeNode:
        return self.node_class.from_dict(row)

    # ========== 子类实现 ==========

    @abstractmethod
    def count(self, include_deleted: bool = False) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        """清空所有数据（测试用）"""
        pass

    def close(self) -> None:
        """关闭存储连接"""
        pass

    def __str__(self):
        return f"{self.__class__.__name__}(nodes={self.count()})"
