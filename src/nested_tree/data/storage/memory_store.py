"""
内存存储实现
数据保存在内存中，程序结束即消失
"""
import threading
from typing import Dict, List, Any, Optional
from datetime import datetime

from .adapter import NestedSetStore
from ...interfaces import INode
from ...exceptions import NodeNotFoundError


class MemoryStore(NestedSetStore):
    """内存存储实现"""

    store_type = "memory"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._lock = threading.RLock()  # 线程安全锁，事件回调中允许重入

        self._rows: Dict[int, Dict[str, Any]] = {}  # node_id -> row
        self._next_id = 1
        self._next_position = 1

    # ========== 写操作 ==========

    def insert(self, attributes: Dict[str, Any]) -> INode:
        """新建根节点"""
        with self._lock:
            now = datetime.now()
            node_id = self._next_id
            self._next_id += 1

            self._rows[node_id] = {
                'node_id': node_id,
                'parent_id': None,
                'lft': 0,
                'rgt': 0,
                'depth': 0,
                'position': self._take_position(),
                'attributes': dict(attributes),
                'created_at': now,
                'updated_at': now,
                'deleted_at': None,
            }
            self._rebuild()

            node = self._snapshot(node_id)
            self._fire('saved', node)
            return node

    def save(self, node: INode, attributes: Dict[str, Any]) -> INode:
        """更新业务属性"""
        with self._lock:
            row = self._live_row(node.node_id)
            row['attributes'].update(attributes)
            row['updated_at'] = datetime.now()

            saved = self._snapshot(node.node_id)
            self._fire('saved', saved)
            return saved

    def touch(self, node: INode) -> INode:
        """只更新时间戳，用于触发saved事件"""
        with self._lock:
            row = self._live_row(node.node_id)
            row['updated_at'] = datetime.now()

            touched = self._snapshot(node.node_id)
            self._fire('saved', touched)
            return touched

    def move(self, node: INode, parent: Optional[INode]) -> INode:
        """移动节点，成为新父节点的最后一个子节点（或最后一个根节点）"""
        with self._lock:
            self._live_row(node.node_id)
            current = self._snapshot(node.node_id)
            target = None
            if parent is not None:
                self._live_row(parent.node_id)
                target = self._snapshot(parent.node_id)
            self.check_move(current, target)

            # 先在副本上计算，确认成功后再写回
            layout = {
                node_id: (row['parent_id'], row['position'])
                for node_id, row in self._rows.items()
            }
            position = self._take_position()
            layout[current.node_id] = (target.node_id if target else None, position)
            bounds = self.compute_bounds(layout)

            row = self._rows[current.node_id]
            row['parent_id'] = target.node_id if target else None
            row['position'] = position
            row['updated_at'] = datetime.now()
            self._apply(bounds)

            moved = self._snapshot(current.node_id)
            self._fire('moved', moved)
            return moved

    def delete(self, node: INode, soft: bool = False) -> bool:
        """删除节点及其子树"""
        with self._lock:
            row = self._rows.get(node.node_id)
            if row is None or row['deleted_at'] is not None:
                return False

            subtree = [
                node_id for node_id, other in self._rows.items()
                if other['lft'] >= row['lft'] and other['rgt'] <= row['rgt']
            ]
            now = datetime.now()
            removed = self._snapshot(node.node_id)

            if soft:
                for node_id in subtree:
                    if self._rows[node_id]['deleted_at'] is None:
                        self._rows[node_id]['deleted_at'] = now
                removed.deleted_at = now
            else:
                for node_id in subtree:
                    self._rows.pop(node_id, None)

            self._fire('deleted', removed)
            return True

    # ========== 查询 ==========

    def find(self, node_id: Any) -> Optional[INode]:
        with self._lock:
            row = self._rows.get(node_id)
            if row is None or row['deleted_at'] is not None:
                return None
            return self._snapshot(node_id)

    def query_parent(self, node: INode) -> Optional[INode]:
        with self._lock:
            current = self._bounds_of(node)
            if current['parent_id'] is None:
                return None
            return self.find(current['parent_id'])

    def query_children(self, node: INode) -> List[INode]:
        with self._lock:
            return self._select(lambda row: row['parent_id'] == node.node_id)

    def query_ancestors(self, node: INode, include_self: bool = True) -> List[INode]:
        with self._lock:
            current = self._bounds_of(node)
            if include_self:
                return self._select(
                    lambda row: row['lft'] <= current['lft'] and row['rgt'] >= current['rgt']
                )
            return self._select(
                lambda row: row['lft'] < current['lft'] and row['rgt'] > current['rgt']
            )

    def query_descendants(self, node: INode, include_self: bool = True) -> List[INode]:
        with self._lock:
            current = self._bounds_of(node)
            if include_self:
                return self._select(
                    lambda row: row['lft'] >= current['lft'] and row['rgt'] <= current['rgt']
                )
            return self._select(
                lambda row: row['lft'] > current['lft'] and row['rgt'] < current['rgt']
            )

    def query_roots(self) -> List[INode]:
        with self._lock:
            return self._select(lambda row: row['parent_id'] is None)

    def query_trunks(self, node: Optional[INode] = None) -> List[INode]:
        with self._lock:
            parents = self._live_parent_ids()
            within = self._within(node)
            return self._select(
                lambda row: row['parent_id'] is not None
                and row['node_id'] in parents
                and within(row)
            )

    def query_leaves(self, node: Optional[INode] = None) -> List[INode]:
        with self._lock:
            parents = self._live_parent_ids()
            within = self._within(node)
            return self._select(
                lambda row: row['node_id'] not in parents and within(row)
            )

    def count(self, include_deleted: bool = False) -> int:
        with self._lock:
            if include_deleted:
                return len(self._rows)
            return sum(1 for row in self._rows.values() if row['deleted_at'] is None)

    def clear(self):
        """清空所有数据（测试用）"""
        with self._lock:
            self._rows.clear()
            self._next_id = 1
            self._next_position = 1

    # ========== 内部方法 ==========

    def _take_position(self) -> int:
        position = self._next_position
        self._next_position += 1
        return position

    def _live_row(self, node_id: Any) -> Dict[str, Any]:
        row = self._rows.get(node_id)
        if row is None or row['deleted_at'] is not None:
            raise NodeNotFoundError(node_id)
        return row

    def _bounds_of(self, node: INode) -> Dict[str, Any]:
        """优先使用存储中的最新左右值；已硬删除的节点退回到快照中的值"""
        row = self._rows.get(node.node_id)
        if row is not None:
            return row
        return {
            'node_id': node.node_id,
            'parent_id': node.parent_id,
            'lft': node.lft,
            'rgt': node.rgt,
        }

    def _within(self, node: Optional[INode]):
        if node is None:
            return lambda row: True
        current = self._bounds_of(node)
        return lambda row: row['lft'] > current['lft'] and row['rgt'] < current['rgt']

    def _live_parent_ids(self) -> set:
        return {
            row['parent_id'] for row in self._rows.values()
            if row['deleted_at'] is None and row['parent_id'] is not None
        }

    def _select(self, predicate) -> List[INode]:
        rows = [
            row for row in self._rows.values()
            if row['deleted_at'] is None and predicate(row)
        ]
        rows.sort(key=lambda row: row['lft'])
        return [self._to_node(dict(row)) for row in rows]

    def _snapshot(self, node_id: Any) -> INode:
        return self._to_node(dict(self._rows[node_id]))

    def _rebuild(self) -> None:
        layout = {
            node_id: (row['parent_id'], row['position'])
            for node_id, row in self._rows.items()
        }
        self._apply(self.compute_bounds(layout))

    def _apply(self, bounds) -> None:
        for node_id, (lft, rgt, depth) in bounds.items():
            row = self._rows[node_id]
            row['lft'], row['rgt'], row['depth'] = lft, rgt, depth
