"""
树节点实体模块
嵌套集合（左右值）表示下的单个节点
"""

from typing import Optional, Dict, Any
from datetime import datetime

from ...interfaces.inode import INode


class TreeNode(INode):
    """
    树节点 - 嵌套集合中的一条记录

    每个节点包含：
    1. 身份信息：node_id（分配后不可变）
    2. 结构信息：parent_id, lft, rgt, depth, position（仅由存储层维护）
    3. 业务属性：attributes
    4. 生命周期：created_at, updated_at, deleted_at

    存储层返回的是快照，修改实例不会影响存储中的数据。
    """

    def __init__(
        self,
        node_id: int,
        parent_id: Optional[int] = None,
        lft: int = 0,
        rgt: int = 0,
        depth: int = 0,
        position: int = 0,
        attributes: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        deleted_at: Optional[datetime] = None
    ):
        self._node_id = node_id
        self._parent_id = parent_id
        self._lft = lft
        self._rgt = rgt
        self._depth = depth
        self.position = position
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.created_at: datetime = created_at or datetime.now()
        self.updated_at: datetime = updated_at or self.created_at
        self.deleted_at: Optional[datetime] = deleted_at

    # ========== 结构属性 ==========

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def parent_id(self) -> Optional[int]:
        return self._parent_id

    @property
    def lft(self) -> int:
        return self._lft

    @property
    def rgt(self) -> int:
        return self._rgt

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def exists(self) -> bool:
        """节点是否仍然有效（未被软删除）"""
        return self.deleted_at is None

    def is_root(self) -> bool:
        return self._parent_id is None

    def is_leaf(self) -> bool:
        """按左右值判断，硬删除留下空隙时以存储的 query_leaves 为准"""
        return self._rgt - self._lft == 1

    def is_ancestor_of(self, other: 'TreeNode') -> bool:
        """区间包含即祖先关系"""
        return self._lft < other.lft and self._rgt > other.rgt

    def is_descendant_of(self, other: 'TreeNode') -> bool:
        return other.is_ancestor_of(self)

    def get(self, key: str, default: Any = None) -> Any:
        """读取业务属性"""
        return self.attributes.get(key, default)

    # ========== 序列化 ==========

    def to_dict(self) -> Dict[str, Any]:
        """序列化为字典"""
        return {
            'node_id': self._node_id,
            'parent_id': self._parent_id,
            'lft': self._lft,
            'rgt': self._rgt,
            'depth': self._depth,
            'position': self.position,
            'attributes': dict(self.attributes),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TreeNode':
        """从字典（或存储行）重建节点"""
        def _parse_time(value):
            if value is None or isinstance(value, datetime):
                return value
            return datetime.fromisoformat(value)

        return cls(
            node_id=data['node_id'],
            parent_id=data.get('parent_id'),
            lft=data.get('lft', 0),
            rgt=data.get('rgt', 0),
            depth=data.get('depth', 0),
            position=data.get('position', 0),
            attributes=data.get('attributes') or {},
            created_at=_parse_time(data.get('created_at')),
            updated_at=_parse_time(data.get('updated_at')),
            deleted_at=_parse_time(data.get('deleted_at')),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, TreeNode):
            return NotImplemented
        return self._node_id == other.node_id

    def __hash__(self) -> int:
        return hash(self._node_id)

    def __repr__(self) -> str:
        return (f"TreeNode(id={self._node_id}, parent={self._parent_id}, "
                f"lft={self._lft}, rgt={self._rgt}, depth={self._depth})")
