"""
节点仓库模块
封装节点的创建、更新、删除，读取时优先走缓存，
结构变化后沿祖先链级联清除缓存
"""

import logging
from typing import Optional, Dict, Any, List, Union

from .entity import TreeNode
from ..cache import TreeCache
from ..cache import tags as T
from ...config.validator import ConfigValidator
from ...interfaces import ITreeStore, INode
from ...exceptions import NodeNotFoundError, CacheFlushError, ValidationError

logger = logging.getLogger(__name__)

NodeRef = Union[INode, Any]


class ParentRef:
    """
    父节点引用的三种状态

    - UNCHANGED: 不改变位置（字段缺失或为None）
    - ROOT: 移为根节点（显式传入0或空字符串）
    - PARENT: 移到指定父节点之下
    """

    UNCHANGED = "unchanged"
    ROOT = "root"
    PARENT = "parent"

    def __init__(self, kind: str, node_id: Any = None):
        if kind not in (self.UNCHANGED, self.ROOT, self.PARENT):
            raise ValueError(f"未知的父节点引用类型: {kind}")
        if kind == self.PARENT and node_id is None:
            raise ValueError("PARENT 引用必须指定节点标识")
        self.kind = kind
        self.node_id = node_id

    @classmethod
    def unchanged(cls) -> 'ParentRef':
        return cls(cls.UNCHANGED)

    @classmethod
    def root(cls) -> 'ParentRef':
        return cls(cls.ROOT)

    @classmethod
    def to(cls, parent: NodeRef) -> 'ParentRef':
        node_id = parent.node_id if isinstance(parent, INode) else parent
        return cls(cls.PARENT, node_id)

    @classmethod
    def from_value(cls, value: Any) -> 'ParentRef':
        """把调用方提交的原始值转换为明确的三态引用"""
        if isinstance(value, ParentRef):
            return value
        if value is None:
            return cls.unchanged()
        if isinstance(value, bool):
            raise ValidationError(
                message="父节点引用不能是布尔值",
                field="parent_id",
                value=value,
                reason="invalid_type"
            )
        if value == 0 or value == "":
            return cls.root()
        return cls.to(value)

    @classmethod
    def from_payload(cls, data: Dict[str, Any], column: str = "parent_id") -> 'ParentRef':
        if column not in data:
            return cls.unchanged()
        return cls.from_value(data[column])

    @property
    def is_unchanged(self) -> bool:
        return self.kind == self.UNCHANGED

    @property
    def is_root(self) -> bool:
        return self.kind == self.ROOT

    @property
    def is_parent(self) -> bool:
        return self.kind == self.PARENT

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParentRef):
            return NotImplemented
        return self.kind == other.kind and self.node_id == other.node_id

    def __repr__(self) -> str:
        if self.is_parent:
            return f"ParentRef.to({self.node_id!r})"
        return f"ParentRef.{self.kind}()"


class TreeRepository:
    """
    节点仓库，嵌套集合存储之上的缓存与一致性层

    失效级联分两步，避免事件回调互相触发造成无限递归：
    1. moved: 只 touch 直接父节点（父节点因此触发自己的 saved）
    2. saved / deleted: 清除该节点所有严格祖先的标签

    父节点的 saved 会清除它自己的祖先，所以整条祖先链逐层失效，
    任何回调都不会再次触发 moved。
    """

    parent_column = "parent_id"

    def __init__(
        self,
        store: ITreeStore,
        cache: TreeCache,
        strict_flush: bool = False,
        debug: bool = False,
        validator: Optional[ConfigValidator] = None
    ):
        """
        初始化节点仓库

        Args:
            store: 嵌套集合存储
            cache: 层级查询缓存（显式注入，不使用全局状态）
            strict_flush: 缓存清除失败时是否向调用方抛出异常
            debug: 是否输出监听器绑定日志
            validator: 节点数据验证器
        """
        self.store = store
        self.cache = cache
        self.strict_flush = strict_flush
        self.debug = debug
        self.validator = validator or ConfigValidator()

        self.flush_failures = 0
        self._booted = False

    @property
    def node_class(self):
        """存储构造时绑定的节点类型"""
        return getattr(self.store, "node_class", TreeNode)

    # ===== 生命周期 =====

    def boot(self) -> 'TreeRepository':
        """注册存储事件监听器，只注册一次"""
        if self._booted:
            return self

        if self.debug:
            logger.info(f"绑定层级缓存监听器: {self.node_class.__name__}")

        self.store.on_moved(self._touch_parent)
        self.store.on_saved(self._flush_ancestors)
        self.store.on_deleted(self._flush_ancestors)
        self._booted = True
        return self

    def shutdown(self) -> None:
        """注销监听器"""
        if not self._booted:
            return

        self.store.off_moved(self._touch_parent)
        self.store.off_saved(self._flush_ancestors)
        self.store.off_deleted(self._flush_ancestors)
        self._booted = False

    @property
    def booted(self) -> bool:
        return self._booted

    def _touch_parent(self, node: INode) -> None:
        """moved: 只 touch 直接父节点，由父节点的 saved 事件继续向上清除"""
        # 被移动节点和它的子树的祖先都变了，这里只清缓存，不产生事件
        tags = [self.cache.format_tag(node.node_id)] + self.get_child_tags(node)
        tags.extend(self.cache.format_tag(kind) for kind in T.AGGREGATE_KINDS)
        self._flush(tags)

        if node.parent_id is None:
            return

        parent = self.store.find(node.parent_id)
        logger.debug(f"touch父节点以触发缓存清除: parent={node.parent_id}")
        if parent is not None:
            self.store.touch(parent)

    def _flush_ancestors(self, node: INode) -> None:
        """saved / deleted: 清除祖先、自身以及聚合查询的标签"""
        tags = self.get_parent_tags(node)
        tags.append(self.cache.format_tag(node.node_id))
        tags.extend(self.cache.format_tag(kind) for kind in T.AGGREGATE_KINDS)

        logger.debug(f"清除祖先缓存: node={node.node_id}, tags={tags}")
        self._flush(tags)

    def _flush(self, tags: List[str]) -> None:
        """写入已经提交，清除失败时只记录日志（strict_flush 时抛出）"""
        if not tags:
            return
        try:
            self.cache.invalidate(tags)
        except CacheFlushError:
            self.flush_failures += 1
            if self.strict_flush:
                raise
            logger.error(f"写入已提交但缓存未清除，在过期前可能读到旧的层级数据: {tags}")

    # ===== 标签 =====

    def get_parent_tags(self, node: NodeRef) -> List[str]:
        """写操作后需要清除的祖先标签（不含自身），直接查询存储"""
        node = self._as_node(node)
        return [
            self.cache.format_tag(ancestor.node_id)
            for ancestor in self.store.query_ancestors(node, include_self=False)
        ]

    def get_child_tags(self, node: NodeRef) -> List[str]:
        """写操作后需要清除的后代标签（不含自身），直接查询存储"""
        node = self._as_node(node)
        return [
            self.cache.format_tag(descendant.node_id)
            for descendant in self.store.query_descendants(node, include_self=False)
        ]

    # ===== 写操作 =====

    def find(self, node_id: Any) -> Optional[INode]:
        """根据ID获取节点，不存在返回None"""
        if node_id is None:
            return None
        return self.store.find(node_id)

    def create(self, data: Optional[Dict[str, Any]] = None, parent: Any = None) -> INode:
        """
        创建节点

        Args:
            data: 节点属性；其中的 parent_id 在未传 parent 时生效
            parent: 父节点引用（ParentRef、节点、节点ID，0/""表示根节点）

        Returns:
            持久化后的节点。父节点不存在时节点作为根节点创建，不报错
        """
        data = dict(data or {})
        ref = self._parent_ref(data, parent)
        target = self._lookup_parent(ref)

        node = self.store.insert(self.validator.clean_node_payload(data))

        if node is not None and node.exists and target is not None:
            node = self.store.move(node, target)

        return node

    def update(self, node: NodeRef, data: Optional[Dict[str, Any]] = None, parent: Any = None) -> INode:
        """
        更新节点属性，并按父节点引用移动位置

        Args:
            node: 节点或节点ID
            data: 要更新的属性；其中的 parent_id 在未传 parent 时生效
            parent: 父节点引用；None/缺失表示不改变位置

        Raises:
            NodeNotFoundError: 节点不存在
            StructuralConflictError: 移动会形成环，此时不写入任何数据
        """
        data = dict(data or {})
        ref = self._parent_ref(data, parent)
        current = self._resolve(node)
        target = self._lookup_parent(ref)

        # 先让存储检查结构冲突，避免属性已写入而移动被拒绝
        if target is not None:
            self.store.validate_move(current, target)

        saved = self.store.save(current, self.validator.clean_node_payload(data))

        if target is not None:
            saved = self.store.move(saved, target)
        elif ref.is_root and saved.parent_id is not None:
            saved = self.store.move(saved, None)

        return saved

    def delete(self, node: NodeRef, soft: bool = False) -> bool:
        """
        删除节点及其子树

        Returns:
            是否删除成功，节点不存在时返回False
        """
        current = self.find(node.node_id if isinstance(node, INode) else node)
        if current is None:
            return False

        # 子树在删除后就查不到了，先收集标签
        child_tags = self.get_child_tags(current)

        deleted = self.store.delete(current, soft=soft)
        if deleted:
            self._flush(child_tags)
        return deleted

    # ===== 缓存读取 =====

    def get_parent(self, node: NodeRef) -> Optional[INode]:
        """获取并缓存父节点"""
        return self.cache.get_or_compute(
            T.PARENT, node, False, T.TTL_DAY,
            lambda: self.store.query_parent(self._resolve(node))
        )

    def get_children(self, node: NodeRef) -> List[INode]:
        """获取并缓存直接子节点"""
        return self.cache.get_or_compute(
            T.CHILDREN, node, False, T.TTL_DAY,
            lambda: self.store.query_children(self._resolve(node))
        )

    def get_ancestors(self, node: NodeRef, include_self: bool = True) -> List[INode]:
        """获取并缓存祖先节点（从根开始）"""
        return self.cache.get_or_compute(
            T.ANCESTORS, node, include_self, T.TTL_DAY,
            lambda: self.store.query_ancestors(self._resolve(node), include_self)
        )

    def get_descendants(self, node: NodeRef, include_self: bool = True) -> List[INode]:
        """获取并缓存后代节点（前序）"""
        return self.cache.get_or_compute(
            T.DESCENDANTS, node, include_self, T.TTL_DAY,
            lambda: self.store.query_descendants(self._resolve(node), include_self)
        )

    def get_roots(self) -> List[INode]:
        """获取并缓存所有根节点"""
        return self.cache.get_or_compute(
            T.ROOTS, None, False, T.TTL_LONG,
            self.store.query_roots
        )

    def get_trunks(self, node: Optional[NodeRef] = None) -> List[INode]:
        """获取并缓存主干节点（有父节点也有子节点），传入节点时只查其子树"""
        return self.cache.get_or_compute(
            T.TRUNKS, node, False, T.TTL_LONG,
            lambda: self.store.query_trunks(self._resolve(node) if node is not None else None)
        )

    def get_leaves(self, node: Optional[NodeRef] = None) -> List[INode]:
        """获取并缓存叶子节点，传入节点时只查其子树"""
        return self.cache.get_or_compute(
            T.LEAVES, node, False, T.TTL_LONG,
            lambda: self.store.query_leaves(self._resolve(node) if node is not None else None)
        )

    # ===== 内部方法 =====

    def _parent_ref(self, data: Dict[str, Any], parent: Any) -> ParentRef:
        """优先使用显式参数，其次是数据中的 parent_id；之后从数据中移除该字段"""
        payload_ref = ParentRef.from_payload(data, self.parent_column)
        data.pop(self.parent_column, None)
        if parent is None:
            return payload_ref
        return ParentRef.from_value(parent)

    def _lookup_parent(self, ref: ParentRef) -> Optional[INode]:
        """父节点不存在时视为不移动，只记录警告"""
        if not ref.is_parent:
            return None
        target = self.store.find(ref.node_id)
        if target is None:
            logger.warning(f"父节点不存在，忽略移动: parent={ref.node_id}")
        return target

    def _resolve(self, node: NodeRef) -> INode:
        node_id = node.node_id if isinstance(node, INode) else node
        current = self.store.find(node_id)
        if current is None:
            raise NodeNotFoundError(node_id)
        return current

    def _as_node(self, node: NodeRef) -> INode:
        """标签计算允许使用已删除节点的快照"""
        if isinstance(node, INode):
            return node
        return self._resolve(node)
