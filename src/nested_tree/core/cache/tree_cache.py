"""
层级查询缓存
按 (查询类型, 节点) 缓存查询结果，并按节点标签失效
"""
import copy
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Set, Union

from . import tags as T
from ...interfaces import ICacheBackend, INode
from ...exceptions import CacheFlushError, CacheUnavailableError

logger = logging.getLogger(__name__)

NodeLike = Union[INode, Any]


def _identity(node: Optional[NodeLike]) -> Any:
    """节点或节点标识 -> 标识；None 表示整棵树"""
    if node is None:
        return ""
    if isinstance(node, INode):
        return node.node_id
    return node


class TreeCache:
    """
    带标签的层级查询缓存

    标签粒度是单个节点：节点相关的查询只打上该节点自身的标签，
    由仓库的失效级联沿祖先链逐个清除。聚合查询使用固定的聚合标签。

    缓存只是优化手段：后端读写失败时直接返回计算结果；
    但标签清除失败会抛出 CacheFlushError，不能静默忽略。
    写入和命中时都复制结果，调用方修改返回值不会影响缓存。
    同一个键并发未命中时计算函数可能被调用多次，这不视为错误。
    """

    def __init__(
        self,
        backend: ICacheBackend,
        ttl_day: int = 86400,
        ttl_long: int = 604800,
        prefix: str = "node"
    ):
        self.backend = backend
        self.prefix = prefix
        self._ttl = {T.TTL_DAY: ttl_day, T.TTL_LONG: ttl_long}

        self.hits = 0
        self.misses = 0
        self.degraded = 0
        self.last_error: Optional[CacheUnavailableError] = None

    # ========== 标签与键 ==========

    def format_tag(self, value: Any) -> str:
        return T.format_tag(self.prefix, value)

    def cache_id(self, kind: T.QueryKind, identity: Any = "") -> str:
        return T.cache_id(self.prefix, kind, identity)

    def tags_for(self, kind: T.QueryKind, node: Optional[NodeLike] = None) -> Set[str]:
        """查询类型对应的标签集合"""
        if kind in T.AGGREGATE_KINDS:
            return {self.format_tag(kind)}
        if node is None:
            raise ValueError(f"查询类型 {kind} 需要指定节点")
        return {self.format_tag(_identity(node))}

    def ttl_for(self, tier: T.TTLTier) -> int:
        if tier not in self._ttl:
            raise ValueError(f"未知的缓存层级: {tier}")
        return self._ttl[tier]

    # ========== 读取 ==========

    def get_or_compute(
        self,
        kind: T.QueryKind,
        node: Optional[NodeLike],
        include_self: bool,
        ttl_tier: T.TTLTier,
        compute: Callable[[], Any]
    ) -> Any:
        """
        命中则直接返回缓存值，未命中时调用 compute 并写入缓存

        Args:
            kind: 查询类型（parent, children, ancestors, ...）
            node: 查询所针对的节点或节点标识；整棵树的聚合查询传None
            include_self: 结果是否包含节点自身
            ttl_tier: 有效期层级 'day' 或 'long'
            compute: 回源查询函数，每次未命中最多调用一次
        """
        kind = T.resolve_kind(kind, include_self)
        key = self.cache_id(kind, _identity(node))
        ttl = self.ttl_for(ttl_tier)

        try:
            hit, value = self._call_backend("get", self.backend.get, key)
        except CacheUnavailableError as e:
            self._degrade(e, key)
            return compute()

        if hit:
            self.hits += 1
            return copy.deepcopy(value)

        self.misses += 1
        value = compute()

        try:
            self._call_backend(
                "put", self.backend.put, key, copy.deepcopy(value), ttl, self.tags_for(kind, node)
            )
        except CacheUnavailableError as e:
            self._degrade(e, key)

        return value

    def _call_backend(self, operation: str, method: Callable, *args) -> Any:
        """后端的任何异常统一转换为 CacheUnavailableError"""
        try:
            return method(*args)
        except CacheUnavailableError:
            raise
        except Exception as e:
            backend_name = getattr(self.backend, "backend_name", type(self.backend).__name__)
            raise CacheUnavailableError(backend_name, operation, str(e)) from e

    def _degrade(self, error: CacheUnavailableError, key: str) -> None:
        self.degraded += 1
        self.last_error = error
        logger.warning(f"{error}，直接查询存储: key={key}")

    # ========== 失效 ==========

    def invalidate(self, tags: Iterable[str]) -> int:
        """
        清除带有任一标签的所有缓存条目，重复清除同一标签没有副作用

        Returns:
            被清除的条目数

        Raises:
            CacheFlushError: 后端清除失败
        """
        tag_set = set(tags)
        if not tag_set:
            return 0

        try:
            removed = self._call_backend("flush_tags", self.backend.flush_tags, tag_set)
        except CacheUnavailableError as e:
            logger.error(f"缓存标签清除失败: {sorted(tag_set)}, 错误: {e}")
            raise CacheFlushError(tag_set, e.details["reason"]) from e

        logger.debug(f"清除缓存标签: {sorted(tag_set)}, 条目数: {removed}")
        return removed

    def clear(self) -> None:
        """清空全部缓存（测试隔离和系统关闭时使用）"""
        self.backend.clear()
        self.hits = 0
        self.misses = 0
        self.degraded = 0
        self.last_error = None

    def stats(self) -> Dict[str, Any]:
        stats = dict(self.backend.stats())
        stats.update({
            'hits': self.hits,
            'misses': self.misses,
            'degraded': self.degraded,
        })
        return stats
