"""
缓存标签与缓存键格式化
"""
import hashlib
from typing import Any, Literal

# ========== 查询类型 ==========
PARENT = "parent"
CHILDREN = "children"
ANCESTORS = "ancestors"
ANCESTORS_AND_SELF = "ancestorsAndSelf"
DESCENDANTS = "descendants"
DESCENDANTS_AND_SELF = "descendantsAndSelf"
ROOTS = "roots"
TRUNKS = "trunks"
LEAVES = "leaves"

QueryKind = Literal[
    "parent", "children", "ancestors", "ancestorsAndSelf",
    "descendants", "descendantsAndSelf", "roots", "trunks", "leaves",
]
AGGREGATE_KINDS = (ROOTS, TRUNKS, LEAVES)

# ========== 有效期层级 ==========
TTL_DAY = "day"  # 节点相关的关系查询
TTL_LONG = "long"  # 整棵树的聚合查询

TTLTier = Literal["day", "long"]


def resolve_kind(kind: QueryKind, include_self: bool = False) -> QueryKind:
    """是否包含自身属于查询类型的一部分，而不是单独的维度"""
    if kind == ANCESTORS and include_self:
        return ANCESTORS_AND_SELF
    if kind == DESCENDANTS and include_self:
        return DESCENDANTS_AND_SELF
    return kind


def default_tier(kind: QueryKind) -> TTLTier:
    return TTL_LONG if kind in AGGREGATE_KINDS else TTL_DAY


def format_tag(prefix: str, value: Any) -> str:
    """节点标识或聚合名 -> 标签，如 node-12、node-roots"""
    return f"{prefix}-{value}"


def cache_id(prefix: str, kind: QueryKind, identity: Any = "") -> str:
    """查询类型 + 节点标识的稳定哈希"""
    digest = hashlib.md5(str(identity).encode("utf-8")).hexdigest()
    return f"{prefix}:{kind}:{digest}"
