"""
测试节点仓库：缓存读取与失效级联
"""
import logging

import pytest

from nested_tree.core.cache import TreeCache
from nested_tree.core.node import TreeRepository, ParentRef
from nested_tree.data.cache import MemoryCacheBackend
from nested_tree.data.storage import MemoryStore
from nested_tree.exceptions import (
    CacheFlushError, NodeNotFoundError, StructuralConflictError, ValidationError
)


def ids(nodes):
    return [node.node_id for node in nodes]


def chain(repo):
    """1 -> 2 -> 3"""
    n1 = repo.create({"name": "根节点"})
    n2 = repo.create({"name": "子节点"}, parent=n1)
    n3 = repo.create({"name": "孙节点"}, parent=n2)
    return n1, n2, n3


class FlakyBackend(MemoryCacheBackend):
    """可以切换为清除失败的内存后端"""

    def __init__(self):
        super().__init__(max_entries=0)
        self.fail_flush = False

    def flush_tags(self, tags):
        if self.fail_flush:
            raise ConnectionError("cache down")
        return super().flush_tags(tags)


# ==================== ParentRef ====================

def test_parent_ref_states():
    assert ParentRef.from_value(None).is_unchanged
    assert ParentRef.from_value(0).is_root
    assert ParentRef.from_value("").is_root
    assert ParentRef.from_value(5) == ParentRef.to(5)
    assert ParentRef.from_value(ParentRef.root()).is_root

    with pytest.raises(ValidationError):
        ParentRef.from_value(False)


def test_parent_ref_from_payload():
    assert ParentRef.from_payload({}).is_unchanged
    assert ParentRef.from_payload({"parent_id": None}).is_unchanged
    assert ParentRef.from_payload({"parent_id": 0}).is_root
    assert ParentRef.from_payload({"parent_id": 3}).node_id == 3


# ==================== 生命周期 ====================

def test_boot_registers_listeners_once(store, cache):
    repo = TreeRepository(store, cache)
    repo.boot()
    repo.boot()

    assert store.listener_count("moved") == 1
    assert store.listener_count("saved") == 1
    assert store.listener_count("deleted") == 1

    repo.shutdown()
    assert store.listener_count("saved") == 0
    assert not repo.booted


# ==================== 写操作 ====================

def test_create_under_parent(repo):
    n1, n2, n3 = chain(repo)

    assert n2.parent_id == n1.node_id
    assert n3.depth == 2
    assert ids(repo.get_ancestors(n3, include_self=False)) == [n1.node_id, n2.node_id]
    print("✅ 创建节点成功")


def test_create_with_parent_in_payload(repo):
    root = repo.create({"name": "根节点"})
    child = repo.create({"name": "子节点", "parent_id": root.node_id})

    assert child.parent_id == root.node_id
    assert "parent_id" not in child.attributes


def test_create_with_missing_parent_is_root(repo, caplog):
    with caplog.at_level(logging.WARNING):
        node = repo.create({"name": "孤立节点"}, parent=404)

    assert node.parent_id is None
    assert ids(repo.get_roots()) == [node.node_id]
    assert "404" in caplog.text


def test_guarded_fields_are_ignored(repo):
    node = repo.create({"name": "根节点", "lft": 99, "depth": 5, "node_id": 77})

    assert node.lft == 1
    assert node.depth == 0
    assert node.node_id != 77
    assert node.attributes == {"name": "根节点"}


def test_create_then_children_reflects_new_node(repo):
    root = repo.create({"name": "根节点"})
    assert repo.get_children(root) == []

    child = repo.create({"name": "子节点"}, parent=root)

    assert ids(repo.get_children(root)) == [child.node_id]


def test_move_invalidates_old_and_new_parent(repo):
    """1 -> 2 -> 3，把 3 移到 1 之下"""
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_children(n1)) == [n2.node_id]
    assert ids(repo.get_children(n2)) == [n3.node_id]
    assert ids(repo.get_descendants(n1, include_self=False)) == [n2.node_id, n3.node_id]

    repo.update(n3, parent=n1)

    assert ids(repo.get_children(n1)) == [n2.node_id, n3.node_id]
    assert repo.get_children(n2) == []
    assert ids(repo.get_descendants(n1)) == [n1.node_id, n2.node_id, n3.node_id]
    assert repo.get_parent(n3).node_id == n1.node_id
    assert ids(repo.get_ancestors(n3, include_self=False)) == [n1.node_id]
    print("✅ 移动后新旧父节点缓存均已失效")


def test_move_invalidates_moved_subtree(repo):
    n1, n2, n3 = chain(repo)
    other = repo.create({"name": "另一根节点"})
    assert ids(repo.get_ancestors(n3)) == [n1.node_id, n2.node_id, n3.node_id]

    repo.update(n2, parent=other)

    assert ids(repo.get_ancestors(n3)) == [other.node_id, n2.node_id, n3.node_id]
    assert ids(repo.get_descendants(n1, include_self=False)) == []


def test_update_to_root(repo):
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_roots()) == [n1.node_id]
    assert ids(repo.get_ancestors(n3)) == [n1.node_id, n2.node_id, n3.node_id]

    repo.update(n2, parent=0)

    assert ids(repo.get_roots()) == [n1.node_id, n2.node_id]
    assert ids(repo.get_ancestors(n3)) == [n2.node_id, n3.node_id]
    assert repo.get_ancestors(n2, include_self=False) == []
    assert repo.get_children(n1) == []


def test_update_without_parent_keeps_position(repo):
    n1, n2, n3 = chain(repo)

    updated = repo.update(n3, {"name": "新孙节点"})

    assert updated.parent_id == n2.node_id
    assert updated.get("name") == "新孙节点"


def test_update_attributes_refreshes_cached_children(repo):
    n1, n2, n3 = chain(repo)
    assert repo.get_children(n2)[0].get("name") == "孙节点"

    repo.update(n3, {"name": "新孙节点"})

    assert repo.get_children(n2)[0].get("name") == "新孙节点"


def test_update_by_id(repo):
    n1, n2, n3 = chain(repo)

    updated = repo.update(n3.node_id, {"weight": 10})

    assert updated.get("weight") == 10


def test_update_missing_node(repo):
    with pytest.raises(NodeNotFoundError):
        repo.update(404, {"name": "x"})


def test_update_with_missing_parent_is_silent(repo):
    n1, n2, n3 = chain(repo)

    updated = repo.update(n3, {"name": "x"}, parent=404)

    assert updated.parent_id == n2.node_id
    assert updated.get("name") == "x"


def test_cycle_forming_update_writes_nothing(repo):
    n1, n2, n3 = chain(repo)

    with pytest.raises(StructuralConflictError):
        repo.update(n1, {"name": "改名"}, parent=n3)

    current = repo.find(n1.node_id)
    assert current.get("name") == "根节点"
    assert current.parent_id is None
    assert ids(repo.get_descendants(n1)) == [n1.node_id, n2.node_id, n3.node_id]


def test_delete_leaf_refreshes_children(repo):
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_children(n2)) == [n3.node_id]
    assert ids(repo.get_leaves()) == [n3.node_id]

    assert repo.delete(n3) is True

    assert repo.get_children(n2) == []
    assert ids(repo.get_leaves()) == [n2.node_id]
    assert repo.delete(n3) is False


def test_delete_subtree_flushes_descendant_entries(repo):
    n1, n2, n3 = chain(repo)
    assert repo.get_parent(n3).node_id == n2.node_id

    repo.delete(n2)

    with pytest.raises(NodeNotFoundError):
        repo.get_parent(n3)
    assert repo.get_descendants(n1, include_self=False) == []


def test_soft_delete(repo):
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_descendants(n1)) == [n1.node_id, n2.node_id, n3.node_id]

    assert repo.delete(n2, soft=True) is True

    assert ids(repo.get_descendants(n1)) == [n1.node_id]
    assert repo.find(n3.node_id) is None


def test_trunks_and_leaves_follow_structure(repo):
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_trunks()) == [n2.node_id]
    assert ids(repo.get_leaves(n1)) == [n3.node_id]

    n4 = repo.create({"name": "新叶子"}, parent=n3)

    assert ids(repo.get_trunks()) == [n2.node_id, n3.node_id]
    assert ids(repo.get_leaves(n1)) == [n4.node_id]


def test_reads_are_served_from_cache(repo):
    n1, n2, n3 = chain(repo)
    repo.get_children(n1)
    hits = repo.cache.hits

    repo.get_children(n1)
    repo.get_children(n1.node_id)

    assert repo.cache.hits == hits + 2


def test_get_parent_tags(repo):
    n1, n2, n3 = chain(repo)

    assert repo.get_parent_tags(n3) == [f"node-{n1.node_id}", f"node-{n2.node_id}"]
    assert repo.get_child_tags(n1) == [f"node-{n2.node_id}", f"node-{n3.node_id}"]
    assert repo.get_parent_tags(n1) == []


# ==================== 清除失败 ====================

def test_flush_failure_is_logged(caplog):
    backend = FlakyBackend()
    repo = TreeRepository(MemoryStore(), TreeCache(backend)).boot()
    root = repo.create({"name": "根节点"})

    backend.fail_flush = True
    with caplog.at_level(logging.ERROR):
        child = repo.create({"name": "子节点"}, parent=root)

    assert child.parent_id == root.node_id
    assert repo.flush_failures > 0
    assert "缓存标签清除失败" in caplog.text


def test_strict_flush_reraises():
    backend = FlakyBackend()
    store = MemoryStore()
    repo = TreeRepository(store, TreeCache(backend), strict_flush=True).boot()
    root = repo.create({"name": "根节点"})

    backend.fail_flush = True
    with pytest.raises(CacheFlushError):
        repo.update(root, {"name": "改名"})

    # 写入已经提交
    assert store.find(root.node_id).get("name") == "改名"


# ==================== 返回值隔离 ====================

def test_mutating_result_does_not_corrupt_cache(repo):
    n1, n2, n3 = chain(repo)

    first = repo.get_children(n1)
    first.clear()
    assert ids(repo.get_children(n1)) == [n2.node_id]

    repo.get_parent(n3).attributes["name"] = "x"
    assert repo.get_parent(n3).get("name") == "子节点"


# ==================== 级联路径 ====================

def test_move_fires_moved_once(repo):
    n1, n2, n3 = chain(repo)
    moved, saved = [], []
    repo.store.on_moved(lambda node: moved.append(node.node_id))
    repo.store.on_saved(lambda node: saved.append(node.node_id))

    n4 = repo.create({"name": "新叶子"}, parent=n3)

    # 父节点的 touch 只触发 saved，不会再次进入 moved
    assert moved == [n4.node_id]
    assert saved == [n4.node_id, n3.node_id]


def test_create_under_grandchild_flushes_root(repo):
    """1 -> 2 -> 3，在 3 下创建节点，1 的缓存只能经由 3 的 touch 失效"""
    n1, n2, n3 = chain(repo)
    assert ids(repo.get_descendants(n1)) == [n1.node_id, n2.node_id, n3.node_id]

    n4 = repo.create({"name": "新叶子"}, parent=n3)

    assert ids(repo.get_descendants(n1)) == [n1.node_id, n2.node_id, n3.node_id, n4.node_id]
    assert ids(repo.get_descendants(n2, include_self=False)) == [n3.node_id, n4.node_id]


def test_store_move_flushes_through_touch(repo):
    """直接调用存储层 move，同样经由父节点 touch 清除整条祖先链"""
    n1, n2, n3 = chain(repo)
    other = repo.create({"name": "另一根节点"})
    assert ids(repo.get_descendants(n1, include_self=False)) == [n2.node_id, n3.node_id]
    assert ids(repo.get_roots()) == [n1.node_id, other.node_id]
    moved = []
    repo.store.on_moved(lambda node: moved.append(node.node_id))

    repo.store.move(other, n3)

    assert moved == [other.node_id]
    assert ids(repo.get_descendants(n1, include_self=False)) == [n2.node_id, n3.node_id, other.node_id]
    assert ids(repo.get_roots()) == [n1.node_id]
    print("✅ 存储层移动经由 touch 级联失效")
