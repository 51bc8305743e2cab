"""
系统集成测试
"""
import pytest

from nested_tree import NestedTreeSystem, TreeRepository
from nested_tree.data.cache import NullCacheBackend
from nested_tree.data.storage import MemoryStore, SQLiteStore
from nested_tree.exceptions import ConfigError, ValidationError


def test_import():
    """测试导入"""
    from nested_tree import __version__

    assert __version__ == "1.0.0"
    print("✓ 导入测试通过")


def test_default_system():
    system = NestedTreeSystem().initialize()

    assert isinstance(system.storage, MemoryStore)
    assert isinstance(system.repository, TreeRepository)
    assert system.repository.booted

    root = system.repository.create({"name": "根节点"})
    child = system.repository.create({"name": "子节点"}, parent=root)
    assert [n.node_id for n in system.repository.get_children(root)] == [child.node_id]

    stats = system.get_stats()
    assert stats["initialized"] is True
    assert stats["node_count"] == 2
    assert stats["cache"]["misses"] >= 1
    assert stats["flush_failures"] == 0

    store = system.storage
    system.teardown()
    assert not system.initialized
    assert store.listener_count("saved") == 0
    assert system.storage is None


def test_sqlite_system(tmp_path):
    db_path = str(tmp_path / "tree.db")
    config = {"storage_backend": "sqlite", "storage_path": db_path, "cache_prefix": "tree"}

    with NestedTreeSystem(config) as system:
        assert isinstance(system.storage, SQLiteStore)
        root = system.repository.create({"name": "根节点"})
        assert system.cache.format_tag(root.node_id) == f"tree-{root.node_id}"

    reopened = SQLiteStore(db_path)
    assert reopened.count() == 1


def test_injected_components():
    store = MemoryStore()
    system = NestedTreeSystem(storage=store, cache_backend=NullCacheBackend())

    repo = system.repository

    assert system.initialized
    assert repo.store is store
    root = repo.create({"name": "根节点"})
    assert repo.get_roots()[0].node_id == root.node_id
    assert system.get_stats()["cache"]["backend"] == "null"

    system.teardown()
    assert system.storage is store
    assert store.count() == 1


def test_initialize_is_idempotent():
    system = NestedTreeSystem()
    system.initialize()
    system.initialize()

    assert system.storage.listener_count("moved") == 1
    system.teardown()


def test_settings_applied():
    system = NestedTreeSystem({"cache_ttl_day": 60, "strict_flush": True, "log_level": "warning"})

    assert system.settings.log_level == "WARNING"
    assert system.cache.ttl_for("day") == 60
    assert system.repository.strict_flush is True
    system.teardown()


def test_invalid_config():
    with pytest.raises(ValidationError):
        NestedTreeSystem({"storage_backend": "redis"})
    with pytest.raises(ConfigError):
        NestedTreeSystem({"cache_ttl_long": 0})


def test_stats_before_initialize():
    stats = NestedTreeSystem().get_stats()

    assert stats["initialized"] is False
    assert "cache" not in stats


def test_reinitialize_after_teardown_in_memory_sqlite():
    system = NestedTreeSystem({"storage_backend": "sqlite", "storage_path": ":memory:"})
    system.repository.create({"name": "根节点"})
    system.teardown()

    system.initialize()
    root = system.repository.create({"name": "根节点"})
    child = system.repository.create({"name": "子节点"}, parent=root)

    assert system.storage.count() == 2
    assert [n.node_id for n in system.repository.get_children(root)] == [child.node_id]
    system.teardown()
    print("✅ 关闭后重新初始化使用新的存储")
