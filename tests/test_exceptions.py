"""
测试异常体系
"""
from nested_tree.exceptions import (
    BaseError, ConfigError, ValidationError,
    TreeError, NodeError, NodeNotFoundError, StructuralConflictError,
    StorageError, DataStoreError,
    CacheError, CacheUnavailableError, CacheFlushError,
    TreeImportError, InitializationError
)
from nested_tree.data.storage.exceptions import StorageConnectionError, StorageOperationError


def test_exception_creation():
    """测试异常创建"""
    error = NodeNotFoundError(42)

    assert error.code == "NODE_NOT_FOUND"
    assert error.details["node_id"] == 42
    assert str(error).startswith("[NODE_NOT_FOUND]")
    assert "42" in str(error)
    print("✓ 异常创建测试通过")


def test_exception_inheritance():
    """测试异常继承关系"""
    assert issubclass(NodeNotFoundError, NodeError)
    assert issubclass(StructuralConflictError, NodeError)
    assert issubclass(NodeError, TreeError)
    assert issubclass(TreeError, BaseError)

    assert issubclass(CacheFlushError, CacheError)
    assert issubclass(CacheUnavailableError, CacheError)

    assert issubclass(StorageConnectionError, DataStoreError)
    assert issubclass(StorageOperationError, DataStoreError)
    assert issubclass(DataStoreError, StorageError)

    for cls in (ConfigError, ValidationError, TreeImportError, InitializationError):
        assert issubclass(cls, BaseError)
    print("✓ 异常继承测试通过")


def test_structural_conflict_details():
    error = StructuralConflictError(1, 3, "目标是该节点的后代")

    assert error.code == "STRUCTURAL_CONFLICT"
    assert error.details == {"node_id": 1, "target_id": 3, "reason": "目标是该节点的后代"}


def test_cache_flush_error_sorts_tags():
    error = CacheFlushError({"node-3", "node-1"}, "backend down")

    assert error.code == "CACHE_FLUSH_ERROR"
    assert error.details["tags"] == ["node-1", "node-3"]
    assert "backend down" in error.message


def test_data_store_error_merges_details():
    error = StorageOperationError("磁盘已满", "insert", "sqlite")

    assert error.code == "DATA_STORE_ERROR"
    assert error.details["operation"] == "insert"
    assert error.details["store_type"] == "sqlite"
    assert "insert" in error.message


def test_to_dict():
    """测试异常序列化"""
    error = ValidationError("无效的属性名", field="bad name", value=1, reason="invalid_attribute_name")
    data = error.to_dict()

    assert data["code"] == "VALIDATION_ERROR"
    assert data["details"]["field"] == "bad name"
    assert "timestamp" in data
    print("✓ 异常序列化测试通过")
