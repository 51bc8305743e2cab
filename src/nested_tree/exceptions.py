"""
嵌套集合缓存层异常体系
"""
from datetime import datetime
from typing import Dict, Any, Optional, Iterable


class BaseError(Exception):
    """所有异常的基类"""
    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        self.context = context or {}
        self.timestamp = datetime.now()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典，便于序列化"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ==================== 配置和验证异常 ====================
class ConfigError(BaseError):
    """配置错误"""
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, code="CONFIG_ERROR", details=details, **kwargs)


class ValidationError(BaseError):
    """数据验证错误"""
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        reason: Optional[str] = None,
        **kwargs
    ):
        details = {
            "field": field,
            "value": value,
            "reason": reason
        }
        super().__init__(message, code="VALIDATION_ERROR", details=details, **kwargs)


# ==================== 树结构相关异常 ====================
class TreeError(BaseError):
    """树结构错误基类"""
    pass


class NodeError(TreeError):
    """节点操作错误"""
    pass


class NodeNotFoundError(NodeError):
    """节点不存在"""
    def __init__(self, node_id: Any = None, **kwargs):
        details = {"node_id": node_id} if node_id is not None else {}
        message = "节点不存在"
        if node_id is not None:
            message += f": id={node_id}"
        super().__init__(message, code="NODE_NOT_FOUND", details=details, **kwargs)


class StructuralConflictError(NodeError):
    """移动会破坏嵌套集合结构（节点移到自身或其后代之下）"""
    def __init__(self, node_id: Any, target_id: Any, reason: str = "", **kwargs):
        details = {"node_id": node_id, "target_id": target_id, "reason": reason}
        message = f"结构冲突: 无法将节点 {node_id} 移动到 {target_id} 之下"
        if reason:
            message += f" ({reason})"
        super().__init__(message, code="STRUCTURAL_CONFLICT", details=details, **kwargs)


# ==================== 存储相关异常 ====================
class StorageError(BaseError):
    """存储错误"""
    pass


class DataStoreError(StorageError):
    """数据存储异常"""
    def __init__(self, message: str, operation: str = None, store_type: str = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"operation": operation, "store_type": store_type})
        super().__init__(
            message=f"存储错误[{operation or 'unknown'}]: {message}",
            code="DATA_STORE_ERROR",
            details=details,
            **kwargs
        )


# ==================== 缓存相关异常 ====================
class CacheError(BaseError):
    """缓存错误基类"""
    pass


class CacheUnavailableError(CacheError):
    """缓存后端不可用（读写失败）"""
    def __init__(self, backend: str, operation: str, reason: str = "", **kwargs):
        super().__init__(
            message=f"缓存后端不可用[{backend}.{operation}]: {reason or '未知原因'}",
            code="CACHE_UNAVAILABLE",
            details={"backend": backend, "operation": operation, "reason": reason},
            **kwargs
        )


class CacheFlushError(CacheError):
    """缓存标签清除失败，可能导致读取到过期的层级数据"""
    def __init__(self, tags: Iterable[str], reason: str = "", **kwargs):
        tag_list = sorted(tags)
        super().__init__(
            message=f"缓存标签清除失败: {tag_list} - {reason or '未知原因'}",
            code="CACHE_FLUSH_ERROR",
            details={"tags": tag_list, "reason": reason},
            **kwargs
        )


# ==================== 导入相关异常 ====================
class TreeImportError(BaseError):
    """表格导入异常"""
    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        super().__init__(
            message=f"导入失败: {message}",
            code="IMPORT_ERROR",
            details={"source": source},
            **kwargs
        )


# ==================== 系统运行时异常 ====================
class SystemError(BaseError):
    """系统运行时错误"""
    pass


class InitializationError(SystemError):
    """系统初始化错误"""
    def __init__(self, component: str, reason: str, **kwargs):
        super().__init__(
            message=f"系统组件初始化失败: {component} - {reason}",
            code="INITIALIZATION_ERROR",
            details={"component": component, "reason": reason},
            **kwargs
        )
