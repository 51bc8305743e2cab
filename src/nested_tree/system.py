"""
嵌套集合树系统主入口
装配存储、缓存和节点仓库，提供统一的生命周期管理
"""

import logging
from typing import Dict, Optional, Any
from datetime import datetime

from .exceptions import InitializationError, StorageError
from .config.settings import SystemSettings
from .config.validator import ConfigValidator

from .core.cache import TreeCache
from .core.node import TreeRepository
from .data.storage import NestedSetStore, create_store
from .data.cache import create_cache_backend
from .interfaces import ICacheBackend


class NestedTreeSystem:
    """
    嵌套集合树系统主类

    缓存句柄和仓库在 initialize() 中一次性装配并显式注入，
    不依赖任何全局状态，同一进程中可以并存多个系统实例。
    """

    def __init__(
            self,
            config: Optional[Dict[str, Any]] = None,
            storage: Optional[NestedSetStore] = None,
            cache_backend: Optional[ICacheBackend] = None
    ):
        """
        初始化系统

        Args:
            config: 系统配置字典
            storage: 存储（默认按配置创建）
            cache_backend: 缓存后端（默认按配置创建）
        """
        # 加载配置
        self.validator = ConfigValidator()
        if config:
            self.validator.validate_system_config(config)
        self.settings = SystemSettings.from_dict(config) if config else SystemSettings()

        # 初始化日志
        self._setup_logging()
        self.logger = logging.getLogger(__name__)

        self._storage = storage
        self._cache_backend = cache_backend
        # 注入的组件由调用方负责关闭
        self._owns_storage = storage is None
        self._owns_cache_backend = cache_backend is None

        # 核心组件（延迟初始化）
        self._cache: Optional[TreeCache] = None
        self._repository: Optional[TreeRepository] = None

        # 系统状态
        self._initialized = False
        self._start_time = datetime.now()

    def _setup_logging(self):
        """配置日志系统"""
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level),
            format=self.settings.log_format,
            handlers=[logging.StreamHandler()]
        )

    def initialize(self) -> 'NestedTreeSystem':
        """初始化系统组件"""
        if self._initialized:
            return self

        try:
            if self._storage is None:
                kwargs = {}
                if self.settings.storage_backend == "sqlite":
                    kwargs["db_path"] = self.settings.storage_path
                self._storage = create_store(self.settings.storage_backend, **kwargs)
            self.logger.info(f"使用存储引擎: {self._storage}")

            if self._cache_backend is None:
                kwargs = {}
                if self.settings.cache_backend == "memory":
                    kwargs["max_entries"] = self.settings.cache_max_entries
                self._cache_backend = create_cache_backend(self.settings.cache_backend, **kwargs)
            self.logger.debug(f"缓存后端: {self._cache_backend.__class__.__name__}")

            self._cache = TreeCache(
                self._cache_backend,
                ttl_day=self.settings.cache_ttl_day,
                ttl_long=self.settings.cache_ttl_long,
                prefix=self.settings.cache_prefix
            )

            self._repository = TreeRepository(
                self._storage,
                self._cache,
                strict_flush=self.settings.strict_flush,
                debug=self.settings.debug,
                validator=self.validator
            ).boot()

        except (ValueError, StorageError) as e:
            self.logger.error(f"系统初始化失败: {e}")
            raise InitializationError("system", str(e)) from e

        self._initialized = True
        self.logger.info(f"{self.settings.system_name} 初始化完成")
        return self

    def teardown(self) -> None:
        """
        注销监听器、清空缓存并关闭存储

        系统自己创建的存储和缓存后端在关闭后丢弃，再次 initialize() 时重新创建；
        注入的组件保留，不会被关闭
        """
        if not self._initialized:
            return

        self._repository.shutdown()
        self._cache.clear()
        if self._owns_storage:
            self._storage.close()
            self._storage = None
        if self._owns_cache_backend:
            self._cache_backend = None

        self._repository = None
        self._cache = None
        self._initialized = False
        self.logger.info(f"{self.settings.system_name} 已关闭")

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def repository(self) -> TreeRepository:
        """已绑定监听器的节点仓库，首次访问时自动初始化"""
        if not self._initialized:
            self.initialize()
        return self._repository

    @property
    def cache(self) -> TreeCache:
        if not self._initialized:
            self.initialize()
        return self._cache

    @property
    def storage(self) -> Optional[NestedSetStore]:
        return self._storage

    def get_stats(self) -> Dict[str, Any]:
        """获取系统运行统计"""
        stats = {
            "system_name": self.settings.system_name,
            "version": self.settings.version,
            "start_time": self._start_time.isoformat(),
            "uptime": str(datetime.now() - self._start_time),
            "initialized": self._initialized,
            "storage": str(self._storage) if self._storage is not None else None,
        }

        if self._initialized:
            stats.update({
                "node_count": self._storage.count(),
                "cache": self._cache.stats(),
                "flush_failures": self._repository.flush_failures,
            })

        return stats

    def __enter__(self) -> 'NestedTreeSystem':
        return self.initialize()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()
