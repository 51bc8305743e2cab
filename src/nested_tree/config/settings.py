"""
系统配置设置
"""
import os
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict

from ..exceptions import ConfigError


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_STORAGE_BACKENDS = ["memory", "sqlite"]
VALID_CACHE_BACKENDS = ["memory", "null"]


@dataclass
class SystemSettings:
    """
    系统配置类
    使用dataclass确保配置的类型安全
    """

    # 系统基本配置
    system_name: str = "nested_tree"
    version: str = "1.0.0"

    # 日志配置
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    debug: bool = False

    # 存储配置
    storage_backend: str = "memory"  # memory, sqlite
    storage_path: Optional[str] = None

    # 缓存配置
    cache_backend: str = "memory"  # memory, null
    cache_prefix: str = "node"
    cache_ttl_day: int = 86400  # 关系查询: 父/子/祖先/后代
    cache_ttl_long: int = 604800  # 聚合查询: 根/主干/叶子
    cache_max_entries: int = 10000
    strict_flush: bool = False

    def __post_init__(self):
        """初始化后处理，验证配置"""
        self._validate_settings()
        self._set_defaults()

    def _validate_settings(self):
        """验证配置值"""
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigError(
                message=f"无效的日志级别: {self.log_level}",
                config_key="log_level"
            )
        self.log_level = self.log_level.upper()

        if self.storage_backend not in VALID_STORAGE_BACKENDS:
            raise ConfigError(
                message=f"不支持的存储类型: {self.storage_backend}",
                config_key="storage_backend"
            )

        if self.cache_backend not in VALID_CACHE_BACKENDS:
            raise ConfigError(
                message=f"不支持的缓存类型: {self.cache_backend}",
                config_key="cache_backend"
            )

        for key in ("cache_ttl_day", "cache_ttl_long"):
            value = getattr(self, key)
            if not isinstance(value, int) or value <= 0:
                raise ConfigError(
                    message=f"缓存有效期必须是正整数(秒): {value}",
                    config_key=key
                )

        if self.cache_max_entries < 0:
            raise ConfigError(
                message=f"缓存条目上限不能为负数: {self.cache_max_entries}",
                config_key="cache_max_entries"
            )

        if not self.cache_prefix or any(c in self.cache_prefix for c in ": "):
            raise ConfigError(
                message=f"缓存前缀不能为空且不能包含冒号或空格: {self.cache_prefix!r}",
                config_key="cache_prefix"
            )

    def _set_defaults(self):
        """设置默认值"""
        # 设置默认存储路径
        if self.storage_backend == "sqlite" and not self.storage_path:
            self.storage_path = os.path.join(
                os.getcwd(),
                "data",
                f"{self.system_name.lower().replace(' ', '_')}.db"
            )

    def ttl_for(self, tier: str) -> int:
        """按缓存层级返回有效期(秒)"""
        if tier == "day":
            return self.cache_ttl_day
        if tier == "long":
            return self.cache_ttl_long
        raise ConfigError(f"未知的缓存层级: {tier}", config_key="ttl_tier")

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'SystemSettings':
        """从字典创建配置"""
        # 过滤无效的配置键
        valid_keys = {field.name for field in cls.__dataclass_fields__.values()}
        filtered_config = {k: v for k, v in config_dict.items() if k in valid_keys}

        return cls(**filtered_config)
