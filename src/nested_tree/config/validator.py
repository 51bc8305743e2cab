"""
配置与节点数据验证器
"""
import re
from typing import Dict, Any

from ..exceptions import ValidationError
from .settings import VALID_STORAGE_BACKENDS, VALID_CACHE_BACKENDS


# 由存储层维护的列，不允许通过批量赋值写入
GUARDED_FIELDS = frozenset([
    'node_id', 'parent_id', 'lft', 'rgt', 'depth', 'position',
    'created_at', 'updated_at', 'deleted_at',
])


class ConfigValidator:
    """配置验证器"""

    def __init__(self):
        self._attribute_pattern = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')

    def validate_system_config(self, config: Dict[str, Any]) -> bool:
        """验证系统配置字典"""
        if not isinstance(config, dict):
            raise ValidationError(
                message="系统配置必须是字典",
                field="config",
                value=config,
                reason="invalid_type"
            )

        backend = config.get('storage_backend', 'memory')
        if backend not in VALID_STORAGE_BACKENDS:
            raise ValidationError(
                message=f"无效的存储后端: {backend}",
                field="storage_backend",
                value=backend,
                reason=f"必须是 {VALID_STORAGE_BACKENDS} 之一"
            )

        cache = config.get('cache_backend', 'memory')
        if cache not in VALID_CACHE_BACKENDS:
            raise ValidationError(
                message=f"无效的缓存后端: {cache}",
                field="cache_backend",
                value=cache,
                reason=f"必须是 {VALID_CACHE_BACKENDS} 之一"
            )

        if backend == 'sqlite' and 'storage_path' in config:
            path = config['storage_path']
            if path is not None and not isinstance(path, str):
                raise ValidationError(
                    message="存储路径必须是字符串",
                    field="storage_path",
                    value=path,
                    reason="invalid_type"
                )

        return True

    def clean_node_payload(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理节点写入数据

        去掉受保护的结构列，并校验属性名格式

        Args:
            data: 调用方提交的原始数据

        Returns:
            只包含业务属性的新字典
        """
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError(
                message="节点数据必须是字典",
                field="data",
                value=data,
                reason="invalid_type"
            )

        cleaned = {}
        for key, value in data.items():
            if key in GUARDED_FIELDS:
                continue
            if not isinstance(key, str) or not self._attribute_pattern.match(key):
                raise ValidationError(
                    message=f"无效的属性名: {key}",
                    field=str(key),
                    value=value,
                    reason="invalid_attribute_name"
                )
            cleaned[key] = value

        return cleaned
