"""
配置模块
"""

from .settings import SystemSettings
from .validator import ConfigValidator, GUARDED_FIELDS

__all__ = ['SystemSettings', 'ConfigValidator', 'GUARDED_FIELDS']
