"""
表格导入导出服务
"""

from .base_importer import DataImporter
from .tabular_importer import TabularTreeImporter
from .tabular_exporter import export_frame

__all__ = ['DataImporter', 'TabularTreeImporter', 'export_frame']
