"""
表格层级导入器
从 Excel / CSV（或 DataFrame）读取缩进表示的层级，逐个节点写入树
"""
import os
import logging
from typing import Dict, List, Any, Tuple
from datetime import datetime
from pathlib import Path

import pandas as pd

from .base_importer import DataImporter
from ...core.node.repository import TreeRepository, ParentRef
from ...exceptions import TreeImportError
from ...interfaces import INode

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = ('.xlsx', '.xls', '.csv')


class TabularTreeImporter(DataImporter):
    """
    表格层级导入器

    层级来源（按优先级）：
    1. level 列（0为根节点）
    2. 名称列的前导空格，每 indent_width 个空格为一级

    节点通过 TreeRepository.create 写入，每个节点都会触发缓存失效级联。
    """

    def __init__(self, repository: TreeRepository, config: Dict = None):
        super().__init__(config)
        self.repository = repository
        self.name_column = self.config.get('name_column', 'name')
        self.level_column = self.config.get('level_column', 'level')
        self.indent_width = self.config.get('indent_width', 2)
        self.max_level = self.config.get('max_level', 20)
        self.sheet_name = self.config.get('sheet_name', 0)

        # 统计信息
        self.stats = {
            'files_processed': 0,
            'rows_skipped': 0,
            'nodes_parsed': 0,
            'nodes_created': 0,
        }

    def _validate_config(self):
        indent = self.config.get('indent_width', 2)
        if not isinstance(indent, int) or indent <= 0:
            raise TreeImportError(f"缩进宽度必须是正整数: {indent}")

    # ============ 抽象方法实现 ============

    def validate_file(self, file_path: str) -> bool:
        path = Path(file_path)
        return path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES

    def extract_metadata(self, file_path: str) -> Dict[str, Any]:
        """提取文件元数据"""
        metadata = {
            'file_path': file_path,
            'file_name': Path(file_path).name,
            'import_time': datetime.now().isoformat(),
            'config': self.config
        }

        if os.path.exists(file_path):
            file_stat = os.stat(file_path)
            metadata.update({
                'file_size': file_stat.st_size,
                'modified_time': datetime.fromtimestamp(file_stat.st_mtime).isoformat()
            })

        return metadata

    def parse_data(self, file_path: str) -> List[Dict[str, Any]]:
        """读取文件并解析层级"""
        if not self.validate_file(file_path):
            raise TreeImportError(f"无效的文件: {file_path}", source=file_path)

        try:
            if Path(file_path).suffix.lower() == '.csv':
                # 保留名称前导空格
                df = pd.read_csv(file_path, skipinitialspace=False)
            else:
                df = pd.read_excel(file_path, sheet_name=self.sheet_name)
        except (OSError, ValueError) as e:
            raise TreeImportError(f"读取表格失败: {e}", source=file_path)

        parsed = self.parse_frame(df)
        self.stats['files_processed'] += 1
        return parsed

    def parse_frame(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        解析DataFrame

        Returns:
            每行一个字典：row_index, name, level, parent_index, attributes
            parent_index 指向返回列表中父节点的下标，根节点为None
        """
        if self.name_column not in df.columns:
            raise TreeImportError(f"未找到节点名称列: {self.name_column}")

        attribute_columns = [
            col for col in df.columns
            if col not in (self.name_column, self.level_column)
        ]

        parsed: List[Dict[str, Any]] = []
        hierarchy: List[Tuple[int, int]] = []  # (level, parsed下标)

        for idx, row in df.iterrows():
            raw_name = row[self.name_column]
            if pd.isna(raw_name) or not str(raw_name).strip():
                self.stats['rows_skipped'] += 1
                continue

            raw_name = str(raw_name)
            level = self._row_level(row, raw_name)

            # 查找父节点：最近的层级更小的行
            hierarchy = [(lvl, pos) for lvl, pos in hierarchy if lvl < level]
            parent_index = hierarchy[-1][1] if hierarchy else None

            parsed.append({
                'row_index': idx,
                'name': raw_name.strip(),
                'level': level,
                'parent_index': parent_index,
                'attributes': self._row_attributes(row, attribute_columns),
            })
            hierarchy.append((level, len(parsed) - 1))
            self.stats['nodes_parsed'] += 1

        return parsed

    def convert_to_tree_nodes(self, parsed_data: List[Dict[str, Any]]) -> List[INode]:
        """按顺序创建节点，父节点总是先于子节点创建"""
        created: List[INode] = []

        for entry in parsed_data:
            parent_index = entry['parent_index']
            if parent_index is None:
                parent = ParentRef.unchanged()
            else:
                parent = ParentRef.to(created[parent_index].node_id)

            data = dict(entry['attributes'])
            data['name'] = entry['name']
            node = self.repository.create(data, parent=parent)
            created.append(node)
            self.stats['nodes_created'] += 1

        logger.info(f"表格导入完成: 共创建 {len(created)} 个节点")
        return created

    def import_frame(self, df: pd.DataFrame) -> List[INode]:
        """直接从DataFrame导入"""
        return self.convert_to_tree_nodes(self.parse_frame(df))

    # ============ 内部方法 ============

    def _row_level(self, row: pd.Series, raw_name: str) -> int:
        if self.level_column in row.index and pd.notna(row[self.level_column]):
            try:
                level = int(row[self.level_column])
            except (TypeError, ValueError):
                raise TreeImportError(f"无效的层级值: {row[self.level_column]}")
        else:
            leading_spaces = len(raw_name) - len(raw_name.lstrip(' '))
            level = leading_spaces // self.indent_width

        if level < 0:
            raise TreeImportError(f"层级不能为负数: {level}")
        return min(level, self.max_level)

    @staticmethod
    def _row_attributes(row: pd.Series, columns: List[Any]) -> Dict[str, Any]:
        attributes = {}
        for col in columns:
            value = row[col]
            if pd.isna(value):
                continue
            # numpy标量转为Python原生类型，便于JSON序列化
            if hasattr(value, 'item'):
                value = value.item()
            attributes[str(col)] = value
        return attributes
