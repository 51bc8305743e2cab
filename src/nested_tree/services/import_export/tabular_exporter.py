"""
表格导出
把树按前序导出为 DataFrame
"""
from typing import Any, List, Optional

import pandas as pd

from ...core.node.repository import TreeRepository

STRUCTURE_COLUMNS = ['node_id', 'parent_id', 'lft', 'rgt', 'depth']


def export_frame(repository: TreeRepository, root: Optional[Any] = None) -> pd.DataFrame:
    """
    导出节点为DataFrame

    Args:
        repository: 节点仓库（读取走缓存）
        root: 只导出该节点的子树（含自身）；None 导出整片森林

    Returns:
        按 lft 排序的 DataFrame，结构列在前，业务属性列在后
    """
    if root is not None:
        nodes = list(repository.get_descendants(root, include_self=True))
    else:
        nodes = []
        for tree_root in repository.get_roots():
            nodes.extend(repository.get_descendants(tree_root, include_self=True))

    rows: List[dict] = []
    attribute_columns: List[str] = []
    for node in nodes:
        row = {col: getattr(node, col) for col in STRUCTURE_COLUMNS}
        for key, value in node.attributes.items():
            if key not in attribute_columns:
                attribute_columns.append(key)
            row[key] = value
        rows.append(row)

    return pd.DataFrame(rows, columns=STRUCTURE_COLUMNS + attribute_columns)
