"""
节点接口定义
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional, Any


class INode(ABC):
    """节点接口 - 嵌套集合节点的最小结构约定"""

    @property
    @abstractmethod
    def node_id(self) -> Any:
        """节点唯一标识"""
        pass

    @property
    @abstractmethod
    def parent_id(self) -> Optional[Any]:
        """父节点标识，None表示根节点"""
        pass

    @property
    @abstractmethod
    def lft(self) -> int:
        """左值"""
        pass

    @property
    @abstractmethod
    def rgt(self) -> int:
        """右值"""
        pass

    @property
    @abstractmethod
    def depth(self) -> int:
        """深度（根节点为0）"""
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """序列化为字典"""
        pass
