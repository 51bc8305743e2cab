"""
缓存后端接口
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Tuple


class ICacheBackend(ABC):
    """带标签的缓存后端接口"""

    @abstractmethod
    def get(self, key: str) -> Tuple[bool, Any]:
        """
        读取缓存

        Returns:
            (是否命中, 值)。缓存的值本身可能是None，所以命中需要单独返回
        """
        pass

    @abstractmethod
    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        """写入缓存，ttl秒后过期"""
        pass

    @abstractmethod
    def flush_tags(self, tags: Iterable[str]) -> int:
        """
        清除带有任一标签的所有条目

        Returns:
            被清除的条目数
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        pass
