"""
空缓存后端
关闭缓存时使用，每次读取都回源到存储
"""
from typing import Any, Dict, Iterable, Tuple

from ...interfaces import ICacheBackend


class NullCacheBackend(ICacheBackend):
    """不保存任何条目的缓存后端"""

    backend_name = "null"

    def get(self, key: str) -> Tuple[bool, Any]:
        return False, None

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        pass

    def flush_tags(self, tags: Iterable[str]) -> int:
        return 0

    def clear(self) -> None:
        pass

    def stats(self) -> Dict[str, Any]:
        return {'backend': self.backend_name, 'entries': 0, 'tags': 0}
