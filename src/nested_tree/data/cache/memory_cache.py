"""
内存缓存后端
基于 cachetools.TLRUCache，每个条目按自己的有效期过期；进程结束即消失
"""
import math
import threading
import time
from typing import Any, Callable, Dict, Iterable, Set, Tuple

from cachetools import TLRUCache

from ...interfaces import ICacheBackend


def _expires_at(key: str, entry: Tuple[Any, int], now: float) -> float:
    return now + entry[1]


class _TaggedCache(TLRUCache):
    """过期和淘汰时回调，用于同步标签索引"""

    def __init__(self, maxsize: float, timer: Callable[[], float],
                 on_expire: Callable[[str], None], on_evict: Callable[[str], None]):
        super().__init__(maxsize, ttu=_expires_at, timer=timer)
        self._on_expire = on_expire
        self._on_evict = on_evict

    def expire(self, time=None):
        expired = super().expire(time)
        for key, _ in expired:
            self._on_expire(key)
        return expired

    def popitem(self):
        key, entry = super().popitem()
        self._on_evict(key)
        return key, entry


class MemoryCacheBackend(ICacheBackend):
    """
    内存缓存后端

    - 条目的过期与容量淘汰由 TLRUCache 负责（单调时钟）
    - 标签 -> 键 的反向索引，用于按标签清除
    - max_entries 为0表示不限容量
    """

    backend_name = "memory"

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.RLock()
        self.max_entries = max_entries

        self._clock = clock
        self._entries = self._new_cache()
        self._key_tags: Dict[str, Set[str]] = {}
        self._tag_index: Dict[str, Set[str]] = {}

        self._expired = 0
        self._evicted = 0

    def get(self, key: str) -> Tuple[bool, Any]:
        with self._lock:
            self._entries.expire()
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            return True, entry[0]

    def put(self, key: str, value: Any, ttl: int, tags: Iterable[str]) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._unindex(key)
            if ttl <= 0:
                return

            self._entries[key] = (value, ttl)
            tag_set = set(tags)
            self._key_tags[key] = tag_set
            for tag in tag_set:
                self._tag_index.setdefault(tag, set()).add(key)

    def flush_tags(self, tags: Iterable[str]) -> int:
        with self._lock:
            keys: Set[str] = set()
            for tag in tags:
                keys |= self._tag_index.get(tag, set())

            removed = 0
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
                self._unindex(key)
            return removed

    def clear(self) -> None:
        with self._lock:
            self._entries = self._new_cache()
            self._key_tags.clear()
            self._tag_index.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            self._entries.expire()
            return {
                'backend': self.backend_name,
                'entries': len(self._entries),
                'tags': len(self._tag_index),
                'expired': self._expired,
                'evicted': self._evicted,
            }

    # ========== 索引维护 ==========

    def _new_cache(self) -> _TaggedCache:
        return _TaggedCache(
            maxsize=self.max_entries or math.inf,
            timer=self._clock,
            on_expire=self._on_expire,
            on_evict=self._on_evict,
        )

    def _on_expire(self, key: str) -> None:
        self._expired += 1
        self._unindex(key)

    def _on_evict(self, key: str) -> None:
        self._evicted += 1
        self._unindex(key)

    def _unindex(self, key: str) -> None:
        for tag in self._key_tags.pop(key, ()):
            keys = self._tag_index.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tag_index[tag]

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
