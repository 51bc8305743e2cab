"""
pytest配置文件
用于设置测试环境和共享fixtures
"""
import sys
import os

import pytest

# 将src目录添加到Python路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from nested_tree.core.cache import TreeCache
from nested_tree.core.node import TreeRepository
from nested_tree.data.cache import MemoryCacheBackend
from nested_tree.data.storage import MemoryStore, SQLiteStore


class FakeClock:
    """可手动拨动的单调时钟"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """两种存储后端各跑一遍"""
    if request.param == "memory":
        instance = MemoryStore()
    else:
        instance = SQLiteStore(str(tmp_path / "tree.db"))
    yield instance
    instance.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return MemoryCacheBackend(max_entries=0, clock=clock)


@pytest.fixture
def cache(backend):
    return TreeCache(backend, ttl_day=86400, ttl_long=604800, prefix="node")


@pytest.fixture
def repo(store, cache):
    repository = TreeRepository(store, cache).boot()
    yield repository
    repository.shutdown()
