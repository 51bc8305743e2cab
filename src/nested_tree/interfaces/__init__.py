"""
接口定义包
"""

from .inode import INode
from .itreestore import ITreeStore, NodeListener
from .icache import ICacheBackend

__all__ = [
    'INode',
    'ITreeStore',
    'NodeListener',
    'ICacheBackend',
]
