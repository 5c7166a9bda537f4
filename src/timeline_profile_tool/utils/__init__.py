"""
工具模块
"""

from .cached_value import CachedValue
from .time import ms_text, percent2, micros_to_readable_timestamp
from .tree_utils import count_nodes, get_tree_depth, format_tree, get_tree_statistics, flatten_tree

__all__ = [
    'CachedValue',
    'ms_text',
    'percent2',
    'micros_to_readable_timestamp',
    'count_nodes',
    'get_tree_depth',
    'format_tree',
    'get_tree_statistics',
    'flatten_tree',
]
