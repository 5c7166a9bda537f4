"""
树结构处理工具模块

适用于任何带 children 列表的节点 (EventNode / CpuStackFrame)
"""

from typing import Any, Callable, Dict, Iterable, List
import logging

logger = logging.getLogger(__name__)


def count_nodes(root) -> int:
    """计算树中的节点数 (包含根节点)"""
    count = 0
    stack = [root]
    while stack:
        current = stack.pop()
        count += 1
        stack.extend(current.children)
    return count


def get_tree_depth(root) -> int:
    """获取树的深度 (只有根节点时为 0)"""
    max_depth = 0
    stack = [(root, 0)]
    while stack:
        current, depth = stack.pop()
        max_depth = max(max_depth, depth)
        for child in current.children:
            stack.append((child, depth + 1))
    return max_depth


def format_tree(root, label: Callable[[Any], str], max_depth: int = 10) -> str:
    """
    将树格式化为带连接线的文本

    Args:
        root: 树根节点
        label: 节点 -> 显示文本
        max_depth: 最大打印深度

    Returns:
        str: 多行文本
    """
    lines = []

    def _format_node(node, depth: int, prefix: str, child_prefix: str):
        if depth > max_depth:
            return
        lines.append(f"{prefix}{label(node)}")
        for i, child in enumerate(node.children):
            is_last = i == len(node.children) - 1
            _format_node(
                child, depth + 1,
                child_prefix + ("└── " if is_last else "├── "),
                child_prefix + ("    " if is_last else "│   "),
            )

    _format_node(root, 0, "", "")
    return '\n'.join(lines)


def get_tree_statistics(roots: Iterable[Any]) -> Dict[str, Any]:
    """
    获取一组树的统计信息

    Args:
        roots: 树根节点列表

    Returns:
        Dict[str, Any]: 统计信息
    """
    stats = {
        'total_trees': 0,
        'total_nodes': 0,
        'max_depth': 0,
        'avg_depth': 0.0,
    }

    total_depth = 0
    for root in roots:
        tree_depth = get_tree_depth(root)
        stats['total_trees'] += 1
        stats['total_nodes'] += count_nodes(root)
        stats['max_depth'] = max(stats['max_depth'], tree_depth)
        total_depth += tree_depth

    if stats['total_trees'] > 0:
        stats['avg_depth'] = total_depth / stats['total_trees']

    return stats


def flatten_tree(root) -> List[Any]:
    """前序遍历展开为列表"""
    result = []
    stack = [root]
    while stack:
        current = stack.pop()
        result.append(current)
        stack.extend(reversed(current.children))
    return result
