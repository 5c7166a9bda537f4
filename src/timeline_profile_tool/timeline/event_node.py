"""
Timeline span 节点
"""

from typing import Any, Dict, Iterator, List, Optional, Union

from ..models import TraceEvent


class EventNode:
    """
    timeline 中的一个 span (begin -> end)

    children 按到达顺序排列；节点在 end 设置之前处于 open 状态
    """

    def __init__(self, name: str, category: str, track: Union[int, str], start: float,
                 begin_args: Optional[Dict[str, Any]] = None):
        self.name = name
        self.category = category
        self.track = track
        self.start = start
        self.end: Optional[float] = None
        self.children: List['EventNode'] = []
        self.parent: Optional['EventNode'] = None
        self.begin_args = dict(begin_args) if begin_args else {}
        self.end_args: Dict[str, Any] = {}
        self.forced_close = False
        self.out_of_range = False

    @classmethod
    def from_begin(cls, event: TraceEvent) -> 'EventNode':
        return cls(event.name, event.category, event.track, event.timestamp, event.args)

    @classmethod
    def from_complete(cls, event: TraceEvent) -> 'EventNode':
        """由 X 事件创建已关闭的节点"""
        node = cls(event.name, event.category, event.track, event.timestamp, event.args)
        node.end = event.end_timestamp if event.duration is not None else event.timestamp
        return node

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def is_closed(self) -> bool:
        return self.end is not None

    @property
    def duration(self) -> Optional[float]:
        if self.end is None:
            return None
        return self.end - self.start

    @property
    def depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    @property
    def args(self) -> Dict[str, Any]:
        """begin 与 end 事件参数的合并 (end 优先)"""
        merged = dict(self.begin_args)
        merged.update(self.end_args)
        return merged

    def add_child(self, child: 'EventNode'):
        """添加子节点"""
        child.parent = self
        self.children.append(child)

    def matches(self, event: TraceEvent) -> bool:
        """判断 end 事件是否对应当前节点；end 事件没有名字时匹配任意节点"""
        if not event.name:
            return True
        if event.name != self.name:
            return False
        return not event.category or not self.category or event.category == self.category

    def contains(self, other: 'EventNode') -> bool:
        """检查 other 的时间区间是否落在当前节点内"""
        if self.end is None or other.end is None:
            return False
        return self.start <= other.start and other.end <= self.end

    def children_out_of_range(self) -> List['EventNode']:
        """返回时间区间超出当前节点的子节点"""
        if self.end is None:
            return []
        return [child for child in self.children if child.is_closed and not self.contains(child)]

    def iter_nodes(self) -> Iterator['EventNode']:
        """前序遍历 (包含自身)"""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def get_call_stack(self) -> List[str]:
        """获取从根到当前节点的调用栈路径"""
        path = []
        current = self
        while current is not None:
            path.append(current.name)
            current = current.parent
        return list(reversed(path))

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            'name': self.name,
            'cat': self.category,
            'track': self.track,
            'start': self.start,
            'end': self.end,
            'dur': self.duration,
            'forced_close': self.forced_close,
            'children': [child.to_dict() for child in self.children],
        }

    def format(self, indent: str = '') -> str:
        """格式化为缩进文本"""
        lines = []
        for node in self.iter_nodes():
            end = f"{node.end:.1f}" if node.end is not None else "open"
            lines.append(f"{indent}{'  ' * (node.depth - self.depth)}{node.name} [{node.start:.1f} - {end}]")
        return '\n'.join(lines)

    def __repr__(self):
        return f"EventNode(name={self.name!r}, track={self.track!r}, start={self.start}, end={self.end}, children={len(self.children)})"
