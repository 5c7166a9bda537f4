"""
CPU profile 调用树节点
"""

from typing import Dict, Iterator, List, Optional

from ..utils.cached_value import CachedValue
from ..utils.time import ms_text, percent2


class StackFrameState:
    """节点状态，只能前进不能回退"""
    UNATTACHED = 0
    ATTACHED = 1
    COUNTED = 2
    MEMOIZED = 3

    NAMES = {
        UNATTACHED: 'unattached',
        ATTACHED: 'attached',
        COUNTED: 'counted',
        MEMOIZED: 'memoized',
    }


class CpuStackFrame:
    """
    调用树中的一个栈帧

    节点存放在共享的 arena (id -> 节点) 中，parent 以 id 保存；children 列表持有子节点。
    depth / inclusive_sample_count / cpu_consumption_ratio 在第一次读取时计算并永久缓存，
    因此树必须在第一次读取之前构建完成。
    """

    def __init__(self, id: str, name: str, category: str,
                 arena: Optional[Dict[str, 'CpuStackFrame']] = None):
        self.id = id
        self.name = name
        self.category = category
        self.arena = arena if arena is not None else {}
        self.arena[id] = self

        self.parent_id: Optional[str] = None
        self.children: List['CpuStackFrame'] = []
        # 在 parent.children 中的位置
        self.index = -1
        # 以该节点为叶子的采样数
        self.exclusive_sample_count = 0
        self.is_native = False
        self.state = StackFrameState.UNATTACHED

        self._depth = CachedValue()
        self._inclusive_sample_count = CachedValue()
        self._cpu_consumption_ratio = CachedValue()

    def _advance(self, state: int):
        if state > self.state:
            self.state = state

    @property
    def parent(self) -> Optional['CpuStackFrame']:
        if self.parent_id is None:
            return None
        return self.arena.get(self.parent_id)

    def add_child(self, child: 'CpuStackFrame'):
        """添加子节点并记录其位置"""
        if self.state == StackFrameState.MEMOIZED:
            raise RuntimeError(f"栈帧 {self.id} 的统计值已缓存，不能再添加子节点")
        if child.state != StackFrameState.UNATTACHED:
            raise RuntimeError(f"栈帧 {child.id} 已挂载到 {child.parent_id}")
        if child.arena is not self.arena:
            raise ValueError(f"栈帧 {child.id} 与 {self.id} 不属于同一棵树")
        self.children.append(child)
        child.parent_id = self.id
        child.index = len(self.children) - 1
        child._advance(StackFrameState.ATTACHED)

    def remove_child(self, child: 'CpuStackFrame'):
        """移除子节点并重新编号，被移除的节点不再属于这棵树"""
        if self.state == StackFrameState.MEMOIZED:
            raise RuntimeError(f"栈帧 {self.id} 的统计值已缓存，不能再移除子节点")
        self.children.remove(child)
        for i, sibling in enumerate(self.children):
            sibling.index = i
        child.index = -1
        self.arena.pop(child.id, None)

    def add_sample(self):
        """该节点作为叶子出现一次"""
        if self.state == StackFrameState.MEMOIZED:
            raise RuntimeError(f"栈帧 {self.id} 的统计值已缓存，不能再增加采样")
        self.exclusive_sample_count += 1

    def mark_counted(self):
        self._advance(StackFrameState.COUNTED)

    def get_root(self) -> 'CpuStackFrame':
        root = self
        while root.parent is not None:
            root = root.parent
        return root

    def iter_subtree(self) -> Iterator['CpuStackFrame']:
        """前序遍历 (包含自身，兄弟按 children 顺序)"""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def _post_order(self) -> List['CpuStackFrame']:
        order = list(self.iter_subtree())
        order.reverse()
        return order

    @property
    def depth(self) -> int:
        """以该节点为根的子树深度 (包含自身)"""
        def compute():
            for node in self._post_order():
                if node is not self and not node._depth.is_computed:
                    node._depth.get(lambda n=node: 1 + max((c._depth.peek() for c in n.children), default=0))
            return 1 + max((child._depth.peek() for child in self.children), default=0)
        return self._depth.get(compute)

    @property
    def inclusive_sample_count(self) -> int:
        """包含该节点的采样数 = exclusive + 子节点 inclusive 之和"""
        def compute():
            # 后序遍历自底向上填充缓存，避免深树递归
            for node in self._post_order():
                if node is not self and not node._inclusive_sample_count.is_computed:
                    node._inclusive_sample_count.get(node._sum_inclusive)
                    node._advance(StackFrameState.MEMOIZED)
            return self._sum_inclusive()
        value = self._inclusive_sample_count.get(compute)
        self._advance(StackFrameState.MEMOIZED)
        return value

    def _sum_inclusive(self) -> int:
        return self.exclusive_sample_count + sum(
            child._inclusive_sample_count.peek() for child in self.children
        )

    @property
    def cpu_consumption_ratio(self) -> float:
        """inclusive 采样数占根节点 inclusive 采样数的比例"""
        def compute():
            root = self.get_root()
            if root is self:
                return 1.0
            total = root.inclusive_sample_count
            if total == 0:
                return 0.0
            return self.inclusive_sample_count / total
        return self._cpu_consumption_ratio.get(compute)

    def _format(self, lines: List[str], indent: str):
        lines.append(f"{indent}{self.id} - children: {len(self.children)} - "
                     f"exclusiveSampleCount: {self.exclusive_sample_count}")
        for child in self.children:
            child._format(lines, '  ' + indent)

    def to_string_deep(self) -> str:
        lines = []
        self._format(lines, '  ')
        return '\n'.join(lines) + '\n'

    def to_display_string(self, duration_micros: Optional[float] = None) -> str:
        """例如: "main - 1.50 ms (3 samples, 75.00%)" """
        text = f"{self.name} "
        if duration_micros is not None:
            text += f"- {ms_text(duration_micros, fraction_digits=2)} "
        count = self.inclusive_sample_count
        text += f"({count} {'sample' if count == 1 else 'samples'}, {percent2(self.cpu_consumption_ratio)})"
        return text

    def __str__(self):
        return self.to_display_string()

    def __repr__(self):
        return (f"CpuStackFrame(id={self.id!r}, name={self.name!r}, "
                f"state={StackFrameState.NAMES[self.state]}, children={len(self.children)})")
