"""
待处理事件 / 待完成帧的有界缓冲结构
"""

import heapq
import itertools
from collections import OrderedDict
from typing import Any, Hashable, Iterator, List, Optional, Tuple
import logging

from ..models import TraceEvent

logger = logging.getLogger(__name__)


class PendingEventHeap:
    """
    单个 track 的有界最小堆，按 (timestamp, 到达序号) 排序

    用于容忍 track 内部一定窗口内的乱序：事件先进入堆，超过容量时释放最早的事件。
    容量为 0 时事件直接透传。
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError(f"capacity 不能为负数: {capacity}")
        self.capacity = capacity
        self._heap: List[Tuple[float, int, TraceEvent]] = []
        self._sequence = itertools.count()
        self.last_released: Optional[float] = None

    def __len__(self):
        return len(self._heap)

    def is_late(self, event: TraceEvent) -> bool:
        """
        事件时间早于已释放的事件，说明超出了乱序窗口

        容量为 0 时不缓冲也不判断迟到，事件按到达顺序透传
        (例如结束时才写出的 X 事件，子节点先于父节点到达)
        """
        if self.capacity == 0:
            return False
        return self.last_released is not None and event.timestamp < self.last_released

    def push(self, event: TraceEvent) -> List[TraceEvent]:
        """
        压入事件，返回因超出容量而释放的事件 (按时间顺序)

        调用方需先用 is_late 检查过晚的事件
        """
        heapq.heappush(self._heap, (event.timestamp, next(self._sequence), event))
        released = []
        while len(self._heap) > self.capacity:
            released.append(self._pop())
        return released

    def drain(self) -> List[TraceEvent]:
        """释放堆中全部事件"""
        released = []
        while self._heap:
            released.append(self._pop())
        return released

    def _pop(self) -> TraceEvent:
        timestamp, _, event = heapq.heappop(self._heap)
        self.last_released = timestamp
        return event

    def peek(self) -> Optional[TraceEvent]:
        return self._heap[0][2] if self._heap else None

    def to_list(self) -> List[TraceEvent]:
        """按释放顺序返回当前缓冲的事件 (不修改堆)"""
        return [entry[2] for entry in sorted(self._heap)]

    def clear(self):
        self._heap.clear()
        self.last_released = None


class PendingFrameMap:
    """
    frame key -> 未完成帧 的有界有序映射

    插入顺序即创建顺序，超出容量时淘汰最早创建的帧
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity 必须 >= 1: {capacity}")
        self.capacity = capacity
        self._frames: 'OrderedDict[Hashable, Any]' = OrderedDict()

    def __len__(self):
        return len(self._frames)

    def __contains__(self, key):
        return key in self._frames

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._frames)

    def get(self, key):
        return self._frames.get(key)

    def values(self):
        return list(self._frames.values())

    def insert(self, key: Hashable, frame) -> Optional[Any]:
        """
        插入新帧

        Returns:
            被淘汰的最早的帧，没有淘汰时返回 None
        """
        if key in self._frames:
            raise KeyError(f"frame {key!r} 已存在")
        self._frames[key] = frame
        if len(self._frames) > self.capacity:
            _, evicted = self._frames.popitem(last=False)
            return evicted
        return None

    def pop(self, key):
        return self._frames.pop(key, None)

    def pop_where(self, predicate) -> List[Any]:
        """移除并返回满足条件的帧 (保持创建顺序)"""
        keys = [key for key, frame in self._frames.items() if predicate(frame)]
        return [self._frames.pop(key) for key in keys]

    def clear(self):
        self._frames.clear()
