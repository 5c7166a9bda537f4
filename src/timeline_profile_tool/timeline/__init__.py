"""
Timeline 事件重建模块
"""

from .event_node import EventNode
from .event_tree_builder import EventTreeBuilder, AsyncSpanMatcher
from .frame import TimelineFrame
from .frame_assembler import FrameAssembler
from .frame_keys import (
    FrameKeyStrategy,
    FrameNumberKeyStrategy,
    TemporalAdjacencyKeyStrategy,
    CompositeKeyStrategy,
    create_key_strategy,
)
from .pending import PendingEventHeap, PendingFrameMap
from .session import TimelineSession, SessionState

__all__ = [
    'EventNode',
    'EventTreeBuilder',
    'AsyncSpanMatcher',
    'TimelineFrame',
    'FrameAssembler',
    'FrameKeyStrategy',
    'FrameNumberKeyStrategy',
    'TemporalAdjacencyKeyStrategy',
    'CompositeKeyStrategy',
    'create_key_strategy',
    'PendingEventHeap',
    'PendingFrameMap',
    'TimelineSession',
    'SessionState',
]
