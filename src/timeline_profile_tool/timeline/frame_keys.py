"""
frame key 推断策略

FrameAssembler 通过策略对象把每个 track 的根 span 映射到 frame key，策略可替换
"""

from collections import defaultdict
from typing import Dict, Hashable, Optional
import logging

from .event_node import EventNode

logger = logging.getLogger(__name__)


def _normalize_frame_number(value) -> Hashable:
    """数字字符串统一转为 int，便于按 key 排序"""
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value)
    return value


class FrameKeyStrategy:
    """frame key 策略基类"""

    def frame_key(self, track: str, node: EventNode) -> Optional[Hashable]:
        """返回 span 所属的 frame key，无法判断时返回 None"""
        raise NotImplementedError

    def reset(self):
        pass


class FrameNumberKeyStrategy(FrameKeyStrategy):
    """使用 runtime 在事件参数中提供的 frame number"""

    def __init__(self, arg_name: str = 'frame_number'):
        self.arg_names = (arg_name, 'frame_number', 'frameNumber')

    def frame_key(self, track: str, node: EventNode) -> Optional[Hashable]:
        args = node.args
        for name in self.arg_names:
            if args.get(name) is not None:
                return _normalize_frame_number(args[name])
        return None


class TemporalAdjacencyKeyStrategy(FrameKeyStrategy):
    """
    按时间相邻关系配对：每个 track 的第 n 个根 span 属于第 n 帧

    只适用于各 track 每帧恰好产生一个根 span 的事件流
    """

    def __init__(self):
        self._ordinals: Dict[str, int] = defaultdict(int)

    def frame_key(self, track: str, node: EventNode) -> Optional[Hashable]:
        key = self._ordinals[track]
        self._ordinals[track] += 1
        return key

    def reset(self):
        self._ordinals.clear()


class CompositeKeyStrategy(FrameKeyStrategy):
    """优先使用显式 frame number，缺失时退回到时间相邻配对"""

    def __init__(self, arg_name: str = 'frame_number'):
        self.explicit = FrameNumberKeyStrategy(arg_name)
        self.fallback = TemporalAdjacencyKeyStrategy()

    def frame_key(self, track: str, node: EventNode) -> Optional[Hashable]:
        key = self.explicit.frame_key(track, node)
        if key is not None:
            return key
        return self.fallback.frame_key(track, node)

    def reset(self):
        self.explicit.reset()
        self.fallback.reset()


def create_key_strategy(name: str, arg_name: str = 'frame_number') -> FrameKeyStrategy:
    """
    根据名称创建策略

    Args:
        name: composite / frame_number / adjacency
        arg_name: frame number 所在的参数名
    """
    if name == 'composite':
        return CompositeKeyStrategy(arg_name)
    if name == 'frame_number':
        return FrameNumberKeyStrategy(arg_name)
    if name == 'adjacency':
        return TemporalAdjacencyKeyStrategy()
    raise ValueError(f"不支持的 frame key 策略: {name}")
