# -*- coding: utf-8 -*-
"""
Timeline trace 事件数据模型定义
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Union


class Phase:
    """trace 事件的 phase 取值 (Chrome trace event 格式)"""
    BEGIN = 'B'
    END = 'E'
    COMPLETE = 'X'
    INSTANT = 'i'
    INSTANT_LEGACY = 'I'
    ASYNC_BEGIN = 'b'
    ASYNC_END = 'e'
    ASYNC_INSTANT = 'n'
    ASYNC_BEGIN_LEGACY = 'S'
    ASYNC_END_LEGACY = 'F'
    METADATA = 'M'

    INSTANTS = frozenset({INSTANT, INSTANT_LEGACY, ASYNC_INSTANT})
    ASYNC_BEGINS = frozenset({ASYNC_BEGIN, ASYNC_BEGIN_LEGACY})
    ASYNC_ENDS = frozenset({ASYNC_END, ASYNC_END_LEGACY})


class TrackKind:
    """默认跟踪的 track 名称"""
    UI = 'ui'
    RASTER = 'raster'

    DEFAULT_REQUIRED = (UI, RASTER)


@dataclass(frozen=True)
class TraceEvent:
    """单条 trace 事件 (创建后不可变)"""
    phase: str
    name: str
    category: str
    track: Union[int, str]
    timestamp: float
    args: Dict[str, Any] = field(default_factory=dict)
    pid: Optional[Union[int, str]] = None
    id: Optional[str] = None
    duration: Optional[float] = None

    @property
    def is_begin(self) -> bool:
        return self.phase == Phase.BEGIN

    @property
    def is_end(self) -> bool:
        return self.phase == Phase.END

    @property
    def is_complete(self) -> bool:
        return self.phase == Phase.COMPLETE

    @property
    def is_instant(self) -> bool:
        return self.phase in Phase.INSTANTS

    @property
    def is_async_begin(self) -> bool:
        return self.phase in Phase.ASYNC_BEGINS

    @property
    def is_async_end(self) -> bool:
        return self.phase in Phase.ASYNC_ENDS

    @property
    def is_metadata(self) -> bool:
        return self.phase == Phase.METADATA

    @property
    def end_timestamp(self) -> Optional[float]:
        """X 事件的结束时间"""
        if self.duration is None:
            return None
        return self.timestamp + self.duration

    @property
    def frame_number(self) -> Optional[Union[int, str]]:
        """获取 runtime 提供的 frame number"""
        return self.get_arg('frame_number', 'frameNumber')

    @property
    def thread_name(self) -> Optional[str]:
        """metadata 事件中的线程名"""
        if self.phase != Phase.METADATA or self.name != 'thread_name':
            return None
        return self.args.get('name') if self.args else None

    def get_arg(self, *keys: str) -> Optional[Any]:
        """按顺序查找第一个存在的参数"""
        if not self.args:
            return None
        for key in keys:
            if key in self.args:
                return self.args[key]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """转换为 Chrome trace event 格式的字典"""
        data = {
            'ph': self.phase,
            'name': self.name,
            'cat': self.category,
            'tid': self.track,
            'ts': self.timestamp,
            'args': dict(self.args) if self.args else {},
        }
        if self.pid is not None:
            data['pid'] = self.pid
        if self.id is not None:
            data['id'] = self.id
        if self.duration is not None:
            data['dur'] = self.duration
        return data
