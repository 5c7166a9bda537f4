"""
渲染帧数据模型
"""

from typing import Any, Dict, Hashable, Optional, Sequence

from ..config import DEFAULT_FRAME_BUDGET_MICROS
from ..models import TrackKind
from .event_node import EventNode


class TimelineFrame:
    """
    一帧渲染输出，由每个 required track 的一个根 span 组成

    状态: pending (等待其他 track) -> complete (所有 track 均有已关闭的 span)，完成后不可再修改
    """

    def __init__(self, frame_id: Hashable, required_tracks: Sequence[str] = TrackKind.DEFAULT_REQUIRED,
                 budget_micros: float = DEFAULT_FRAME_BUDGET_MICROS, created_at: int = 0):
        self.id = frame_id
        self.required_tracks = tuple(required_tracks)
        self.budget_micros = budget_micros
        # 创建时的逻辑时钟 (已完成帧数)
        self.created_at = created_at
        self.spans: Dict[str, EventNode] = {}
        self.pipeline_span: Optional[EventNode] = None
        self._complete = False

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def is_ready(self) -> bool:
        """所有 required track 都有已关闭的 span"""
        return all(
            track in self.spans and self.spans[track].is_closed
            for track in self.required_tracks
        )

    def has_span(self, track: str) -> bool:
        return track in self.spans

    def attach(self, track: str, node: EventNode):
        """将 span 挂到对应 track 的槽位"""
        if self._complete:
            raise RuntimeError(f"frame {self.id!r} 已完成，不能再修改")
        if track not in self.required_tracks:
            raise ValueError(f"track {track} 不是 frame 的 required track: {self.required_tracks}")
        if track in self.spans:
            raise ValueError(f"frame {self.id!r} 的 track {track} 已有 span")
        self.spans[track] = node

    def attach_pipeline(self, node: EventNode):
        if self._complete:
            raise RuntimeError(f"frame {self.id!r} 已完成，不能再修改")
        self.pipeline_span = node

    def mark_complete(self):
        if not self.is_ready:
            missing = [t for t in self.required_tracks if t not in self.spans or self.spans[t].is_open]
            raise RuntimeError(f"frame {self.id!r} 缺少 track 的已关闭 span: {missing}")
        self._complete = True

    @property
    def ui_event_flow(self) -> Optional[EventNode]:
        return self.spans.get(TrackKind.UI)

    @property
    def raster_event_flow(self) -> Optional[EventNode]:
        return self.spans.get(TrackKind.RASTER)

    def track_duration(self, track: str) -> Optional[float]:
        node = self.spans.get(track)
        return node.duration if node is not None else None

    @property
    def start(self) -> Optional[float]:
        starts = [node.start for node in self.spans.values()]
        if self.pipeline_span is not None:
            starts.append(self.pipeline_span.start)
        return min(starts) if starts else None

    @property
    def end(self) -> Optional[float]:
        ends = [node.end for node in self.spans.values() if node.end is not None]
        if self.pipeline_span is not None and self.pipeline_span.end is not None:
            ends.append(self.pipeline_span.end)
        return max(ends) if ends else None

    @property
    def duration(self) -> Optional[float]:
        """帧从最早开始到最晚结束的总耗时"""
        if self.start is None or self.end is None:
            return None
        return self.end - self.start

    @property
    def is_over_budget(self) -> bool:
        """任一 track 的 span 耗时超过帧预算 (jank)"""
        for track in self.required_tracks:
            duration = self.track_duration(track)
            if duration is not None and duration > self.budget_micros:
                return True
        return False

    is_janky = is_over_budget

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'start': self.start,
            'end': self.end,
            'duration': self.duration,
            'over_budget': self.is_over_budget,
            'complete': self.is_complete,
        }
        for track in self.required_tracks:
            data[f'{track}_duration'] = self.track_duration(track)
        return data

    def __repr__(self):
        state = 'complete' if self._complete else 'pending'
        return f"TimelineFrame(id={self.id!r}, {state}, tracks={sorted(self.spans)}, duration={self.duration})"
