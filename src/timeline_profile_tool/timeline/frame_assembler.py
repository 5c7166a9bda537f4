"""
帧组装

把各 track 已完成的根 span 按 frame key 组装为 TimelineFrame
"""

from collections import OrderedDict, deque
from typing import Callable, Hashable, List, Optional, Sequence
import logging

from ..anomalies import AnomalyKind, AnomalyLog
from ..config import DEFAULT_FRAME_BUDGET_MICROS
from ..models import TrackKind
from .event_node import EventNode
from .frame import TimelineFrame
from .frame_keys import CompositeKeyStrategy, FrameKeyStrategy, FrameNumberKeyStrategy
from .pending import PendingFrameMap

logger = logging.getLogger(__name__)

FrameListener = Callable[[TimelineFrame], None]


class FrameAssembler:
    """
    帧组装器

    - 帧在第一个 span 到达时创建，所有 required track 都有已关闭的 span 后完成并发出
    - 帧按完成顺序发出，该顺序可能与 frame key 顺序不同
    - pending 帧数量有上限，超出时淘汰最早创建的帧
    - 以已完成帧数作为逻辑时钟，落后超过 stale_frame_limit 的 pending 帧被丢弃
    """

    def __init__(self,
                 required_tracks: Sequence[str] = TrackKind.DEFAULT_REQUIRED,
                 key_strategy: Optional[FrameKeyStrategy] = None,
                 capacity: int = 32,
                 stale_frame_limit: int = 8,
                 budget_micros: float = DEFAULT_FRAME_BUDGET_MICROS,
                 anomalies: Optional[AnomalyLog] = None,
                 frame_number_arg: str = 'frame_number',
                 history: Optional[int] = 1000):
        self.required_tracks = tuple(required_tracks)
        self.key_strategy = key_strategy if key_strategy is not None else CompositeKeyStrategy(frame_number_arg)
        self.pipeline_key_strategy = FrameNumberKeyStrategy(frame_number_arg)
        self.stale_frame_limit = stale_frame_limit
        self.budget_micros = budget_micros
        self.anomalies = anomalies if anomalies is not None else AnomalyLog()

        self.pending_frames = PendingFrameMap(capacity)
        # 最近完成的帧，最多保留 history 个 (None 表示不限制)
        self.completed_frames: 'deque[TimelineFrame]' = deque(maxlen=history)
        self.evicted_frames = 0
        # 逻辑时钟: 已完成的帧数
        self.clock = 0
        self._recent_completed_keys: 'OrderedDict[Hashable, None]' = OrderedDict()
        self._orphan_pipeline_spans: 'OrderedDict[Hashable, EventNode]' = OrderedDict()
        self._listeners: List[FrameListener] = []

    @property
    def capacity(self) -> int:
        return self.pending_frames.capacity

    def add_listener(self, listener: FrameListener):
        """注册帧完成回调"""
        self._listeners.append(listener)

    def add_span(self, track: str, node: EventNode) -> Optional[TimelineFrame]:
        """
        接收某个 track 已完成的根 span

        Args:
            track: track 名称
            node: 已关闭的根 span

        Returns:
            TimelineFrame: 若该 span 使帧完成，返回完成的帧；否则返回 None
        """
        if track not in self.required_tracks:
            logger.debug(f"忽略非跟踪 track {track} 的 span {node.name}")
            return None
        if node.is_open:
            logger.debug(f"忽略未关闭的 span {node.name}")
            return None

        key = self.key_strategy.frame_key(track, node)
        if key is None:
            self.anomalies.record(
                AnomalyKind.UNKEYED_SPAN,
                f"无法确定 span {node.name} 所属的帧",
                track=track, timestamp=node.start,
            )
            return None

        if key in self._recent_completed_keys:
            self.anomalies.record(
                AnomalyKind.DUPLICATE_SPAN,
                f"frame {key!r} 已完成，丢弃 track {track} 的 span {node.name}",
                track=track, timestamp=node.start, frame=key,
            )
            return None

        frame = self.pending_frames.get(key)
        if frame is None:
            frame = self._create_frame(key)

        if frame.has_span(track):
            self.anomalies.record(
                AnomalyKind.DUPLICATE_SPAN,
                f"frame {key!r} 的 track {track} 已有 span，丢弃 {node.name}",
                track=track, timestamp=node.start, frame=key,
            )
            return None

        frame.attach(track, node)
        if frame.is_ready:
            self._complete(frame)
            return frame
        return None

    def add_pipeline_span(self, node: EventNode):
        """接收携带 frame number 的异步 span，作为帧的 pipeline 区间"""
        key = self.pipeline_key_strategy.frame_key('pipeline', node)
        if key is None:
            logger.debug(f"异步 span {node.name} 没有 frame number，忽略")
            return
        frame = self.pending_frames.get(key)
        if frame is not None:
            frame.attach_pipeline(node)
            return
        if key in self._recent_completed_keys:
            logger.debug(f"frame {key!r} 已完成，忽略迟到的 pipeline span")
            return
        self._orphan_pipeline_spans[key] = node
        while len(self._orphan_pipeline_spans) > self.capacity:
            self._orphan_pipeline_spans.popitem(last=False)

    def _create_frame(self, key: Hashable) -> TimelineFrame:
        frame = TimelineFrame(key, self.required_tracks, self.budget_micros, created_at=self.clock)
        pipeline = self._orphan_pipeline_spans.pop(key, None)
        if pipeline is not None:
            frame.attach_pipeline(pipeline)
        evicted = self.pending_frames.insert(key, frame)
        if evicted is not None:
            self._report_eviction(evicted, 'capacity')
        return frame

    def _complete(self, frame: TimelineFrame):
        frame.mark_complete()
        self.pending_frames.pop(frame.id)
        self.completed_frames.append(frame)
        self._remember_completed(frame.id)
        self.clock += 1
        logger.debug(f"完成 {frame!r}")
        for listener in self._listeners:
            listener(frame)
        self._evict_stale()

    def _remember_completed(self, key: Hashable):
        self._recent_completed_keys[key] = None
        while len(self._recent_completed_keys) > self.capacity * 4:
            self._recent_completed_keys.popitem(last=False)

    def _evict_stale(self):
        stale = self.pending_frames.pop_where(
            lambda f: self.clock - f.created_at > self.stale_frame_limit
        )
        for frame in stale:
            self._report_eviction(frame, 'stale')

    def _report_eviction(self, frame: TimelineFrame, reason: str):
        self.evicted_frames += 1
        missing = [t for t in frame.required_tracks if not frame.has_span(t)]
        self.anomalies.record(
            AnomalyKind.FRAME_EVICTED,
            f"丢弃未完成的 frame {frame.id!r} ({reason})，缺少 track: {missing}",
            timestamp=frame.start, frame=frame.id, reason=reason,
        )

    def reset(self):
        self.pending_frames.clear()
        self.completed_frames.clear()
        self._recent_completed_keys.clear()
        self._orphan_pipeline_spans.clear()
        self.key_strategy.reset()
        self.evicted_frames = 0
        self.clock = 0
