"""
Timeline 会话

会话对象持有某次录制的全部可变状态：入站队列、各 track 的乱序缓冲堆、span 树构建器、
帧组装器和异常记录。事件按到达顺序逐个完整处理，不存在并发修改。
"""

from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from ..anomalies import AnomalyKind, AnomalyLog
from ..config import TimelineConfig
from ..models import TraceEvent, TrackKind
from ..parser import parse_trace_event
from .event_tree_builder import AsyncSpanMatcher, EventTreeBuilder
from .frame import TimelineFrame
from .frame_assembler import FrameAssembler
from .frame_keys import create_key_strategy
from .pending import PendingEventHeap

logger = logging.getLogger(__name__)

# thread_name 后缀 -> track
THREAD_NAME_SUFFIXES = {
    '.ui': TrackKind.UI,
    '.raster': TrackKind.RASTER,
    '.gpu': TrackKind.RASTER,
}


class SessionState:
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPED = 'stopped'
    DISCONNECTED = 'disconnected'


class TimelineSession:
    """一次 timeline 录制的上下文"""

    def __init__(self, config: Optional[TimelineConfig] = None):
        self.config = (config or TimelineConfig()).validate()
        self.state = SessionState.IDLE
        self.anomalies = AnomalyLog(self.config.anomaly_history)
        self.track_ids: Dict[Union[int, str], str] = dict(self.config.track_ids)

        self.inbound = deque()
        self.heaps: Dict[str, PendingEventHeap] = {}
        self.builders: Dict[str, EventTreeBuilder] = {}
        for track in self.config.required_tracks:
            self.heaps[track] = PendingEventHeap(self.config.look_back_window)
            builder = EventTreeBuilder(track, self.anomalies, retain_roots=False)
            builder.add_listener(self._make_root_listener(track))
            self.builders[track] = builder

        self.assembler = FrameAssembler(
            required_tracks=self.config.required_tracks,
            key_strategy=create_key_strategy(self.config.key_strategy, self.config.frame_number_arg),
            capacity=self.config.pending_frame_capacity,
            stale_frame_limit=self.config.stale_frame_limit,
            budget_micros=self.config.frame_budget_micros,
            anomalies=self.anomalies,
            frame_number_arg=self.config.frame_number_arg,
            history=self.config.frame_history,
        )
        # 已完成但尚未被 drain_frames 取走的帧
        self.outbound = deque()
        self.assembler.add_listener(self.outbound.append)
        self.async_matcher = AsyncSpanMatcher(self.anomalies)
        self.async_matcher.add_listener(self.assembler.add_pipeline_span)

        self.processed_events = 0
        self.ignored_events = 0

    def _make_root_listener(self, track: str):
        def on_root(node):
            self.assembler.add_span(track, node)
        return on_root

    # ---- 生命周期 ----

    def start(self):
        if self.state == SessionState.DISCONNECTED:
            raise RuntimeError("会话连接已断开，需要先 reset")
        self.state = SessionState.RUNNING
        logger.info("timeline 会话开始")

    def stop(self):
        """停止接收新事件，pending 的帧保持不变"""
        self.state = SessionState.STOPPED
        logger.info(f"timeline 会话停止，pending 帧: {len(self.assembler.pending_frames)}")

    def connection_lost(self):
        """
        runtime 连接断开：已收到的入站事件先处理完，之后状态冻结到 reset 为止

        乱序缓冲堆和 pending 帧保持原样，不会被强制补全
        """
        if self.inbound:
            logger.warning(f"连接断开，处理剩余的 {len(self.inbound)} 个入站事件")
            self.process_pending()
        self.state = SessionState.DISCONNECTED

    def reset(self):
        """清空所有状态，回到 idle"""
        self.inbound.clear()
        for heap in self.heaps.values():
            heap.clear()
        for builder in self.builders.values():
            builder.reset()
        self.async_matcher.reset()
        self.assembler.reset()
        self.anomalies.clear()
        self.track_ids = dict(self.config.track_ids)
        self.processed_events = 0
        self.ignored_events = 0
        self.outbound.clear()
        self.state = SessionState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state == SessionState.RUNNING

    # ---- 入站 ----

    def submit(self, raw_event: Any) -> bool:
        """
        将原始事件放入入站队列

        Returns:
            bool: 会话未运行时返回 False 且事件被忽略
        """
        if not self.is_running:
            logger.debug(f"会话状态为 {self.state}，忽略入站事件")
            return False
        self.inbound.append(raw_event)
        return True

    def process_pending(self) -> int:
        """
        按 FIFO 顺序处理入站队列中的全部事件

        单个事件处理失败只记录异常，不影响后续事件

        Returns:
            int: 处理的事件数
        """
        if self.state == SessionState.DISCONNECTED:
            return 0
        count = 0
        while self.inbound:
            raw_event = self.inbound.popleft()
            count += 1
            try:
                self._handle_raw_event(raw_event)
            except Exception as e:
                logger.warning(f"处理事件失败: {e}", exc_info=True)
                self.anomalies.record(AnomalyKind.MALFORMED_EVENT, f"处理事件失败: {e}")
        return count

    def process_events(self, raw_events: Iterable[Any]) -> List[TimelineFrame]:
        """提交并处理一批事件，返回本批新完成的帧"""
        if self.state == SessionState.IDLE:
            self.start()
        for raw_event in raw_events:
            if self.submit(raw_event):
                self.process_pending()
        return self.drain_frames()

    def flush(self) -> List[TimelineFrame]:
        """释放乱序缓冲堆中的全部事件 (按 track 顺序)，连接断开后不做任何处理"""
        if self.state == SessionState.DISCONNECTED:
            return self.drain_frames()
        for track, heap in self.heaps.items():
            for event in heap.drain():
                self._dispatch(track, event)
        return self.drain_frames()

    def _handle_raw_event(self, raw_event: Any):
        event = raw_event if isinstance(raw_event, TraceEvent) else parse_trace_event(raw_event)
        if event is None:
            self.anomalies.record(AnomalyKind.MALFORMED_EVENT, f"无法解析的事件: {raw_event!r}")
            return
        self.processed_events += 1

        if event.is_metadata:
            self._handle_metadata(event)
            return

        if event.is_async_begin or event.is_async_end:
            self.async_matcher.process(event)
            return

        track = self.track_ids.get(event.track)
        if track is None:
            self.ignored_events += 1
            return

        heap = self.heaps[track]
        if heap.is_late(event):
            self.anomalies.record(
                AnomalyKind.LATE_EVENT,
                f"事件 {event.name} 早于已处理的时间 {heap.last_released}，超出乱序窗口",
                track=track, timestamp=event.timestamp,
            )
            return
        for released in heap.push(event):
            self._dispatch(track, released)

    def _dispatch(self, track: str, event: TraceEvent):
        self.builders[track].process(event)

    def _handle_metadata(self, event: TraceEvent):
        thread_name = event.thread_name
        if not thread_name:
            return
        for suffix, track in THREAD_NAME_SUFFIXES.items():
            if thread_name.endswith(suffix) and track in self.builders:
                if event.track not in self.track_ids:
                    self.track_ids[event.track] = track
                    logger.info(f"识别线程 {event.track} ({thread_name}) 为 {track} track")
                return

    # ---- 出站 ----

    @property
    def frames(self) -> List[TimelineFrame]:
        """最近完成的帧 (按完成顺序，最多 config.frame_history 个)"""
        return list(self.assembler.completed_frames)

    def drain_frames(self) -> List[TimelineFrame]:
        """取走上次调用以来新完成的帧，会话不再持有它们"""
        new_frames = list(self.outbound)
        self.outbound.clear()
        return new_frames

    def format_status(self) -> str:
        """当前 pending 状态的文本描述 (用于调试)"""
        lines = [f"Session state: {self.state}"]
        pending_frames = self.assembler.pending_frames.values()
        lines.append(f"Pending frames: {len(pending_frames)}")
        for frame in pending_frames:
            lines.append(f"    {frame!r}")
        for track, builder in self.builders.items():
            if builder.open_nodes:
                lines.append(f"Current {track} event node:")
                lines.append(builder.open_nodes[0].format('    '))
        for track, heap in self.heaps.items():
            if len(heap):
                lines.append(f"{track} heap:")
                for event in heap.to_list():
                    lines.append(f"    {event.to_dict()}")
        if self.anomalies.counts:
            lines.append(f"Anomalies: {self.anomalies.summary()}")
        return '\n'.join(lines)
