"""
基于 begin/end 匹配的 span 树构建

每个 track 一个 EventTreeBuilder，track 内部的事件假定已按时间顺序到达
"""

from typing import Callable, Dict, List, Optional, Tuple, Union
import logging

from ..anomalies import AnomalyKind, AnomalyLog
from ..models import TraceEvent
from .event_node import EventNode

logger = logging.getLogger(__name__)

NodeListener = Callable[[EventNode], None]


def close_node(node: EventNode, end: float, anomalies: AnomalyLog, end_args=None):
    """
    关闭节点并检查时间区间

    end 早于 start 时截断为 start；子节点超出父节点区间只标记不移除
    """
    if end < node.start:
        anomalies.record(
            AnomalyKind.NEGATIVE_DURATION,
            f"{node.name} 的结束时间 {end} 早于开始时间 {node.start}",
            track=node.track, timestamp=end,
        )
        end = node.start
    node.end = end
    if end_args:
        node.end_args = dict(end_args)

    for child in node.children_out_of_range():
        child.out_of_range = True
        anomalies.record(
            AnomalyKind.CHILD_OUT_OF_RANGE,
            f"{child.name} [{child.start}, {child.end}] 超出父节点 {node.name} [{node.start}, {node.end}]",
            track=node.track, timestamp=child.start,
        )


class EventTreeBuilder:
    """单个 track 的 span 树构建器"""

    def __init__(self, track: Union[int, str], anomalies: Optional[AnomalyLog] = None,
                 retain_roots: bool = True):
        self.track = track
        self.anomalies = anomalies if anomalies is not None else AnomalyLog()
        # 当前打开的节点栈，栈底为根节点
        self.open_nodes: List[EventNode] = []
        # 已完成的根节点 (append-only)，retain_roots 为 False 时根节点只交给 listener
        self.retain_roots = retain_roots
        self.completed_roots: List[EventNode] = []
        self._listeners: List[NodeListener] = []

    def add_listener(self, listener: NodeListener):
        """注册根节点完成回调"""
        self._listeners.append(listener)

    @property
    def current_node(self) -> Optional[EventNode]:
        return self.open_nodes[-1] if self.open_nodes else None

    def process(self, event: TraceEvent):
        """处理一个 trace 事件"""
        if event.is_begin:
            self._handle_begin(event)
        elif event.is_end:
            self._handle_end(event)
        elif event.is_complete:
            self._handle_complete(event)
        elif event.is_instant:
            self._handle_instant(event)
        else:
            logger.debug(f"track {self.track} 忽略 phase={event.phase} 的事件 {event.name}")

    def _handle_begin(self, event: TraceEvent):
        node = EventNode.from_begin(event)
        parent = self.current_node
        if parent is not None:
            parent.add_child(node)
        self.open_nodes.append(node)

    def _handle_end(self, event: TraceEvent):
        match_index = self._find_open_match(event)
        if match_index is None:
            self.anomalies.record(
                AnomalyKind.UNMATCHED_END,
                f"没有与 end 事件 {event.name or '<unnamed>'} 匹配的 begin 事件",
                track=self.track, timestamp=event.timestamp,
            )
            return

        # 匹配节点之上仍未关闭的后代节点强制关闭，从最内层开始
        while len(self.open_nodes) - 1 > match_index:
            orphan = self.open_nodes.pop()
            orphan.forced_close = True
            self.anomalies.record(
                AnomalyKind.FORCED_CLOSE,
                f"{orphan.name} 在父节点 {self.open_nodes[match_index].name} 结束时仍未关闭，强制关闭",
                track=self.track, timestamp=event.timestamp,
            )
            close_node(orphan, event.timestamp, self.anomalies)

        node = self.open_nodes.pop()
        close_node(node, event.timestamp, self.anomalies, event.args)
        if not self.open_nodes:
            self._complete_root(node)

    def _handle_complete(self, event: TraceEvent):
        node = EventNode.from_complete(event)
        if node.end < node.start:
            close_node(node, node.end, self.anomalies)
        parent = self.current_node
        if parent is not None:
            parent.add_child(node)
        else:
            self._complete_root(node)

    def _handle_instant(self, event: TraceEvent):
        parent = self.current_node
        if parent is None:
            logger.debug(f"track {self.track} 的 instant 事件 {event.name} 不在任何 span 内，忽略")
            return
        node = EventNode.from_begin(event)
        node.end = event.timestamp
        parent.add_child(node)

    def _find_open_match(self, event: TraceEvent) -> Optional[int]:
        """从栈顶向下查找匹配的打开节点 (LIFO)"""
        for i in range(len(self.open_nodes) - 1, -1, -1):
            if self.open_nodes[i].matches(event):
                return i
        return None

    def _complete_root(self, node: EventNode):
        logger.debug(f"track {self.track} 完成根节点 {node.name} [{node.start}, {node.end}]")
        if self.retain_roots:
            self.completed_roots.append(node)
        for listener in self._listeners:
            listener(node)

    def reset(self):
        self.open_nodes.clear()
        self.completed_roots.clear()


class AsyncSpanMatcher:
    """
    异步事件 (b/e) 匹配

    按 (category, name, id) 配对，生成已关闭的 EventNode
    """

    def __init__(self, anomalies: Optional[AnomalyLog] = None):
        self.anomalies = anomalies if anomalies is not None else AnomalyLog()
        self.open_spans: Dict[Tuple[str, str, Optional[str]], EventNode] = {}
        self._listeners: List[NodeListener] = []

    def add_listener(self, listener: NodeListener):
        self._listeners.append(listener)

    @staticmethod
    def _key(event: TraceEvent) -> Tuple[str, str, Optional[str]]:
        return (event.category, event.name, event.id)

    def process(self, event: TraceEvent):
        key = self._key(event)
        if event.is_async_begin:
            if key in self.open_spans:
                logger.debug(f"异步事件 {key} 重复开始，覆盖之前的 span")
            self.open_spans[key] = EventNode.from_begin(event)
        elif event.is_async_end:
            node = self.open_spans.pop(key, None)
            if node is None:
                self.anomalies.record(
                    AnomalyKind.UNMATCHED_END,
                    f"没有与异步 end 事件 {event.name} (id={event.id}) 匹配的 begin 事件",
                    track=event.track, timestamp=event.timestamp,
                )
                return
            close_node(node, event.timestamp, self.anomalies, event.args)
            for listener in self._listeners:
                listener(node)

    def reset(self):
        self.open_spans.clear()
