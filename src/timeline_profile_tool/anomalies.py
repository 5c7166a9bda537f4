"""
数据异常 (anomaly) 记录

异常均为非致命的诊断信息，记录后处理流程继续
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union
import logging

logger = logging.getLogger(__name__)


class AnomalyKind:
    """异常类型"""
    UNMATCHED_END = 'unmatched-end'
    FORCED_CLOSE = 'forced-close'
    NEGATIVE_DURATION = 'negative-duration'
    CHILD_OUT_OF_RANGE = 'child-out-of-range'
    LATE_EVENT = 'late-event'
    MALFORMED_EVENT = 'malformed-event'
    DUPLICATE_SPAN = 'duplicate-span'
    UNKEYED_SPAN = 'unkeyed-span'
    FRAME_EVICTED = 'frame-evicted'
    SAMPLE_COUNT_MISMATCH = 'sample-count-mismatch'


@dataclass
class Anomaly:
    """单条异常记录"""
    kind: str
    message: str
    track: Optional[Union[int, str]] = None
    timestamp: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self):
        location = f" track={self.track}" if self.track is not None else ""
        when = f" ts={self.timestamp}" if self.timestamp is not None else ""
        return f"[{self.kind}]{location}{when} {self.message}"


class AnomalyLog:
    """
    有界的异常记录器

    只保留最近 max_history 条记录，但按类型的计数不受限制
    """

    def __init__(self, max_history: int = 1000):
        self.records = deque(maxlen=max_history)
        self.counts = Counter()
        self._listeners: List[Callable[[Anomaly], None]] = []

    def add_listener(self, listener: Callable[[Anomaly], None]):
        """注册异常通知回调"""
        self._listeners.append(listener)

    def record(self, kind: str, message: str, track=None, timestamp=None, **details) -> Anomaly:
        """
        记录一条异常

        Args:
            kind: 异常类型 (AnomalyKind)
            message: 描述
            track: 相关 track
            timestamp: 相关时间戳
            details: 附加信息

        Returns:
            Anomaly: 记录的异常
        """
        anomaly = Anomaly(kind=kind, message=message, track=track, timestamp=timestamp, details=details)
        self.records.append(anomaly)
        self.counts[kind] += 1
        logger.warning(str(anomaly))
        for listener in self._listeners:
            listener(anomaly)
        return anomaly

    def of_kind(self, kind: str) -> List[Anomaly]:
        """获取指定类型的异常记录"""
        return [a for a in self.records if a.kind == kind]

    def count(self, kind: str) -> int:
        return self.counts[kind]

    def clear(self):
        self.records.clear()
        self.counts.clear()

    def __len__(self):
        return len(self.records)

    def summary(self) -> Dict[str, int]:
        """按类型汇总的计数"""
        return dict(self.counts)
