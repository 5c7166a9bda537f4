"""
Timeline Profile Tool Package
"""

from .models import TraceEvent, Phase, TrackKind
from .parser import parse_trace_event, parse_trace_events
from .config import TimelineConfig
from .anomalies import Anomaly, AnomalyKind, AnomalyLog
from .timeline import EventNode, EventTreeBuilder, FrameAssembler, TimelineFrame, TimelineSession
from .cpu_profile import CpuProfileData, CpuStackFrame, SampleCountMismatchError

__all__ = [
    'TraceEvent',
    'Phase',
    'TrackKind',
    'parse_trace_event',
    'parse_trace_events',
    'TimelineConfig',
    'Anomaly',
    'AnomalyKind',
    'AnomalyLog',
    'EventNode',
    'EventTreeBuilder',
    'FrameAssembler',
    'TimelineFrame',
    'TimelineSession',
    'CpuProfileData',
    'CpuStackFrame',
    'SampleCountMismatchError',
]
