"""
帧统计相关工具
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..timeline.frame import TimelineFrame


@dataclass
class TrackStatistics:
    """单个 track 的耗时统计 (微秒)"""
    track: str
    count: int
    mean_duration: float
    p90_duration: float
    max_duration: float

    def __str__(self):
        return (f"TrackStatistics({self.track}, count={self.count}, mean={self.mean_duration:.1f}, "
                f"p90={self.p90_duration:.1f}, max={self.max_duration:.1f})")


@dataclass
class FrameStatistics:
    """帧统计信息"""
    frame_count: int
    janky_count: int
    budget_micros: Optional[float]
    tracks: Dict[str, TrackStatistics] = field(default_factory=dict)

    @property
    def janky_ratio(self) -> float:
        if self.frame_count == 0:
            return 0.0
        return self.janky_count / self.frame_count

    def __str__(self):
        return (f"FrameStatistics(frames={self.frame_count}, janky={self.janky_count} "
                f"({self.janky_ratio * 100:.1f}%))")


def calculate_track_statistics(track: str, durations: Sequence[float]) -> Optional[TrackStatistics]:
    if not durations:
        return None
    values = np.asarray(durations, dtype=float)
    return TrackStatistics(
        track=track,
        count=int(values.size),
        mean_duration=float(values.mean()),
        p90_duration=float(np.percentile(values, 90)),
        max_duration=float(values.max()),
    )


def calculate_frame_statistics(frames: List[TimelineFrame]) -> FrameStatistics:
    """
    计算帧统计信息

    Args:
        frames: 已完成的帧列表

    Returns:
        FrameStatistics: 统计结果
    """
    if not frames:
        return FrameStatistics(frame_count=0, janky_count=0, budget_micros=None)

    stats = FrameStatistics(
        frame_count=len(frames),
        janky_count=sum(1 for frame in frames if frame.is_over_budget),
        budget_micros=frames[0].budget_micros,
    )

    tracks = frames[0].required_tracks
    for track in tracks:
        durations = [frame.track_duration(track) for frame in frames if frame.track_duration(track) is not None]
        track_stats = calculate_track_statistics(track, durations)
        if track_stats is not None:
            stats.tracks[track] = track_stats

    total = [frame.duration for frame in frames if frame.duration is not None]
    total_stats = calculate_track_statistics('total', total)
    if total_stats is not None:
        stats.tracks['total'] = total_stats

    return stats
