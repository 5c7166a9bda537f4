"""
Timeline 会话配置
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple, Union

from .models import TrackKind

# 60fps 下每帧的预算 (微秒)
DEFAULT_FRAME_BUDGET_MICROS = 1_000_000 // 60

KEY_STRATEGIES = ('composite', 'frame_number', 'adjacency')


@dataclass
class TimelineConfig:
    """timeline 会话配置"""
    # 线程 id -> track 名称，未出现的线程可通过 thread_name metadata 事件自动识别
    track_ids: Dict[Union[int, str], str] = field(default_factory=dict)
    required_tracks: Tuple[str, ...] = TrackKind.DEFAULT_REQUIRED
    frame_budget_micros: float = DEFAULT_FRAME_BUDGET_MICROS
    pending_frame_capacity: int = 32
    # 已完成多少帧之后仍未完成的 pending 帧视为过期
    stale_frame_limit: int = 8
    # 每个 track 的乱序容忍窗口 (事件数)，0 表示不缓冲
    look_back_window: int = 0
    anomaly_history: int = 1000
    # 保留最近完成的帧数 (用于查询)，已发出的帧不会无限累积
    frame_history: int = 1000
    frame_number_arg: str = 'frame_number'
    key_strategy: str = 'composite'

    def validate(self) -> 'TimelineConfig':
        """
        校验配置

        Raises:
            ValueError: 配置不合法
        """
        if not self.required_tracks:
            raise ValueError("required_tracks 不能为空")
        if len(set(self.required_tracks)) != len(self.required_tracks):
            raise ValueError(f"required_tracks 不能重复: {self.required_tracks}")
        if self.frame_budget_micros <= 0:
            raise ValueError(f"frame_budget_micros 必须为正数: {self.frame_budget_micros}")
        if self.pending_frame_capacity < 1:
            raise ValueError(f"pending_frame_capacity 必须 >= 1: {self.pending_frame_capacity}")
        if self.stale_frame_limit < 1:
            raise ValueError(f"stale_frame_limit 必须 >= 1: {self.stale_frame_limit}")
        if self.look_back_window < 0:
            raise ValueError(f"look_back_window 不能为负数: {self.look_back_window}")
        if self.anomaly_history < 1:
            raise ValueError(f"anomaly_history 必须 >= 1: {self.anomaly_history}")
        if self.frame_history < 0:
            raise ValueError(f"frame_history 不能为负数: {self.frame_history}")
        if self.key_strategy not in KEY_STRATEGIES:
            raise ValueError(f"不支持的 key_strategy: {self.key_strategy}。支持: {', '.join(KEY_STRATEGIES)}")
        for track in self.track_ids.values():
            if track not in self.required_tracks:
                raise ValueError(f"track_ids 中的 track {track} 不在 required_tracks 中")
        return self
