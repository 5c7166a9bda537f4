"""
分析与展示模块
"""

from .statistics import FrameStatistics, TrackStatistics, calculate_frame_statistics
from .presenter import (
    frames_to_rows,
    frames_to_dataframe,
    cpu_profile_to_rows,
    cpu_profile_to_dataframe,
    frame_statistics_to_rows,
    to_markdown,
    generate_output_files,
)

__all__ = [
    'FrameStatistics',
    'TrackStatistics',
    'calculate_frame_statistics',
    'frames_to_rows',
    'frames_to_dataframe',
    'cpu_profile_to_rows',
    'cpu_profile_to_dataframe',
    'frame_statistics_to_rows',
    'to_markdown',
    'generate_output_files',
]
