"""
数据展示阶段

把帧列表和 CPU profile 调用树转换为表格，输出 JSON / XLSX
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import logging

import pandas as pd

from ..cpu_profile.profile_data import CpuProfileData
from ..timeline.frame import TimelineFrame
from ..utils.time import micros_to_ms
from .statistics import FrameStatistics

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ('json', 'xlsx')


def frames_to_rows(frames: List[TimelineFrame]) -> List[Dict[str, Any]]:
    """
    将帧转换为表格行 (耗时单位: ms)

    Args:
        frames: 已完成的帧列表

    Returns:
        List[Dict[str, Any]]: 每帧一行
    """
    rows = []
    for frame in frames:
        row = {
            'frame_id': frame.id,
            'start_us': frame.start,
            'end_us': frame.end,
            'duration_ms': micros_to_ms(frame.duration) if frame.duration is not None else None,
        }
        for track in frame.required_tracks:
            duration = frame.track_duration(track)
            row[f'{track}_ms'] = micros_to_ms(duration) if duration is not None else None
        row['over_budget'] = frame.is_over_budget
        rows.append(row)
    return rows


def frames_to_dataframe(frames: List[TimelineFrame]) -> pd.DataFrame:
    return pd.DataFrame(frames_to_rows(frames))


def cpu_profile_to_rows(profile: CpuProfileData, max_depth: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    将调用树展开为表格行 (前序遍历)

    Args:
        profile: CPU profile
        max_depth: 最大层级，None 表示不限制

    Returns:
        List[Dict[str, Any]]: 每个栈帧一行
    """
    rows = []
    stack = [(profile.cpu_profile_root, 0)]
    while stack:
        frame, level = stack.pop()
        if max_depth is not None and level > max_depth:
            continue
        rows.append({
            'id': frame.id,
            'name': frame.name,
            'category': frame.category,
            'level': level,
            'native': frame.is_native,
            'exclusive_samples': frame.exclusive_sample_count,
            'inclusive_samples': frame.inclusive_sample_count,
            'cpu_ratio': frame.cpu_consumption_ratio,
            'inclusive_ms': micros_to_ms(profile.sample_duration_micros(frame)),
        })
        for child in reversed(frame.children):
            stack.append((child, level + 1))
    return rows


def cpu_profile_to_dataframe(profile: CpuProfileData, max_depth: Optional[int] = None) -> pd.DataFrame:
    return pd.DataFrame(cpu_profile_to_rows(profile, max_depth))


def frame_statistics_to_rows(stats: FrameStatistics) -> List[Dict[str, Any]]:
    rows = []
    for track, track_stats in stats.tracks.items():
        rows.append({
            'track': track,
            'count': track_stats.count,
            'mean_ms': micros_to_ms(track_stats.mean_duration),
            'p90_ms': micros_to_ms(track_stats.p90_duration),
            'max_ms': micros_to_ms(track_stats.max_duration),
        })
    return rows


def to_markdown(rows: List[Dict[str, Any]], float_format: str = '.3f') -> str:
    """将表格行格式化为 markdown 表格"""
    if not rows:
        return ''
    columns = list(rows[0].keys())

    def _cell(value):
        if isinstance(value, float):
            return format(value, float_format)
        return '' if value is None else str(value)

    lines = [
        '| ' + ' | '.join(columns) + ' |',
        '| ' + ' | '.join('---' for _ in columns) + ' |',
    ]
    for row in rows:
        lines.append('| ' + ' | '.join(_cell(row.get(col)) for col in columns) + ' |')
    return '\n'.join(lines)


def generate_output_files(rows: List[Dict[str, Any]], output_dir: str, base_name: str,
                          formats: Sequence[str] = OUTPUT_FORMATS) -> List[Path]:
    """
    生成输出文件 (JSON 和 XLSX)

    Args:
        rows: 数据行列表
        output_dir: 输出目录
        base_name: 基础文件名
        formats: 输出格式

    Returns:
        List[Path]: 生成的文件路径列表
    """
    if not rows:
        logger.warning("没有数据可供输出")
        return []

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    generated_files = []

    if 'json' in formats:
        json_file = output_path / f"{base_name}.json"
        with open(json_file, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False, default=str)
        print(f"JSON 文件已生成: {json_file}")
        generated_files.append(json_file)

    if 'xlsx' in formats:
        df = pd.DataFrame(rows)
        xlsx_file = output_path / f"{base_name}.xlsx"
        with pd.ExcelWriter(xlsx_file, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name=base_name[:31], index=False)
        print(f"Excel 文件已生成: {xlsx_file}")
        generated_files.append(xlsx_file)

    return generated_files
