# -*- coding: utf-8 -*-
"""
CLI验证器模块
"""

from typing import Dict, List, Optional

from ..analyzer.presenter import OUTPUT_FORMATS
from ..config import TimelineConfig
from ..models import TrackKind


def parse_output_formats(format_spec: str) -> List[str]:
    """
    解析输出格式

    Args:
        format_spec: 逗号分隔的格式，如 "json,xlsx"

    Returns:
        List[str]: 格式列表

    Raises:
        ValueError: 包含不支持的格式
    """
    if not format_spec or not format_spec.strip():
        return []
    formats = [fmt.strip() for fmt in format_spec.split(',') if fmt.strip()]
    for fmt in formats:
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"不支持的输出格式: {fmt}。支持的格式: {', '.join(OUTPUT_FORMATS)}")
    if len(formats) != len(set(formats)):
        raise ValueError("输出格式不能重复")
    return formats


def parse_thread_id(value: Optional[str]):
    """线程 id 尽量转为 int，trace 中的 tid 既可能是数字也可能是字符串"""
    if value is None:
        return None
    value = value.strip()
    try:
        return int(value)
    except ValueError:
        return value


def build_timeline_config(args) -> TimelineConfig:
    """
    根据命令行参数构建并校验 TimelineConfig

    Raises:
        ValueError: 参数不合法
    """
    track_ids: Dict = {}
    ui_tid = parse_thread_id(getattr(args, 'ui_tid', None))
    raster_tid = parse_thread_id(getattr(args, 'raster_tid', None))
    if ui_tid is not None:
        track_ids[ui_tid] = TrackKind.UI
    if raster_tid is not None:
        if raster_tid in track_ids:
            raise ValueError(f"UI 线程与 raster 线程不能相同: {raster_tid}")
        track_ids[raster_tid] = TrackKind.RASTER

    if args.budget_ms <= 0:
        raise ValueError(f"帧预算必须为正数: {args.budget_ms}")

    config = TimelineConfig(
        track_ids=track_ids,
        frame_budget_micros=args.budget_ms * 1000.0,
        pending_frame_capacity=args.capacity,
        stale_frame_limit=args.stale_limit,
        look_back_window=args.look_back,
        key_strategy=args.key_strategy,
    )
    return config.validate()
