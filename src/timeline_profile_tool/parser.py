"""
Timeline trace / CPU profile JSON 解析器
"""

import json
import gzip
from pathlib import Path
from typing import Dict, List, Any, Optional, Union, Iterable
import logging

from .models import TraceEvent

logger = logging.getLogger(__name__)


def _first_present(event_data: Dict[str, Any], keys, default=None):
    """按顺序返回第一个存在的字段值"""
    for key in keys:
        if key in event_data and event_data[key] is not None:
            return event_data[key]
    return default


def parse_trace_event(event_data: Any) -> Optional[TraceEvent]:
    """
    解析单个 trace 事件

    同时支持 Chrome trace 字段 (ph/cat/tid/ts) 和完整字段名 (phase/category/track/timestamp)

    Args:
        event_data: 原始事件数据字典

    Returns:
        TraceEvent: 解析后的事件对象，如果解析失败返回 None
    """
    if not isinstance(event_data, dict):
        logger.warning(f"解析事件失败: 事件不是字典类型 ({type(event_data).__name__})")
        return None

    try:
        phase = _first_present(event_data, ('ph', 'phase'), '')
        name = _first_present(event_data, ('name',), '')
        category = _first_present(event_data, ('cat', 'category'), '')
        track = _first_present(event_data, ('tid', 'track', 'track_id'), 0)
        raw_ts = _first_present(event_data, ('ts', 'timestamp', 'timestamp_micros'))
        if raw_ts is None:
            raise ValueError("缺少时间戳")
        timestamp = float(raw_ts)

        args = event_data.get('args') or {}
        if not isinstance(args, dict):
            raise ValueError(f"args 不是字典类型: {args!r}")

        raw_dur = event_data.get('dur')
        duration = float(raw_dur) if raw_dur is not None else None
        event_id = event_data.get('id')

        return TraceEvent(
            phase=str(phase),
            name=str(name),
            category=str(category),
            track=track,
            timestamp=timestamp,
            args=dict(args),
            pid=event_data.get('pid'),
            id=str(event_id) if event_id is not None else None,
            duration=duration,
        )

    except (TypeError, ValueError) as e:
        logger.warning(f"解析事件失败: {e}")
        return None


def parse_trace_events(raw_events: Iterable[Any]) -> List[TraceEvent]:
    """
    批量解析 trace 事件，丢弃解析失败的事件

    Args:
        raw_events: 原始事件列表

    Returns:
        List[TraceEvent]: 解析成功的事件列表 (保持原始顺序)
    """
    events = []
    dropped = 0
    for raw_event in raw_events:
        event = parse_trace_event(raw_event)
        if event is None:
            dropped += 1
            continue
        events.append(event)
    if dropped:
        logger.warning(f"共丢弃 {dropped} 个无法解析的事件")
    return events


def load_json_document(file_path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """
    读取 JSON 文件，支持 .gz 压缩

    Args:
        file_path: JSON 文件路径

    Returns:
        Dict[str, Any]: 文件内容，读取失败返回 None
    """
    file_path = Path(file_path)
    if not file_path.exists():
        logger.error(f"文件不存在: {file_path}")
        return None

    try:
        open_func = gzip.open if file_path.suffix == '.gz' else open
        with open_func(file_path, 'rt', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"解析文件出错: {e}", exc_info=True)
        return None

    if isinstance(data, list):
        # 裸事件数组也是合法的 trace 格式
        return {'traceEvents': data}
    if not isinstance(data, dict):
        logger.error(f"文件内容不是 JSON 对象: {file_path}")
        return None
    return data


def load_trace_file(file_path: Union[str, Path]) -> Optional[List[Dict[str, Any]]]:
    """
    读取 timeline 导出文件中的原始 trace 事件

    Args:
        file_path: JSON 文件路径

    Returns:
        List[Dict[str, Any]]: 原始 trace 事件列表
    """
    data = load_json_document(file_path)
    if data is None:
        return None
    raw_events = data.get('traceEvents')
    if not isinstance(raw_events, list):
        logger.error(f"文件中没有 traceEvents 列表: {file_path}")
        return None
    logger.info(f"读取到 {len(raw_events)} 个原始事件")
    return raw_events


def load_cpu_profile_response(file_path: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """
    读取 CPU profile 响应

    支持 timeline 导出文件 ({"traceEvents": ..., "cpuProfile": {...}}) 和裸 profile 响应

    Args:
        file_path: JSON 文件路径

    Returns:
        Dict[str, Any]: profile 响应字典
    """
    data = load_json_document(file_path)
    if data is None:
        return None
    if 'stackFrames' in data:
        return data
    response = data.get('cpuProfile')
    if not response:
        logger.error(f"文件中没有 CPU profile 数据: {file_path}")
        return None
    return response
