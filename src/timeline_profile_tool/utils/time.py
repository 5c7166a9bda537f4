"""
时间与比例格式化工具函数
"""

from datetime import datetime
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def micros_to_ms(micros: float) -> float:
    return micros / 1000.0


def ms_text(micros: float, fraction_digits: int = 1) -> str:
    """
    将微秒格式化为毫秒文本

    Args:
        micros: 微秒
        fraction_digits: 小数位数

    Returns:
        str: 例如 "16.7 ms"
    """
    return f"{micros_to_ms(micros):.{fraction_digits}f} ms"


def percent2(ratio: float) -> str:
    """比例格式化为两位小数的百分比"""
    return f"{ratio * 100:.2f}%"


def micros_to_readable_timestamp(micros: float, base_time_nanoseconds: Optional[int] = None) -> str:
    """
    将 trace 中的微秒时间戳转换为可读时间 (YYYY-MM-DD HH:MM:SS.ffffff)

    Args:
        micros: trace 时间戳 (微秒)
        base_time_nanoseconds: 基准时间 (纳秒)，为空时 micros 视为 epoch 时间

    Returns:
        str: 格式化的时间字符串
    """
    try:
        total_nanoseconds = (base_time_nanoseconds or 0) + int(micros * 1000)
        dt = datetime.fromtimestamp(total_nanoseconds / 1_000_000_000.0)
        return dt.strftime("%Y-%m-%d %H:%M:%S.%f")
    except (OverflowError, OSError, ValueError) as e:
        logger.warning(f"时间戳转换失败: {e}")
        return f"Invalid timestamp: {micros}"
