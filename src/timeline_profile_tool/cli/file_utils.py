"""
文件处理工具模块
"""

import os
from pathlib import Path

SUPPORTED_SUFFIXES = ('.json', '.json.gz')


def validate_input_file(file_path: str) -> Path:
    """
    校验输入文件

    Args:
        file_path: 文件路径

    Returns:
        Path: 文件路径对象

    Raises:
        ValueError: 文件不存在或格式不支持
    """
    if not os.path.exists(file_path):
        raise ValueError(f"文件不存在: {file_path}")
    if not os.path.isfile(file_path):
        raise ValueError(f"路径不是文件: {file_path}")
    if not file_path.lower().endswith(SUPPORTED_SUFFIXES):
        raise ValueError(f"文件不是 JSON 格式: {file_path}")
    return Path(file_path)


def output_base_name(file_path: Path, suffix: str) -> str:
    """根据输入文件名生成输出文件基础名"""
    name = file_path.name
    for ext in SUPPORTED_SUFFIXES:
        if name.lower().endswith(ext):
            name = name[:-len(ext)]
            break
    return f"{name}_{suffix}"
