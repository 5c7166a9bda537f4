"""
CPU profile 调用树模块
"""

from .stack_frame import CpuStackFrame, StackFrameState
from .profile_data import (
    CpuProfileData,
    ProfileConstructionError,
    SampleCountMismatchError,
    UnresolvedParentError,
    UnknownStackFrameError,
)

__all__ = [
    'CpuStackFrame',
    'StackFrameState',
    'CpuProfileData',
    'ProfileConstructionError',
    'SampleCountMismatchError',
    'UnresolvedParentError',
    'UnknownStackFrameError',
]
