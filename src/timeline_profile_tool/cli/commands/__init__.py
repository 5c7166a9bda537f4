"""
CLI命令模块
"""

from .frames import FramesCommand
from .profile import ProfileCommand

__all__ = ['FramesCommand', 'ProfileCommand']
