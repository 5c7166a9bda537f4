"""
CPU profile 调用树构建

输入为 runtime 返回的 profile 响应:
    {sampleCount, samplePeriod, stackFrames: {id: {name, category, parent}}, traceEvents: [{sf: id, ...}]}
"""

import json
from typing import Any, Dict, Iterator, List, Optional, Union
import logging

from ..anomalies import AnomalyKind, AnomalyLog
from .stack_frame import CpuStackFrame

logger = logging.getLogger(__name__)

NATIVE_NAME = '[Native]'
TRUNCATED_NAME = '[Truncated]'

ROOT_ID = 'cpuProfile'
NATIVE_ROOT_ID = 'nativeRoot'
NATIVE_TRUNCATED_ROOT_ID = 'nativeTruncatedRoot'


class ProfileConstructionError(ValueError):
    """profile 数据不完整或不一致，无法构建可靠的调用树"""


class SampleCountMismatchError(ProfileConstructionError):
    def __init__(self, sample_count: int, root_count: int):
        super().__init__(
            f"SampleCount from response ({sample_count}) != sample count from root ({root_count})"
        )
        self.sample_count = sample_count
        self.root_count = root_count


class UnresolvedParentError(ProfileConstructionError):
    def __init__(self, frame_ids: List[str]):
        super().__init__(f"栈帧引用了不存在的 parent: {frame_ids}")
        self.frame_ids = frame_ids


class UnknownStackFrameError(ProfileConstructionError):
    def __init__(self, frame_id):
        super().__init__(f"采样引用了不存在的栈帧: {frame_id!r}")
        self.frame_id = frame_id


class CpuProfileData:
    """一次 CPU profile 请求的调用树"""

    # 响应 JSON 中的字段名
    name_key = 'name'
    category_key = 'category'
    parent_key = 'parent'
    stack_frame_id_key = 'sf'

    def __init__(self, response: Dict[str, Any], duration: Optional[float] = None,
                 anomalies: Optional[AnomalyLog] = None):
        """
        Args:
            response: profile 响应字典
            duration: profile 覆盖的时长 (微秒)
            anomalies: 异常记录器，样本数不一致时会先记录再抛出异常

        Raises:
            ProfileConstructionError: 响应不完整或样本数不一致
        """
        if not isinstance(response, dict):
            raise ProfileConstructionError(f"profile 响应不是字典类型: {type(response).__name__}")
        try:
            self.sample_count = int(response['sampleCount'])
            self.sample_period = int(response.get('samplePeriod') or 0)
            self.stack_frames_json = response['stackFrames']
            self.stack_trace_events = response.get('traceEvents') or []
        except (KeyError, TypeError, ValueError) as e:
            raise ProfileConstructionError(f"profile 响应缺少必需字段: {e}") from e
        if not isinstance(self.stack_frames_json, dict):
            raise ProfileConstructionError("stackFrames 必须是 id -> 栈帧描述 的映射")

        self.response = response
        self.duration = duration
        self._arena: Dict[str, CpuStackFrame] = {}
        self.cpu_profile_root = CpuStackFrame(ROOT_ID, 'all', 'Dart', self._arena)
        self.stack_frames: Dict[str, CpuStackFrame] = {}

        self._process_stack_frames()
        self._set_exclusive_sample_counts()

        root_count = self.cpu_profile_root.inclusive_sample_count
        if root_count != self.sample_count:
            if anomalies is not None:
                anomalies.record(
                    AnomalyKind.SAMPLE_COUNT_MISMATCH,
                    f"sampleCount={self.sample_count}, root inclusive={root_count}",
                )
            raise SampleCountMismatchError(self.sample_count, root_count)

        logger.info(f"构建 CPU profile: {len(self.stack_frames)} 个栈帧, {self.sample_count} 个采样")

    @classmethod
    def from_json(cls, data: Union[str, bytes, Dict[str, Any]], **kwargs) -> 'CpuProfileData':
        if isinstance(data, (str, bytes)):
            data = json.loads(data)
        return cls(data, **kwargs)

    def _leaf_ids(self) -> List[Any]:
        return [event.get(self.stack_frame_id_key) for event in self.stack_trace_events
                if isinstance(event, dict)]

    def _process_stack_frames(self):
        native_root = CpuStackFrame(NATIVE_ROOT_ID, NATIVE_NAME, 'Dart', self._arena)
        native_truncated_root = CpuStackFrame(NATIVE_TRUNCATED_ROOT_ID, TRUNCATED_NAME, 'Dart', self._arena)

        # 按原始映射的插入顺序单遍处理，parent 尚未出现的栈帧延后重试
        deferred = []
        for frame_id, descriptor in self.stack_frames_json.items():
            if not self._process_stack_frame(frame_id, descriptor, native_root, native_truncated_root):
                deferred.append((frame_id, descriptor))

        while deferred:
            remaining = [
                (frame_id, descriptor) for frame_id, descriptor in deferred
                if not self._process_stack_frame(frame_id, descriptor, native_root, native_truncated_root)
            ]
            if len(remaining) == len(deferred):
                raise UnresolvedParentError([frame_id for frame_id, _ in remaining])
            deferred = remaining

        if native_truncated_root.children:
            native_root.add_child(native_truncated_root)

            # 移到 nativeTruncatedRoot 之后，"all" 下面可能留下没有子节点的 "[Truncated]"，将其移除
            sampled = {str(leaf_id) for leaf_id in self._leaf_ids() if leaf_id is not None}
            for frame in list(self.cpu_profile_root.children):
                if frame.name == TRUNCATED_NAME and not frame.children and frame.id not in sampled:
                    self.cpu_profile_root.remove_child(frame)
                    self.stack_frames.pop(frame.id, None)
        if native_root.children:
            self.cpu_profile_root.add_child(native_root)

    def _process_stack_frame(self, frame_id, descriptor, native_root: CpuStackFrame,
                             native_truncated_root: CpuStackFrame) -> bool:
        """挂载单个栈帧，parent 尚未出现时返回 False"""
        if not isinstance(descriptor, dict):
            raise ProfileConstructionError(f"栈帧 {frame_id!r} 的描述不是字典类型")
        frame_id = str(frame_id)
        if frame_id in self._arena:
            raise ProfileConstructionError(f"栈帧 id 重复或与保留 id 冲突: {frame_id!r}")

        parent_id = descriptor.get(self.parent_key)
        parent = None
        if parent_id is not None:
            parent = self.stack_frames.get(str(parent_id))
            if parent is None:
                return False

        name = descriptor.get(self.name_key) or ''
        stack_frame = CpuStackFrame(frame_id, name, descriptor.get(self.category_key) or '', self._arena)
        if name.startswith(NATIVE_NAME):
            if parent is not None and parent.name == TRUNCATED_NAME:
                parent = native_truncated_root
            elif parent is None or not parent.is_native:
                parent = native_root
            stack_frame.is_native = True

        self.stack_frames[frame_id] = stack_frame
        if parent is None:
            # 新采样的根，挂到 "all" 下
            self.cpu_profile_root.add_child(stack_frame)
        else:
            parent.add_child(stack_frame)
        return True

    def _set_exclusive_sample_counts(self):
        for leaf_id in self._leaf_ids():
            frame = self.stack_frames.get(str(leaf_id)) if leaf_id is not None else None
            if frame is None:
                raise UnknownStackFrameError(leaf_id)
            frame.add_sample()
        for frame in self.cpu_profile_root.iter_subtree():
            frame.mark_counted()

    @property
    def root(self) -> CpuStackFrame:
        return self.cpu_profile_root

    def iter_frames(self) -> Iterator[CpuStackFrame]:
        """前序遍历整棵树 (包含根)"""
        return self.cpu_profile_root.iter_subtree()

    def sample_duration_micros(self, frame: CpuStackFrame) -> float:
        """按采样周期估算栈帧的耗时"""
        return frame.inclusive_sample_count * self.sample_period

    def to_string_deep(self) -> str:
        return self.cpu_profile_root.to_string_deep()

    def to_json(self) -> Dict[str, Any]:
        """原始 profile 响应 (供导出使用)"""
        return self.response
