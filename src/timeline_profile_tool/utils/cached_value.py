"""
只计算一次的缓存值
"""

from typing import Callable, Generic, TypeVar

T = TypeVar('T')

_UNCOMPUTED = object()


class CachedValue(Generic[T]):
    """
    显式的 "未计算 / 已计算(value)" 包装

    第一次 get 时调用 compute 并永久缓存，之后不会失效。
    依赖的数据在第一次读取后若被修改，缓存值会过期，这是调用方需要保证的前提。
    """

    __slots__ = ('_value',)

    def __init__(self):
        self._value = _UNCOMPUTED

    @property
    def is_computed(self) -> bool:
        return self._value is not _UNCOMPUTED

    def get(self, compute: Callable[[], T]) -> T:
        if self._value is _UNCOMPUTED:
            self._value = compute()
        return self._value

    def peek(self):
        """返回已缓存的值，未计算时返回 None"""
        return None if self._value is _UNCOMPUTED else self._value

    def __repr__(self):
        if self._value is _UNCOMPUTED:
            return 'CachedValue(<uncomputed>)'
        return f'CachedValue({self._value!r})'
