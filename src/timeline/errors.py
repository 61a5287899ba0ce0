"""时间线编辑相关异常。

命令应用（apply_command）本身从不抛异常；这里的异常只用于
命令构造层（拆分、裁剪、删除等）对调用方请求的校验。
"""

from __future__ import annotations


class TimelineError(ValueError):
    """时间线编辑错误基类。"""


class ClipNotFoundError(TimelineError):
    def __init__(self, clip_id: str) -> None:
        super().__init__(f"Clip not found: {clip_id}")
        self.clip_id = clip_id


class TrackNotFoundError(TimelineError):
    def __init__(self, track_id: str) -> None:
        super().__init__(f"Track not found: {track_id}")
        self.track_id = track_id


class InvalidEditError(TimelineError):
    """编辑参数不合法（区间为空、拆分点越界等）。"""


class NonInvertibleCommandError(TimelineError):
    """RESET 等检查点命令没有逆命令。"""
