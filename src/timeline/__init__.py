"""时间线命令引擎

提供命令代数、撤销/重做历史、轨道排序分配与交互几何计算。
"""

from src.timeline.commands import apply_command, inverse_command, is_invertible, iter_commands
from src.timeline.errors import (
    ClipNotFoundError,
    InvalidEditError,
    NonInvertibleCommandError,
    TimelineError,
    TrackNotFoundError,
)
from src.timeline.geometry import TimelineGeometry
from src.timeline.history import HistoryManager, HistoryState, dispatch
from src.timeline.track_allocator import (
    TRACK_BANDS,
    get_next_available_index,
    insert_track_commands,
    shift_tracks_for_new_track,
)

__all__ = [
    "apply_command",
    "inverse_command",
    "is_invertible",
    "iter_commands",
    "dispatch",
    "HistoryManager",
    "HistoryState",
    "TimelineGeometry",
    "TRACK_BANDS",
    "get_next_available_index",
    "insert_track_commands",
    "shift_tracks_for_new_track",
    "TimelineError",
    "ClipNotFoundError",
    "TrackNotFoundError",
    "InvalidEditError",
    "NonInvertibleCommandError",
]
