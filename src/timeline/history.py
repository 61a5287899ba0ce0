"""撤销/重做历史。

dispatch 是纯函数 reducer：(HistoryState, action) -> HistoryState。
HistoryManager 在其上包了一层单写者状态，并在每次变更后通知订阅者
（持久化层、播放器）。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

import structlog

from src.domain.models.commands import Command
from src.domain.models.timeline import Clip, TimelineState, Track
from src.infra.observability import engine_metrics
from src.timeline.commands import apply_command, inverse_command, is_invertible

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HistoryState:
    past: tuple[Command, ...] = ()
    present: TimelineState = field(default_factory=TimelineState)
    future: tuple[Command, ...] = ()


@dataclass(frozen=True)
class Execute:
    command: Command


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


@dataclass(frozen=True)
class ResetHistory:
    """批量加载：清空历史并安装新的 present，不可撤销。"""

    tracks: tuple[Track, ...] = ()
    clips: tuple[Clip, ...] = ()


HistoryAction = Union[Execute, Undo, Redo, ResetHistory]


def dispatch(state: HistoryState, action: HistoryAction) -> HistoryState:
    if isinstance(action, Execute):
        command = action.command
        present = apply_command(state.present, command)
        if not is_invertible(command):
            # 不可逆命令是检查点，之前的历史无法再回退
            return HistoryState(past=(), present=present, future=())
        return HistoryState(past=(*state.past, command), present=present, future=())

    if isinstance(action, Undo):
        if not state.past:
            return state
        command = state.past[-1]
        return HistoryState(
            past=state.past[:-1],
            present=apply_command(state.present, inverse_command(command)),
            future=(command, *state.future),
        )

    if isinstance(action, Redo):
        if not state.future:
            return state
        command = state.future[0]
        return HistoryState(
            past=(*state.past, command),
            present=apply_command(state.present, command),
            future=state.future[1:],
        )

    if isinstance(action, ResetHistory):
        return HistoryState(present=TimelineState.from_lists(action.tracks, action.clips))

    return state


HistoryListener = Callable[[TimelineState], None]


class HistoryManager:
    """单写者历史管理器。

    引擎不加锁，多线程宿主需要在外部串行化调用。
    """

    def __init__(self, state: HistoryState | None = None) -> None:
        self._state = state or HistoryState()
        self._listeners: list[HistoryListener] = []

    @property
    def state(self) -> HistoryState:
        return self._state

    @property
    def present(self) -> TimelineState:
        return self._state.present

    @property
    def can_undo(self) -> bool:
        return bool(self._state.past)

    @property
    def can_redo(self) -> bool:
        return bool(self._state.future)

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """注册 present 变更回调，返回取消订阅函数。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def execute(self, command: Command) -> TimelineState:
        checkpoint = not is_invertible(command)
        self._commit(dispatch(self._state, Execute(command)))
        engine_metrics.add_command(command.type, checkpoint=checkpoint)
        logger.debug(
            "timeline_history.execute",
            command_type=command.type,
            checkpoint=checkpoint,
            past=len(self._state.past),
        )
        return self.present

    def undo(self) -> TimelineState:
        if not self.can_undo:
            return self.present
        self._commit(dispatch(self._state, Undo()))
        engine_metrics.add_history_move("undo")
        logger.debug("timeline_history.undo", past=len(self._state.past), future=len(self._state.future))
        return self.present

    def redo(self) -> TimelineState:
        if not self.can_redo:
            return self.present
        self._commit(dispatch(self._state, Redo()))
        engine_metrics.add_history_move("redo")
        logger.debug("timeline_history.redo", past=len(self._state.past), future=len(self._state.future))
        return self.present

    def reset(self, tracks: Iterable[Track] = (), clips: Iterable[Clip] = ()) -> TimelineState:
        tracks, clips = tuple(tracks), tuple(clips)
        self._commit(dispatch(self._state, ResetHistory(tracks=tracks, clips=clips)))
        logger.info("timeline_history.reset", tracks=len(tracks), clips=len(clips))
        return self.present

    def _commit(self, state: HistoryState) -> None:
        changed = state.present is not self._state.present
        self._state = state
        if changed:
            for listener in list(self._listeners):
                listener(state.present)
