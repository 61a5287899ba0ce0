"""高频命令（拖拽/缩放）防抖合并执行器。"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable

import structlog

from src.domain.models.commands import Batch, Command
from src.infra.config.settings import get_settings
from src.infra.observability import engine_metrics

logger = structlog.get_logger(__name__)

CommandSink = Callable[[Command], object]


class DebouncedCommandExecutor:
    """缓冲高频命令，在静默 delay_ms 之后合并成一个 BATCH 交给下游。

    每个新命令都会重置计时器，所以最终 flush 的内容一定包含最新输入。
    只缓冲了一个命令时直接下发该命令，不包一层 BATCH。
    计时器挂在 asyncio 事件循环上，调用方需要在事件循环线程内使用。
    """

    def __init__(
        self,
        execute: CommandSink,
        delay_ms: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._execute = execute
        self._delay_ms = delay_ms if delay_ms is not None else get_settings().debounce_delay_ms
        self._loop = loop
        self._pending: list[Command] = []
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> tuple[Command, ...]:
        return tuple(self._pending)

    def execute(self, command: Command) -> None:
        loop = self._resolve_loop()
        self._pending.append(command)
        self._schedule(loop)

    def execute_batch(self, commands: Iterable[Command]) -> None:
        loop = self._resolve_loop()
        self._pending.extend(commands)
        self._schedule(loop)

    def flush(self) -> None:
        """立即下发缓冲区（计时器到期时也走这里）。"""
        self._clear_timer()
        if not self._pending:
            return

        buffered, self._pending = self._pending, []
        command = buffered[0] if len(buffered) == 1 else Batch(commands=tuple(buffered))
        engine_metrics.observe_flush_size(len(buffered))
        logger.debug("debounced_executor.flush", size=len(buffered))
        self._execute(command)

    def cancel(self) -> None:
        """丢弃缓冲区和计时器，不下发任何命令。"""
        self._clear_timer()
        if self._pending:
            logger.debug("debounced_executor.cancelled", dropped=len(self._pending))
        self._pending = []

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        # 没有事件循环时在入队前报错，缓冲区保持不变
        return self._loop or asyncio.get_running_loop()

    def _schedule(self, loop: asyncio.AbstractEventLoop) -> None:
        self._clear_timer()
        self._handle = loop.call_later(self._delay_ms / 1000.0, self.flush)

    def _clear_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
