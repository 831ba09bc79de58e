from __future__ import annotations

import asyncio
from collections import deque
from typing import Protocol

from nodegate.models.admission import SetNodeFailureReasonCommand, SetNodeOnboardingStateCommand

Command = SetNodeOnboardingStateCommand | SetNodeFailureReasonCommand


class QueueError(RuntimeError):
    pass


class CommandQueue(Protocol):
    async def queue_message(self, command: Command) -> None: ...


class InMemoryCommandQueue:
    """Bounded FIFO buffer of node commands awaiting a broker consumer."""

    def __init__(self, maxsize: int = 1024) -> None:
        self._lock = asyncio.Lock()
        self._maxsize = max(1, maxsize)
        self._items: deque[Command] = deque()

    async def queue_message(self, command: Command) -> None:
        async with self._lock:
            if len(self._items) >= self._maxsize:
                raise QueueError(f"command_queue_full: maxsize={self._maxsize}")
            self._items.append(command)

    async def snapshot(self) -> list[Command]:
        async with self._lock:
            return list(self._items)
