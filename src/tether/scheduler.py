"""Waiting-set bookkeeping and the cooperative task queue that drives resumption."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .types import ModuleRecord

LOGGER = logging.getLogger(__name__)


@dataclass(eq=False)
class WaitCounter:
    """Number of dependencies a compiled module is still waiting for.

    One counter is shared by every waiting entry created for the same
    compilation.
    """

    remaining: int

    def decrement(self) -> int:
        self.remaining -= 1
        return self.remaining


@dataclass(frozen=True, eq=False)
class WaitingEntry:
    module: ModuleRecord
    counter: WaitCounter


class WaitingSet:
    """Blocking identifier -> FIFO list of modules hanging on it."""

    def __init__(self) -> None:
        self._lists: dict[str, deque[WaitingEntry]] = {}

    def add(self, identifier: str, entry: WaitingEntry) -> None:
        self._lists.setdefault(identifier, deque()).append(entry)

    def has(self, identifier: str | None) -> bool:
        return identifier is not None and identifier in self._lists

    def pop(self, identifier: str) -> WaitingEntry | None:
        """Remove and return the oldest entry for ``identifier``, if any."""

        entries = self._lists.get(identifier)
        if not entries:
            return None
        return entries.popleft()

    def prune(self, identifier: str) -> None:
        """Drop the list for ``identifier`` once it has been emptied."""

        entries = self._lists.get(identifier)
        if entries is not None and not entries:
            del self._lists[identifier]

    def entries(self, identifier: str) -> list[WaitingEntry]:
        return list(self._lists.get(identifier, ()))

    def identifiers(self) -> list[str]:
        return list(self._lists)

    def clear(self) -> None:
        self._lists.clear()

    def __iter__(self) -> Iterator[tuple[str, list[WaitingEntry]]]:
        for identifier, entries in list(self._lists.items()):
            yield identifier, list(entries)

    def __len__(self) -> int:
        return len(self._lists)


@dataclass(frozen=True)
class TaskFailure:
    """An exception raised by one scheduled task."""

    task: str
    error: Exception


@dataclass(eq=False)
class _Task:
    callback: Callable[..., Any]
    args: tuple[Any, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        name = getattr(self.callback, "__qualname__", None) or repr(self.callback)
        if self.args:
            return f"{name}{self.args!r}"
        return name

    def __call__(self) -> Any:
        return self.callback(*self.args)


class Scheduler:
    """FIFO work queue drained one task per tick.

    A task's exception never affects the tasks queued behind it: ``run``
    logs and records it, then moves on to the next tick.
    """

    def __init__(self, max_failures: int = 100) -> None:
        self._queue: deque[_Task] = deque()
        # Most recent failures across runs; older ones are dropped.
        self._failures: deque[TaskFailure] = deque(maxlen=max_failures)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule ``callback(*args)`` for a later tick."""

        self._queue.append(_Task(callback, args))

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def failures(self) -> list[TaskFailure]:
        return list(self._failures)

    def run_once(self) -> bool:
        """Run a single task, letting its exception propagate.

        Returns ``False`` when there was nothing to run.
        """

        if not self._queue:
            return False
        task = self._queue.popleft()
        task()
        return True

    def run(self, max_ticks: int | None = None) -> list[TaskFailure]:
        """Drain the queue, isolating failures per task."""

        failures: list[TaskFailure] = []
        ticks = 0
        while self._queue:
            if max_ticks is not None and ticks >= max_ticks:
                LOGGER.warning("Stopping after %s tick(s); %s task(s) pending", ticks, self.pending)
                break
            task = self._queue.popleft()
            ticks += 1
            try:
                task()
            except Exception as exc:
                LOGGER.exception("Scheduled task %s failed", task.name)
                failure = TaskFailure(task=task.name, error=exc)
                failures.append(failure)
                self._failures.append(failure)
        return failures

    def clear(self) -> None:
        self._queue.clear()
        self._failures.clear()


__all__ = ["Scheduler", "TaskFailure", "WaitCounter", "WaitingEntry", "WaitingSet"]
