"""Core data structures shared by the registry, scheduler and manager."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

# Called as factory(require, exports) with a ModuleRequire and a mutable dict.
Factory = Callable[..., Any]


class StatusError(RuntimeError):
    """Raised when a module record is moved through an illegal transition."""


class ModuleStatus(IntEnum):
    """Lifecycle of a module record."""

    DEFINED = 1
    COMPILED = 2
    INITIALIZED = 3
    BROKEN = 4


_TRANSITIONS: dict[ModuleStatus, frozenset[ModuleStatus]] = {
    ModuleStatus.DEFINED: frozenset({ModuleStatus.COMPILED}),
    ModuleStatus.COMPILED: frozenset({ModuleStatus.INITIALIZED, ModuleStatus.BROKEN}),
    ModuleStatus.INITIALIZED: frozenset(),
    ModuleStatus.BROKEN: frozenset(),
}


class Occupancy(Enum):
    """What the registry knows about an identifier."""

    UNKNOWN = "unknown"
    LOADING = "loading"
    REGISTERED = "registered"


class Readiness(Enum):
    """Placeholders returned by ``require`` when no exports are available."""

    UNKNOWN = "unknown"
    NOT_READY = "not-ready"

    def __repr__(self) -> str:
        return f"<{self.value}>"


@dataclass(eq=False)
class ModuleRecord:
    """A registered module and its lifecycle state."""

    id: str | None
    factory: Factory
    dependencies: list[str]
    exports: Any = None
    status: ModuleStatus = ModuleStatus.DEFINED

    @property
    def label(self) -> str:
        return self.id if self.id is not None else "<anonymous>"

    @property
    def is_ready(self) -> bool:
        return self.status is ModuleStatus.INITIALIZED

    def advance(self, status: ModuleStatus) -> None:
        """Move to ``status``; only forward lifecycle steps are accepted."""

        if status not in _TRANSITIONS[self.status]:
            raise StatusError(
                f"Module '{self.label}' cannot move from {self.status.name} to {status.name}."
            )
        self.status = status


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    """Tagged registry answer: unknown, loading, or registered with its record."""

    occupancy: Occupancy
    record: ModuleRecord | None = None


UNKNOWN_ENTRY = RegistryEntry(Occupancy.UNKNOWN)
LOADING_ENTRY = RegistryEntry(Occupancy.LOADING)


__all__ = [
    "Factory",
    "LOADING_ENTRY",
    "ModuleRecord",
    "ModuleStatus",
    "Occupancy",
    "Readiness",
    "RegistryEntry",
    "StatusError",
    "UNKNOWN_ENTRY",
]
