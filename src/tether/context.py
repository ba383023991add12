"""Dependency lookup capability passed to module factories."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tether.manager import ModuleManager
    from tether.types import ModuleRecord


@dataclass(frozen=True, slots=True)
class ModuleRequire:
    """Resolves identifiers relative to ``module`` and returns their exports."""

    manager: ModuleManager
    module: ModuleRecord

    def __call__(self, identifier: str) -> Any:
        canonical = self.manager.resolve(self.module, identifier)
        return self.manager.require([canonical])[0]

    def resolve(self, identifiers: str | Sequence[str]) -> str | list[str]:
        return self.manager.resolve(self.module, identifiers)

    def use(
        self,
        identifiers: str | Sequence[str],
        callback: Callable[..., Any] | None = None,
    ) -> ModuleRecord:
        """Load ``identifiers`` later and call ``callback`` once all are ready."""

        return self.manager.use(identifiers, callback, referrer=self.module)


__all__ = ["ModuleRequire"]
