"""Dependency-aware module manager: define, compile, initialize and resume modules."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from .context import ModuleRequire
from .registry import ModuleRegistry
from .resolver import Resolver
from .scheduler import Scheduler, TaskFailure, WaitCounter, WaitingEntry, WaitingSet
from .types import Factory, ModuleRecord, ModuleStatus, Occupancy, Readiness, StatusError

if TYPE_CHECKING:
    from tether.config import Config
    from tether.loaders import LoaderAdapter

LOGGER = logging.getLogger(__name__)


class ModuleManager:
    """Owns the registry, waiting set and scheduler for one module graph.

    Modules are registered with :meth:`define`, compiled once their
    dependencies are known, and initialized exactly once when every
    dependency has final exports. Modules whose dependencies are not ready
    hang in the waiting set until :meth:`trigger` resumes them on a later
    scheduler tick.
    """

    def __init__(
        self,
        loader: LoaderAdapter | None = None,
        *,
        resolver: Resolver | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._loader = loader
        self._resolver = resolver or Resolver()
        self._scheduler = scheduler or Scheduler()
        self._registry = ModuleRegistry()
        self._waiting = WaitingSet()

    @classmethod
    def from_config(cls, config: Config, loader: LoaderAdapter | None = None) -> ModuleManager:
        resolver = Resolver(
            base=config.base,
            alias=config.alias,
            default_extension=config.default_extension,
        )
        return cls(loader, resolver=resolver)

    @property
    def resolver(self) -> Resolver:
        return self._resolver

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def waiting(self) -> WaitingSet:
        return self._waiting

    @property
    def loader(self) -> LoaderAdapter | None:
        return self._loader

    def attach_loader(self, loader: LoaderAdapter) -> None:
        self._loader = loader

    def resolve(
        self,
        module: ModuleRecord | None,
        identifiers: str | Sequence[str],
    ) -> str | list[str]:
        """Resolve identifiers relative to ``module`` (anonymous when ``None``)."""

        referrer = module.id if module is not None else None
        return self._resolver.resolve(referrer, identifiers)

    def define(
        self,
        identifier: str | None,
        dependencies: Sequence[str],
        factory: Factory,
    ) -> ModuleRecord:
        """Register a module; an already registered identifier is returned unchanged."""

        if identifier is not None:
            existing = self._registry.get(identifier)
            if existing is not None:
                LOGGER.debug("Module '%s' already defined; ignoring duplicate", identifier)
                return existing

        if isinstance(dependencies, str):
            dependencies = [dependencies]
        resolved = self._resolver.resolve(identifier, list(dependencies))
        return self._create(identifier, resolved, factory)

    def compile(self, module: ModuleRecord) -> None:
        """Initialize ``module`` now, or hang it on its unready dependencies."""

        if module.status >= ModuleStatus.COMPILED:
            return
        module.advance(ModuleStatus.COMPILED)

        waiting: list[str] = []
        missing: list[str] = []
        values = self.require(module.dependencies)
        for identifier, value in zip(module.dependencies, values):
            if value is Readiness.UNKNOWN:
                self._registry.mark_loading(identifier)
                if identifier not in missing:
                    missing.append(identifier)
            elif value is not Readiness.NOT_READY:
                continue
            waiting.append(identifier)
            self._warn_if_broken(module, identifier)

        if not waiting:
            self.initialize(module)
            return

        counter = WaitCounter(len(waiting))
        for identifier in waiting:
            self._waiting.add(identifier, WaitingEntry(module, counter))
        LOGGER.debug("Module '%s' waiting on %s", module.label, ", ".join(waiting))

        if missing:
            self.load(missing)

    def initialize(self, module: ModuleRecord) -> None:
        """Run the factory of a compiled module and resume its dependents."""

        if module.status is not ModuleStatus.COMPILED:
            raise StatusError(
                f"Module '{module.label}' cannot be initialized from {module.status.name}."
            )

        exports: dict[str, Any] = {}
        module.exports = exports
        try:
            result = module.factory(ModuleRequire(self, module), exports)
        except Exception as exc:
            module.exports = None
            module.advance(ModuleStatus.BROKEN)
            LOGGER.error("Module '%s' failed to initialize: %s", module.label, exc)
            raise

        module.exports = exports if result is None else result
        module.advance(ModuleStatus.INITIALIZED)
        LOGGER.debug("Initialized module '%s'", module.label)
        self.trigger(module.id)

    def trigger(self, identifier: str | None) -> None:
        """Schedule resumption of modules hanging on ``identifier``."""

        if not self._waiting.has(identifier):
            return
        self._scheduler.call_soon(self._resume_next, identifier)

    def require(self, identifiers: Sequence[str]) -> list[Any]:
        """Return exports for canonical identifiers, compiling registered ones.

        Identifiers never seen yield ``Readiness.UNKNOWN``. Loading, waiting
        and broken modules yield ``Readiness.NOT_READY``.
        """

        if isinstance(identifiers, str):
            identifiers = [identifiers]

        results: list[Any] = []
        for identifier in identifiers:
            entry = self._registry.lookup(identifier)
            record = entry.record
            if record is None:
                if entry.occupancy is Occupancy.LOADING:
                    results.append(Readiness.NOT_READY)
                else:
                    results.append(Readiness.UNKNOWN)
                continue
            if record.status is ModuleStatus.DEFINED:
                self.compile(record)
            results.append(record.exports if record.is_ready else Readiness.NOT_READY)
        return results

    def use(
        self,
        identifiers: str | Sequence[str],
        callback: Callable[..., Any] | None = None,
        *,
        referrer: ModuleRecord | None = None,
    ) -> ModuleRecord:
        """Call ``callback`` with the exports of ``identifiers`` once all are ready.

        Returns the anonymous module wrapping the callback; its exports are
        the callback's return value.
        """

        if isinstance(identifiers, str):
            identifiers = [identifiers]
        resolved = self.resolve(referrer, list(identifiers))

        def factory(_require: ModuleRequire, _exports: dict[str, Any]) -> Any:
            if callback is None:
                return None
            return callback(*self.require(resolved))

        module = self._create(None, resolved, factory)
        self.compile(module)
        return module

    def load(self, identifiers: Sequence[str]) -> None:
        """Hand identifiers, with their recorded query suffix, to the loader."""

        requests = [identifier + self._resolver.params_for(identifier) for identifier in identifiers]
        if self._loader is None:
            LOGGER.warning("No loader attached; %s will stay unresolved", ", ".join(requests))
            return
        LOGGER.debug("Loading %s", ", ".join(requests))
        self._loader.load(requests)

    def run(self, max_ticks: int | None = None) -> list[TaskFailure]:
        """Drain pending scheduler ticks."""

        return self._scheduler.run(max_ticks)

    def get(self, identifier: str) -> ModuleRecord | None:
        return self._registry.get(identifier)

    def modules(self) -> list[ModuleRecord]:
        return self._registry.records()

    def broken(self) -> list[ModuleRecord]:
        return [record for record in self._registry.records() if record.status is ModuleStatus.BROKEN]

    def waiting_on(self) -> dict[str, list[str]]:
        """Map each blocking identifier to the modules hanging on it."""

        return {
            identifier: [entry.module.label for entry in entries]
            for identifier, entries in self._waiting
        }

    def stalled(self) -> list[ModuleRecord]:
        """Modules compiled but never initialized."""

        seen: set[int] = set()
        stalled: list[ModuleRecord] = []
        candidates = [entry.module for _identifier, entries in self._waiting for entry in entries]
        candidates.extend(self._registry.records())
        for record in candidates:
            if record.status is not ModuleStatus.COMPILED or id(record) in seen:
                continue
            seen.add(id(record))
            stalled.append(record)
        return stalled

    def cycles(self) -> list[list[str]]:
        """Dependency cycles among stalled modules, each listed once."""

        stalled = {record.id: record for record in self.stalled() if record.id is not None}
        graph = {
            identifier: [dep for dep in record.dependencies if dep in stalled]
            for identifier, record in stalled.items()
        }

        found: set[tuple[str, ...]] = set()
        visited: set[str] = set()

        def visit(node: str, path: list[str]) -> None:
            if node in path:
                cycle = path[path.index(node) :]
                found.add(_rotate(cycle))
                return
            if node in visited:
                return
            path.append(node)
            for dependency in graph[node]:
                visit(dependency, path)
            path.pop()
            visited.add(node)

        for node in graph:
            visit(node, [])
        return [list(cycle) for cycle in sorted(found)]

    def reset(self) -> None:
        """Forget every module, waiting entry, pending tick and query suffix.

        An attached loader with a ``clear`` method is cleared too.
        """

        self._registry.clear()
        self._waiting.clear()
        self._scheduler.clear()
        self._resolver.clear_params()
        clear_loader = getattr(self._loader, "clear", None)
        if callable(clear_loader):
            clear_loader()

    def _create(
        self,
        identifier: str | None,
        dependencies: list[str],
        factory: Factory,
    ) -> ModuleRecord:
        module = ModuleRecord(id=identifier, factory=factory, dependencies=dependencies)
        if identifier is None:
            return module

        self._registry.register(module)
        LOGGER.debug("Defined module '%s' (%s dependencies)", identifier, len(dependencies))
        if self._waiting.has(identifier):
            self.compile(module)
        return module

    def _resume_next(self, identifier: str) -> None:
        entry = self._waiting.pop(identifier)
        if entry is None:
            self._waiting.prune(identifier)
            return

        # Queue the next step before anything below can raise.
        self._scheduler.call_soon(self._resume_next, identifier)
        if entry.counter.decrement() == 0:
            self.initialize(entry.module)

    def _warn_if_broken(self, module: ModuleRecord, identifier: str) -> None:
        dependency = self._registry.get(identifier)
        if dependency is not None and dependency.status is ModuleStatus.BROKEN:
            LOGGER.warning(
                "Module '%s' depends on broken module '%s' and will never initialize",
                module.label,
                identifier,
            )


def _rotate(cycle: list[str]) -> tuple[str, ...]:
    start = cycle.index(min(cycle))
    return tuple(cycle[start:] + cycle[:start])


__all__ = ["ModuleManager"]
