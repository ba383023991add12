"""Loader adapters that fetch module sources and register them with a manager."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from types import CodeType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import parse_qs

from .resolver import QUERY, has_scheme
from .types import Factory, ModuleRecord, Occupancy

if TYPE_CHECKING:
    from tether.manager import ModuleManager

LOGGER = logging.getLogger(__name__)
_FILE_SCHEMES = ("file://", "file:")


class LoadError(RuntimeError):
    """Raised when a module source cannot be fetched or executed."""

    def __init__(
        self,
        message: str,
        *,
        identifier: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.cause = cause


@runtime_checkable
class LoaderAdapter(Protocol):
    """Fetches resources and eventually calls ``define`` for each identifier."""

    def load(self, identifiers: Sequence[str]) -> None:
        """Start fetching ``identifiers`` (query suffixes already attached)."""


class CallbackLoader:
    """Forward each requested identifier to a callable."""

    def __init__(self, callback: Callable[[str], None] | None = None) -> None:
        self._callback = callback
        self.requested: list[str] = []

    def load(self, identifiers: Sequence[str]) -> None:
        for identifier in identifiers:
            self.requested.append(identifier)
            if self._callback is not None:
                self._callback(identifier)


class FileSystemLoader:
    """Execute Python module sources from disk on the manager's scheduler.

    A module file registers itself by calling ``define``::

        define(["./helpers", "lib/text"], lambda require, exports: {...})

    The canonical identifier is attached automatically. Query parameters the
    identifier was requested with are available as ``__params__``.
    """

    def __init__(
        self,
        manager: ModuleManager,
        *,
        root: Path | str | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self._manager = manager
        self._root = Path(root).expanduser() if root is not None else Path.cwd()
        self._encoding = encoding
        self._executed: set[str] = set()
        self.loaded: list[Path] = []

    def clear(self) -> None:
        """Forget which identifiers were executed so they can be loaded again."""

        self._executed.clear()
        self.loaded.clear()

    def load(self, identifiers: Sequence[str]) -> None:
        for identifier in identifiers:
            self._manager.scheduler.call_soon(self.execute, identifier)

    def path_for(self, identifier: str) -> Path:
        """Map a canonical identifier to the file that defines it."""

        canonical = identifier.partition(QUERY)[0]
        for scheme in _FILE_SCHEMES:
            if canonical.startswith(scheme):
                canonical = canonical[len(scheme) :]
                break
        else:
            if has_scheme(canonical) and not _is_drive(canonical):
                raise LoadError(
                    f"Unsupported scheme in module identifier '{identifier}'.",
                    identifier=identifier,
                )
        path = Path(canonical).expanduser()
        if not path.is_absolute():
            path = self._root / path
        return path

    def execute(self, identifier: str) -> None:
        """Read, compile and run the source for ``identifier``."""

        canonical, _, query = identifier.partition(QUERY)
        if canonical in self._executed:
            LOGGER.debug("Module '%s' already executed; skipping", canonical)
            return
        self._executed.add(canonical)

        path = self.path_for(identifier)
        try:
            source = path.read_text(encoding=self._encoding)
        except OSError as exc:
            raise LoadError(
                f"Cannot read module '{canonical}' from {path}: {exc}",
                identifier=canonical,
                cause=exc,
            ) from exc

        code = self._compile(source, path, canonical)
        namespace = self._build_namespace(canonical, query, path)
        LOGGER.debug("Executing module '%s' from %s", canonical, path)
        try:
            exec(code, namespace)
        except Exception as exc:
            raise LoadError(
                f"Module '{canonical}' failed while loading: {exc}",
                identifier=canonical,
                cause=exc,
            ) from exc
        self.loaded.append(path)

        if self._manager.registry.occupancy(canonical) is not Occupancy.REGISTERED:
            LOGGER.warning("Module file %s did not call define() for '%s'", path, canonical)

    def _build_namespace(self, canonical: str, query: str, path: Path) -> dict[str, Any]:
        manager = self._manager

        def define(*args: Any) -> ModuleRecord:
            dependencies: Sequence[str]
            factory: Factory
            if len(args) == 1:
                dependencies, factory = [], args[0]
            elif len(args) == 2:
                dependencies, factory = args
            else:
                raise TypeError("define() takes (factory) or (dependencies, factory)")
            if isinstance(dependencies, str):
                dependencies = [dependencies]
            return manager.define(canonical, list(dependencies), factory)

        return {
            "__name__": canonical,
            "__file__": str(path),
            "__params__": parse_qs(query),
            "define": define,
            "__builtins__": __builtins__,
        }

    def _compile(self, source: str, path: Path, canonical: str) -> CodeType:
        try:
            return compile(source, str(path), "exec")
        except SyntaxError as exc:
            raise LoadError(
                f"Syntax error in {path}: {exc.msg} (line {exc.lineno})",
                identifier=canonical,
                cause=exc,
            ) from exc


def _is_drive(identifier: str) -> bool:
    return len(identifier) > 2 and identifier[0].isalpha() and identifier[1:3] in (":/", ":\\")


__all__ = ["CallbackLoader", "FileSystemLoader", "LoadError", "LoaderAdapter"]
