"""tether: a dependency-aware module loader."""

from importlib import metadata


def _discover_version() -> str:
    """Return the installed package version, falling back to dev marker."""
    try:
        return metadata.version("tether-loader")
    except metadata.PackageNotFoundError:  # pragma: no cover - occurs in source checkouts
        return "0.0.0"


__version__ = _discover_version()

from .context import ModuleRequire  # noqa: E402
from .loaders import CallbackLoader, FileSystemLoader, LoadError, LoaderAdapter  # noqa: E402
from .manager import ModuleManager  # noqa: E402
from .resolver import Resolver, normalize  # noqa: E402
from .scheduler import Scheduler, TaskFailure  # noqa: E402
from .types import ModuleRecord, ModuleStatus, Occupancy, Readiness, StatusError  # noqa: E402

__all__ = [
    "CallbackLoader",
    "FileSystemLoader",
    "LoadError",
    "LoaderAdapter",
    "ModuleManager",
    "ModuleRecord",
    "ModuleRequire",
    "ModuleStatus",
    "Occupancy",
    "Readiness",
    "Resolver",
    "Scheduler",
    "StatusError",
    "TaskFailure",
    "__version__",
    "normalize",
]
