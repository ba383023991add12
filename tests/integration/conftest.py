from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from tether.loaders import FileSystemLoader
from tether.manager import ModuleManager
from tether.resolver import Resolver


class ModuleTree:
    """Writes module sources beneath a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, name: str, body: str) -> Path:
        target = self.root / f"{name}.py"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(dedent(body), encoding="utf-8")
        return target

    def id(self, name: str) -> str:
        return f"{self.root}/{name}.py"


@pytest.fixture()
def tree(tmp_path: Path) -> ModuleTree:
    root = tmp_path / "app"
    root.mkdir()
    return ModuleTree(root)


@pytest.fixture()
def manager(tree: ModuleTree) -> ModuleManager:
    resolver = Resolver(base=f"{tree.root}/", alias={"shared": "lib/shared"})
    manager = ModuleManager(resolver=resolver)
    manager.attach_loader(FileSystemLoader(manager))
    return manager


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)
