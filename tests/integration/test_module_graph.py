from __future__ import annotations

from tether.loaders import LoadError
from tether.types import ModuleStatus


def test_diamond_graph_initializes_shared_dependency_once(tree, manager) -> None:
    tree.write(
        "lib/shared/log",
        """
        CALLS = []

        def build(require, exports):
            CALLS.append("log")
            exports["lines"] = []
            exports["calls"] = CALLS

        define(build)
        """,
    )
    tree.write(
        "ui",
        """
        def build(require, exports):
            log = require("shared/log")
            log["lines"].append("ui ready")
            return "ui"

        define(["shared/log"], build)
        """,
    )
    tree.write(
        "data",
        """
        def build(require, exports):
            require("shared/log")["lines"].append("data ready")
            return "data"

        define(["shared/log"], build)
        """,
    )
    tree.write(
        "app",
        """
        define(
            ["./ui", "./data", "shared/log"],
            lambda require, exports: {
                "parts": [require("./ui"), require("./data")],
                "lines": list(require("shared/log")["lines"]),
            },
        )
        """,
    )

    entry = manager.use("app", lambda app: app)
    failures = manager.run()

    assert failures == []
    assert entry.exports == {"parts": ["ui", "data"], "lines": ["ui ready", "data ready"]}
    log = manager.get(tree.id("lib/shared/log"))
    assert log.exports["calls"] == ["log"]
    assert all(record.status is ModuleStatus.INITIALIZED for record in manager.modules())
    assert len(manager.waiting) == 0


def test_failing_plugin_does_not_stop_its_siblings(tree, manager) -> None:
    tree.write("core", "define(lambda require, exports: {'name': 'core'})\n")
    tree.write(
        "plugins/bad",
        """
        def build(require, exports):
            raise RuntimeError("bad plugin")

        define(["../core"], build)
        """,
    )
    tree.write(
        "plugins/good",
        """
        define(["../core"], lambda require, exports: "good+" + require("../core")["name"])
        """,
    )

    bad_entry = manager.use("plugins/bad")
    good_entry = manager.use("plugins/good", lambda good: good)
    failures = manager.run()

    assert [str(failure.error) for failure in failures] == ["bad plugin"]
    assert manager.get(tree.id("plugins/bad")).status is ModuleStatus.BROKEN
    assert bad_entry.status is ModuleStatus.COMPILED
    assert good_entry.exports == "good+core"
    assert manager.broken() == [manager.get(tree.id("plugins/bad"))]


def test_factory_loads_optional_module_on_demand(tree, manager) -> None:
    tree.write(
        "main",
        """
        def build(require, exports):
            exports["lazy"] = None
            require.use("./extras/lazy", lambda lazy: exports.update(lazy=lazy))

        define(build)
        """,
    )
    tree.write("extras/lazy", "define(lambda require, exports: 'loaded later')\n")

    entry = manager.use("main", lambda main: main)
    manager.run()

    assert entry.exports == {"lazy": "loaded later"}
    assert tree.root / "extras" / "lazy.py" in manager.loader.loaded


def test_query_parameters_reach_the_loaded_module(tree, manager) -> None:
    tree.write(
        "lib/shared/settings",
        """
        define(lambda require, exports: {key: values[0] for key, values in __params__.items()})
        """,
    )

    entry = manager.use("shared/settings.py?env=prod&debug=0", lambda settings: settings)
    manager.run()

    assert entry.exports == {"env": "prod", "debug": "0"}


def test_cycle_across_files_stays_suspended(tree, manager) -> None:
    tree.write("left", "define(['./right'], lambda require, exports: 'left')\n")
    tree.write("right", "define(['./left'], lambda require, exports: 'right')\n")

    entry = manager.use("left")
    failures = manager.run()

    assert failures == []
    assert entry.status is ModuleStatus.COMPILED
    assert manager.cycles() == [[tree.id("left"), tree.id("right")]]
    stalled = {record.label for record in manager.stalled()}
    assert stalled == {"<anonymous>", tree.id("left"), tree.id("right")}


def test_unreachable_dependency_is_silent_suspension(tree, manager) -> None:
    tree.write("main", "define(['./missing'], lambda require, exports: 'main')\n")

    entry = manager.use("main")
    failures = manager.run()

    assert len(failures) == 1
    assert isinstance(failures[0].error, LoadError)
    assert entry.status is ModuleStatus.COMPILED
    assert manager.get(tree.id("main")).status is ModuleStatus.COMPILED
    assert manager.waiting_on() == {
        tree.id("main"): ["<anonymous>"],
        tree.id("missing"): [tree.id("main")],
    }
