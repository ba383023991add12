from dataclasses import FrozenInstanceError

import pytest

from tether import types as tether_types
from tether.types import ModuleRecord, ModuleStatus, StatusError


def _record(identifier: str | None = "mod.py") -> ModuleRecord:
    return ModuleRecord(id=identifier, factory=lambda _require, _exports: None, dependencies=[])


def test_record_starts_defined_without_exports() -> None:
    record = _record()

    assert record.status is ModuleStatus.DEFINED
    assert record.exports is None
    assert not record.is_ready


def test_status_advances_forward_only() -> None:
    record = _record()

    record.advance(ModuleStatus.COMPILED)
    record.advance(ModuleStatus.INITIALIZED)

    assert record.is_ready
    with pytest.raises(StatusError):
        record.advance(ModuleStatus.COMPILED)
    with pytest.raises(StatusError):
        record.advance(ModuleStatus.BROKEN)


def test_status_cannot_skip_compiled() -> None:
    record = _record()

    with pytest.raises(StatusError, match="DEFINED to INITIALIZED"):
        record.advance(ModuleStatus.INITIALIZED)


def test_broken_is_terminal() -> None:
    record = _record()
    record.advance(ModuleStatus.COMPILED)
    record.advance(ModuleStatus.BROKEN)

    with pytest.raises(StatusError):
        record.advance(ModuleStatus.INITIALIZED)


def test_status_ordering_matches_lifecycle() -> None:
    assert ModuleStatus.DEFINED < ModuleStatus.COMPILED < ModuleStatus.INITIALIZED
    assert ModuleStatus.BROKEN > ModuleStatus.COMPILED


def test_anonymous_record_label() -> None:
    assert _record(None).label == "<anonymous>"
    assert _record("a/b.py").label == "a/b.py"


def test_registry_entry_is_immutable() -> None:
    entry = tether_types.RegistryEntry(tether_types.Occupancy.LOADING)

    with pytest.raises(FrozenInstanceError):
        entry.record = _record()  # type: ignore[misc]


def test_readiness_sentinels_are_distinct() -> None:
    assert tether_types.Readiness.UNKNOWN is not tether_types.Readiness.NOT_READY
    assert repr(tether_types.Readiness.NOT_READY) == "<not-ready>"
