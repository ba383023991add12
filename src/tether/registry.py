"""Authoritative store of module records keyed by canonical identifier."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator

from .types import (
    LOADING_ENTRY,
    UNKNOWN_ENTRY,
    ModuleRecord,
    Occupancy,
    RegistryEntry,
)


class ModuleRegistry:
    """Registry distinguishing unknown, loading and registered identifiers."""

    def __init__(self) -> None:
        self._entries: OrderedDict[str, RegistryEntry] = OrderedDict()

    def lookup(self, identifier: str) -> RegistryEntry:
        return self._entries.get(identifier, UNKNOWN_ENTRY)

    def get(self, identifier: str) -> ModuleRecord | None:
        """Return the registered record, or ``None`` when unknown or loading."""

        return self.lookup(identifier).record

    def occupancy(self, identifier: str) -> Occupancy:
        return self.lookup(identifier).occupancy

    def register(self, record: ModuleRecord) -> None:
        if record.id is None:
            raise ValueError("Anonymous modules cannot be registered.")
        if self.occupancy(record.id) is Occupancy.REGISTERED:
            raise ValueError(f"Module '{record.id}' is already registered.")
        self._entries[record.id] = RegistryEntry(Occupancy.REGISTERED, record)

    def mark_loading(self, identifier: str) -> None:
        """Record that a fetch for ``identifier`` has been requested."""

        if self.occupancy(identifier) is Occupancy.UNKNOWN:
            self._entries[identifier] = LOADING_ENTRY

    def records(self) -> list[ModuleRecord]:
        return [entry.record for entry in self._entries.values() if entry.record is not None]

    def loading(self) -> list[str]:
        return [
            identifier
            for identifier, entry in self._entries.items()
            if entry.occupancy is Occupancy.LOADING
        ]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ModuleRegistry"]
