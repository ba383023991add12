"""Identifier resolution: aliases, relative paths, base path and extensions."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import overload

ESCAPE = "#"
TERMINATOR = "#"
RELATIVE = "."
QUERY = "?"
DEFAULT_EXTENSION = ".py"

_EXTENSION = re.compile(r"\.\w+$")
_SCHEME = re.compile(r"^[A-Za-z][\w+.-]*:")
_PREFIX = re.compile(r"^([A-Za-z][\w+.-]*:(?://[^/]*)?)(.*)$", re.DOTALL)


def normalize(uri: str) -> str:
    """Collapse ``.``, ``..`` and empty segments, keeping scheme and authority."""

    match = _PREFIX.match(uri)
    if match:
        prefix, path = match.group(1), match.group(2)
    else:
        prefix, path = "", uri

    absolute = path.startswith("/")
    rooted = absolute or bool(prefix)
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append(segment)
            continue
        parts.append(segment)

    joined = "/".join(parts)
    if absolute:
        joined = "/" + joined
    return prefix + joined


def has_scheme(identifier: str) -> bool:
    return bool(_SCHEME.match(identifier))


class Resolver:
    """Turn raw identifiers into canonical ones.

    Resolution never performs I/O. The only state it touches is the
    parameter table, which remembers the query suffix of identifiers such as
    ``lib/x?debug=1`` so the loader can re-attach it when fetching.
    """

    def __init__(
        self,
        base: str = "",
        alias: Mapping[str, str] | None = None,
        default_extension: str = DEFAULT_EXTENSION,
    ) -> None:
        self._base = base
        self._alias = dict(alias or {})
        self._default_extension = default_extension
        self._params: dict[str, str] = {}

    @property
    def base(self) -> str:
        return self._base

    @property
    def alias(self) -> Mapping[str, str]:
        return MappingProxyType(self._alias)

    @property
    def default_extension(self) -> str:
        return self._default_extension

    @property
    def params(self) -> Mapping[str, str]:
        return MappingProxyType(self._params)

    def params_for(self, identifier: str) -> str:
        """Return the recorded query suffix for ``identifier`` (or ``""``)."""

        return self._params.get(identifier, "")

    def clear_params(self) -> None:
        self._params.clear()

    @overload
    def resolve(self, referrer: str | None, identifiers: str) -> str: ...

    @overload
    def resolve(self, referrer: str | None, identifiers: Sequence[str]) -> list[str]: ...

    def resolve(self, referrer, identifiers):
        """Resolve one identifier or a sequence of them, keeping the shape."""

        if isinstance(identifiers, str):
            return self.resolve_one(referrer, identifiers)
        return [self.resolve_one(referrer, identifier) for identifier in identifiers]

    def resolve_one(self, referrer: str | None, identifier: str) -> str:
        if identifier.startswith(ESCAPE):
            identifier = identifier[len(ESCAPE) :]
        else:
            head, sep, rest = identifier.partition("/")
            identifier = self._alias.get(head, head) + sep + rest

        if identifier.startswith(RELATIVE):
            identifier = self._relative_to(referrer, identifier)
        elif not has_scheme(identifier):
            identifier = self._base + identifier

        if identifier.endswith(TERMINATOR):
            identifier = identifier[: -len(TERMINATOR)]
        elif QUERY not in identifier and not _EXTENSION.search(identifier):
            identifier += self._default_extension

        path, sep, query = identifier.partition(QUERY)
        canonical = normalize(path)
        if sep:
            self._params[canonical] = sep + query
        return canonical

    def _relative_to(self, referrer: str | None, identifier: str) -> str:
        if referrer is None:
            return self._base + identifier
        directory = referrer[: referrer.rfind("/") + 1]
        return directory + identifier


__all__ = ["DEFAULT_EXTENSION", "Resolver", "has_scheme", "normalize"]
