"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlunsplit


@dataclass
class Field:
    """A single HTTP field (header) with one or more values."""

    name: str
    values: list[str] = field(default_factory=list)

    def add(self, value: str) -> None:
        """Append a value to the field."""
        self.values.append(value)

    def as_string(self, delimiter: str = ", ") -> str:
        """Serialize the field values into a single string."""
        return delimiter.join(self.values)


class Fields:
    """Collection of :class:`Field` entries keyed case-insensitively.

    Entries are stored under the lowercased field name. Iteration follows
    insertion order; use :meth:`sorted_by_name` for the ordering used in
    canonicalization.
    """

    def __init__(self, initial: Iterable[Field] | None = None):
        self.entries: dict[str, Field] = {}
        for initial_field in initial or ():
            self.set_field(initial_field)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str] | None) -> "Fields":
        """Build a collection from a plain ``name -> value`` mapping."""
        if mapping is None:
            return cls()
        return cls(
            Field(name=name.strip(), values=[value]) for name, value in mapping.items()
        )

    def set_field(self, field: Field) -> None:
        """Add a field, replacing any entry with the same name."""
        self.entries[_normalize_field_name(field.name)] = field

    def get_field(self, name: str) -> Field:
        return self.entries[_normalize_field_name(name)]

    def remove_field(self, name: str) -> None:
        del self.entries[_normalize_field_name(name)]

    def sorted_by_name(self) -> list[Field]:
        return [self.entries[key] for key in sorted(self.entries)]

    def as_dict(self) -> dict[str, str]:
        return {entry.name: entry.as_string() for entry in self}

    def __getitem__(self, name: str) -> Field:
        return self.get_field(name)

    def __contains__(self, name: object) -> bool:
        return (
            isinstance(name, str) and _normalize_field_name(name) in self.entries
        )

    def __iter__(self) -> Iterator[Field]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __repr__(self) -> str:
        return f"Fields({list(self.entries.values())!r})"


def _normalize_field_name(name: str) -> str:
    return name.strip().lower()


@dataclass(kw_only=True, frozen=True)
class URI:
    """Components of a request destination."""

    host: str
    path: str | None = None
    scheme: str = "https"
    query: str | None = None
    port: int | None = None
    fragment: str | None = None

    @property
    def netloc(self) -> str:
        """The ``host[:port]`` portion of the URI."""
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    def build(self) -> str:
        """Assemble the URI into a single string."""
        return urlunsplit(
            (
                self.scheme,
                self.netloc,
                self.path or "",
                self.query or "",
                self.fragment or "",
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheme": self.scheme,
            "host": self.host,
            "port": self.port,
            "path": self.path,
            "query": self.query,
            "fragment": self.fragment,
        }


@dataclass(kw_only=True)
class AWSRequest:
    """An HTTP request to be signed."""

    destination: URI
    method: str
    fields: Fields = field(default_factory=Fields)
    body: bytes | Iterable[bytes] | None = None
