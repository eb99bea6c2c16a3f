"""Explicit key converters between native identifier types and strings.

The identity framework passes identifiers around as opaque strings (cookies,
claims, URLs). A store converts them with the ``KeyConverter`` it was given
instead of inspecting the key type at runtime.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from bson import ObjectId

K = TypeVar("K")


@dataclass(frozen=True)
class KeyConverter(Generic[K]):
    """A to-string / from-string pair for one key type.

    ``default`` is the key type's "unset" value. It maps to ``None`` on the way
    out and is what ``None`` maps to on the way in. ``parse`` errors are not
    caught.
    """

    name: str
    parse: Callable[[str], K]
    format: Callable[[K], str] = str
    default: Any = None

    def to_string(self, key: K | None) -> str | None:
        if key is None or key == self.default:
            return None
        return self.format(key)

    def from_string(self, value: str | None) -> K | None:
        if value is None:
            return self.default
        return self.parse(value)


def _parse_str(value: str) -> str:
    return value


STRING_KEY: KeyConverter[str] = KeyConverter(name="str", parse=_parse_str)
INT_KEY: KeyConverter[int] = KeyConverter(name="int", parse=int, default=0)
UUID_KEY: KeyConverter[uuid.UUID] = KeyConverter(name="uuid", parse=uuid.UUID, default=uuid.UUID(int=0))
OBJECT_ID_KEY: KeyConverter[ObjectId] = KeyConverter(name="objectid", parse=ObjectId, default=ObjectId(b"\x00" * 12))
