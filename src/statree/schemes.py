# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Scheme registry and plaintext reference schemes.

Every statistic on the wire is decoded by a codec looked up from its kind and
the algorithm tag in the stream configuration. Real schemes are registered by
the package that owns the keys; only the ``plaintext`` and ``opaque`` codecs
ship here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from statree.errors import IncompatibleSchemeError, UnknownSchemeError

logger = logging.getLogger(__name__)


class SchemeKind(str, Enum):
    """Capability a statistic's scheme must provide."""

    ADDITIVE = "additive"  # sum, count
    ORDERED = "ordered"  # min, max
    OPAQUE = "opaque"  # first, last: carried verbatim


STAT_KINDS: dict[str, SchemeKind] = {
    "sum": SchemeKind.ADDITIVE,
    "count": SchemeKind.ADDITIVE,
    "min": SchemeKind.ORDERED,
    "max": SchemeKind.ORDERED,
    "first": SchemeKind.OPAQUE,
    "last": SchemeKind.OPAQUE,
}

PLAINTEXT = "plaintext"
DEFAULT_KEY_ID = "plaintext"

Decoder = Callable[[Any], Any]


@dataclass(frozen=True)
class PlainNumber:
    """Unencrypted additive value. Useful for inspection and tests."""

    value: int
    key_id: str = DEFAULT_KEY_ID

    def _check(self, other: Any) -> None:
        if not isinstance(other, PlainNumber):
            raise IncompatibleSchemeError(
                f"Cannot combine plaintext value with {type(other).__name__}"
            )
        if other.key_id != self.key_id:
            raise IncompatibleSchemeError(
                f"Key mismatch: '{self.key_id}' vs '{other.key_id}'"
            )

    def add(self, other: PlainNumber) -> PlainNumber:
        self._check(other)
        return PlainNumber(self.value + other.value, self.key_id)

    def to_wire(self) -> int:
        return self.value


@dataclass(frozen=True)
class PlainOrdered:
    """Unencrypted order-comparable value."""

    value: int
    key_id: str = DEFAULT_KEY_ID

    def _check(self, other: Any) -> None:
        if not isinstance(other, PlainOrdered):
            raise IncompatibleSchemeError(
                f"Cannot compare plaintext value with {type(other).__name__}"
            )
        if other.key_id != self.key_id:
            raise IncompatibleSchemeError(
                f"Key mismatch: '{self.key_id}' vs '{other.key_id}'"
            )

    def min(self, other: PlainOrdered) -> PlainOrdered:
        self._check(other)
        return other if other.value < self.value else self

    def max(self, other: PlainOrdered) -> PlainOrdered:
        self._check(other)
        return other if other.value > self.value else self

    def to_wire(self) -> int:
        return self.value


def _verbatim(value: Any) -> Any:
    return value


_REGISTRY: dict[tuple[SchemeKind, str], Decoder] = {
    (SchemeKind.ADDITIVE, PLAINTEXT): lambda v: PlainNumber(int(v)),
    (SchemeKind.ORDERED, PLAINTEXT): lambda v: PlainOrdered(int(v)),
    (SchemeKind.OPAQUE, PLAINTEXT): _verbatim,
    (SchemeKind.OPAQUE, "opaque"): _verbatim,
}


def register_scheme(kind: SchemeKind, name: str, decoder: Decoder) -> None:
    """Register a wire decoder for an algorithm tag.

    Re-registering an existing tag replaces it.
    """
    key = (SchemeKind(kind), name)
    if key in _REGISTRY:
        logger.warning("Replacing codec for %s scheme '%s'", key[0].value, name)
    _REGISTRY[key] = decoder


def get_decoder(kind: SchemeKind, name: str) -> Decoder:
    """Look up the decoder for an algorithm tag.

    Raises:
        UnknownSchemeError: If nothing is registered for (kind, name)
    """
    try:
        return _REGISTRY[(SchemeKind(kind), name)]
    except KeyError:
        raise UnknownSchemeError(
            f"No codec registered for {SchemeKind(kind).value} scheme '{name}'"
        ) from None


def registered_schemes() -> list[tuple[str, str]]:
    """List registered (kind, algorithm) pairs."""
    return sorted((kind.value, name) for kind, name in _REGISTRY)
