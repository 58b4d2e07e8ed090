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

"""Capability protocols the index relies on.

The index never knows which encryption scheme produced a value. It only needs
sums to support ``add`` and extrema to support ``min``/``max``. Concrete schemes
(Paillier, EC-ElGamal, OPE, ORE) live outside this package and satisfy these
protocols structurally.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class HomomorphicAddable(Protocol):
    """Ciphertext that can be added to another without decryption.

    ``add`` must be commutative and associative and must return a new value.
    Implementations raise ``IncompatibleSchemeError`` when the operands come
    from different keys or schemes.
    """

    def add(self, other: "HomomorphicAddable") -> "HomomorphicAddable":
        ...

    def to_wire(self) -> Any:
        ...


@runtime_checkable
class OrderComparable(Protocol):
    """Ciphertext whose plaintext order can be compared without decryption."""

    def min(self, other: "OrderComparable") -> "OrderComparable":
        """Return whichever operand encrypts the smaller plaintext."""
        ...

    def max(self, other: "OrderComparable") -> "OrderComparable":
        """Return whichever operand encrypts the larger plaintext."""
        ...

    def to_wire(self) -> Any:
        ...


@runtime_checkable
class TagFilter(Protocol):
    """Probabilistic tag membership structure producing OR-combinable bit vectors.

    The index only ever unions the bit vectors; membership is tested by clients.
    """

    def build_filter(self, item: str, false_positive_rate: float, expected_items: int) -> int:
        ...

    def may_contain(
        self, item: str, bits: int, false_positive_rate: float, expected_items: int
    ) -> bool:
        ...
