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

"""Tag bit-vector helpers.

Tag filters are held as non-negative ints so a union is a plain ``|`` and a
merged value can never alias one of its inputs. On the wire they travel as a
list of 64-bit words, lowest word first.
"""

WORD_BITS = 64
_WORD_MASK = (1 << WORD_BITS) - 1


def union(a: int | None, b: int | None) -> int | None:
    """OR two tag vectors, treating None as absent."""
    if a is None:
        return b
    if b is None:
        return a
    return a | b


def to_words(bits: int) -> list[int]:
    """Encode a tag vector as 64-bit words, lowest first. Zero encodes as []."""
    if bits < 0:
        raise ValueError(f"tag vector must be non-negative, got {bits}")
    words = []
    while bits:
        words.append(bits & _WORD_MASK)
        bits >>= WORD_BITS
    return words


def from_words(words: list[int]) -> int:
    """Decode a list of 64-bit words back into a tag vector.

    Negative words are accepted as two's-complement signed longs, which is how
    Java-based clients emit them.
    """
    bits = 0
    for i, word in enumerate(words):
        bits |= (word & _WORD_MASK) << (i * WORD_BITS)
    return bits
