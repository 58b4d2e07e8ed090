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

"""Pytest configuration and shared fixtures for statree tests."""

import hashlib
import math

import pytest

from statree import schemes
from statree.config import MetadataConfiguration
from statree.metadata import MetadataRecord
from statree.schemes import PlainNumber, PlainOrdered
from statree.tree import AggregationTree

BF_FALSE_POSITIVE_RATE = 0.01
BF_EXPECTED_TAGS = 16

PLAINTEXT_ALGORITHMS = {
    "sum": "plaintext",
    "count": "plaintext",
    "min": "plaintext",
    "max": "plaintext",
    "first": "plaintext",
    "last": "plaintext",
}


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path, monkeypatch):
    """Keep tests away from the user's real config and working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for var in ("STATREE_FANOUT", "STATREE_LOG_LEVEL", "STATREE_OUTPUT_FORMAT", "STATREE_HOME"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _restore_scheme_registry(monkeypatch):
    """Codecs registered by a test disappear after it."""
    monkeypatch.setattr(schemes, "_REGISTRY", dict(schemes._REGISTRY))


class Trapdoor:
    """Deterministic Bloom filter standing in for the client's tag trapdoor."""

    @staticmethod
    def _shape(false_positive_rate: float, expected_items: int) -> tuple[int, int]:
        m = math.ceil(-expected_items * math.log(false_positive_rate) / (math.log(2) ** 2))
        k = max(1, round(m / expected_items * math.log(2)))
        return m, k

    def _positions(self, item: str, false_positive_rate: float, expected_items: int):
        m, k = self._shape(false_positive_rate, expected_items)
        for i in range(k):
            digest = hashlib.sha256(f"{i}:{item}".encode()).digest()
            yield int.from_bytes(digest[:8], "big") % m

    def build_filter(self, item, false_positive_rate=BF_FALSE_POSITIVE_RATE,
                     expected_items=BF_EXPECTED_TAGS) -> int:
        bits = 0
        for pos in self._positions(item, false_positive_rate, expected_items):
            bits |= 1 << pos
        return bits

    def may_contain(self, item, bits, false_positive_rate=BF_FALSE_POSITIVE_RATE,
                    expected_items=BF_EXPECTED_TAGS) -> bool:
        return all(
            (bits >> pos) & 1
            for pos in self._positions(item, false_positive_rate, expected_items)
        )


@pytest.fixture
def trapdoor():
    return Trapdoor()


@pytest.fixture
def full_config():
    """Every statistic enabled, decoded with the plaintext codecs."""
    return MetadataConfiguration(
        sum=True, count=True, min=True, max=True,
        first=True, last=True, tags=True,
        algorithms=dict(PLAINTEXT_ALGORITHMS),
    )


@pytest.fixture
def sum_count_config():
    return MetadataConfiguration(
        sum=True, count=True,
        algorithms={"sum": "plaintext", "count": "plaintext"},
    )


def chunk_record(trapdoor: Trapdoor, start: int, end: int) -> MetadataRecord:
    """Record for a chunk as the original client test suite builds it.

    sum=count=1, min=from, max=to, first=from, last=to, one tag "test<from>-<to>".
    """
    return MetadataRecord(
        sum=PlainNumber(1),
        count=PlainNumber(1),
        min=PlainOrdered(start),
        max=PlainOrdered(end),
        first=start,
        last=end,
        tags=trapdoor.build_filter(f"test{start}-{end}"),
    )


@pytest.fixture
def make_chunk_record(trapdoor):
    """Factory for chunk records tagged through the trapdoor."""
    return lambda start, end: chunk_record(trapdoor, start, end)


EIGHT_CHUNKS = [(i, i + 1) for i in range(1, 16, 2)]


@pytest.fixture
def eight_chunk_tree(full_config, trapdoor):
    """Chunks [1,2], [3,4], ..., [15,16] in a binary tree; payload is "<from>-<to>"."""
    tree = AggregationTree(full_config, k=2)
    for start, end in EIGHT_CHUNKS:
        tree.insert(f"{start}-{end}".encode(), start, end, chunk_record(trapdoor, start, end))
    return tree
