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

"""Append-only k-ary aggregation tree.

Chunks are appended as leaves in time order. Every internal node keeps the
consolidated statistics of its subtree, so an aggregate over a time range costs
one record per fully covered subtree plus the boundary leaves.

The tree is built bottom-up. ``frontier[level]`` is the open internal node at
each level, the only node allowed to take a new child. ``frontier[-1]`` is
always the root.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

from statree.config import MetadataConfiguration
from statree.consolidator import consolidate, merge_into
from statree.errors import StructuralInvariantViolation, ValidationError
from statree.metadata import MetadataRecord
from statree.tree.model import InternalNode, LeafNode, _Node

logger = logging.getLogger(__name__)

MIN_FANOUT = 2


def _check_range(start: int, end: int) -> None:
    if start > end:
        raise ValidationError(f"Invalid range: from={start} is after to={end}")


class AggregationTree:
    """Append-only k-ary tree of chunks with rolled-up statistics.

    Inserts are serialized by an internal lock; queries take the same lock so
    they never observe a half-applied insert. Records returned from queries
    are always fresh copies.
    """

    def __init__(self, config: MetadataConfiguration, k: int = MIN_FANOUT):
        if k < MIN_FANOUT:
            raise ValidationError(f"Fan-out k must be at least {MIN_FANOUT}, got {k}")
        self.config = config
        self.k = k
        self._root = InternalNode(start=None, end=None, record=MetadataRecord())
        self._frontier: list[InternalNode] = [self._root]
        self._last_end: int | None = None
        self._size = 0
        self._lock = threading.RLock()

    @property
    def size(self) -> int:
        """Number of chunks inserted."""
        return self._size

    @property
    def height(self) -> int:
        """Number of internal levels."""
        return len(self._frontier)

    @property
    def interval(self) -> tuple[int, int] | None:
        """(from, to) covered by the tree, or None when empty."""
        with self._lock:
            if self._root.start is None:
                return None
            return self._root.start, self._root.end

    @property
    def root(self) -> InternalNode:
        return self._root

    def __len__(self) -> int:
        return self._size

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def _validate_insert(
        self, payload: bytes, start: int, end: int, record: MetadataRecord
    ) -> None:
        if not isinstance(payload, (bytes, bytearray)):
            raise ValidationError(
                f"Payload must be bytes, got {type(payload).__name__}"
            )
        if start > end:
            raise ValidationError(f"Invalid interval: from={start} is after to={end}")
        if self._last_end is not None and start < self._last_end:
            raise ValidationError(
                f"Out-of-order insert: from={start} precedes the previous "
                f"chunk's to={self._last_end}"
            )
        if record.start is not None and (record.start, record.end) != (start, end):
            raise ValidationError(
                f"Record interval [{record.start}, {record.end}] does not match "
                f"chunk interval [{start}, {end}]"
            )
        missing = record.missing_fields(self.config)
        if missing:
            raise ValidationError(
                f"Record is missing configured statistics: {', '.join(missing)}"
            )

    def insert(
        self, payload: bytes, start: int, end: int, record: MetadataRecord
    ) -> LeafNode:
        """Append a chunk covering [start, end] with its statistics.

        Raises:
            ValidationError: If the record is incomplete, the interval is
                inverted, or the chunk starts before the previous one ended.
                The tree is unchanged.
            StructuralInvariantViolation: If the frontier is inconsistent
        """
        with self._lock:
            self._validate_insert(payload, start, end, record)
            if not self._frontier or self._frontier[-1] is not self._root:
                raise StructuralInvariantViolation(
                    "Frontier top does not match the root"
                )

            own = record.restricted_to(self.config, start=start, end=end)
            leaf = LeafNode(start=start, end=end, record=own, payload=bytes(payload))

            self._place(leaf)

            self._last_end = end
            self._size += 1
            return leaf

    def _open_level(self) -> int:
        """Lowest frontier level with room for a child, or the height if none."""
        for level, node in enumerate(self._frontier):
            if len(node.children) < self.k:
                return level
        return len(self._frontier)

    def _ancestors(self, node: InternalNode) -> list[InternalNode]:
        chain = []
        current: InternalNode | None = node
        while current is not None:
            chain.append(current)
            current = current.parent
        if chain[-1] is not self._root:
            raise StructuralInvariantViolation(
                f"Frontier node [{node.start}, {node.end}] is not reachable from the root"
            )
        return chain

    def _place(self, leaf: LeafNode) -> None:
        """Attach a new leaf under the frontier, growing the tree as needed.

        Every merged record is computed before anything is attached, so a
        scheme error raised while combining ciphertexts leaves the tree as it
        was.
        """
        level = self._open_level()
        if level < len(self._frontier):
            chain = self._ancestors(self._frontier[level])
        else:
            if self._root.parent is not None:
                raise StructuralInvariantViolation("Root has a parent")
            chain = [self._root]
        merged = [merge_into(self.config, n.record.copy(), leaf.record) for n in chain]

        # Levels below the open one are full: each gets a fresh node holding
        # only the pending subtree. The full nodes stay attached to their parents.
        pending: _Node = leaf
        for lvl in range(level):
            fresh = InternalNode(
                start=leaf.start, end=leaf.end, record=leaf.record.copy()
            )
            fresh.add_child(pending)
            self._frontier[lvl] = fresh
            pending = fresh

        if level == len(self._frontier):
            self._grow_root(pending, merged[0])
            logger.debug(
                "Grew root to height %d at chunk [%s, %s]",
                len(self._frontier), leaf.start, leaf.end,
            )
            return

        chain[0].add_child(pending)
        for node, record in zip(chain, merged):
            node.record = record
            node.extend_interval(leaf.start, leaf.end)
        logger.debug("Placed chunk [%s, %s] at level %d", leaf.start, leaf.end, level)

    def _grow_root(self, pending: _Node, record: MetadataRecord) -> None:
        """Put a new root over the old root and the pending subtree."""
        old_root = self._root
        new_root = InternalNode(start=record.start, end=record.end, record=record)
        new_root.add_child(old_root)
        new_root.add_child(pending)

        self._root = new_root
        self._frontier.append(new_root)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_chunks(self, start: int, end: int) -> list[bytes]:
        """Payloads of every chunk overlapping [start, end], in time order."""
        _check_range(start, end)
        result: list[bytes] = []

        def _collect(node: _Node) -> None:
            if not node.overlaps(start, end):
                return
            if isinstance(node, LeafNode):
                result.append(node.payload)
                return
            for child in node.children:
                _collect(child)

        with self._lock:
            _collect(self._root)

        logger.debug("Range [%s, %s] matched %d chunks", start, end, len(result))
        return result

    def _covering_records(self, start: int, end: int) -> list[MetadataRecord]:
        """Records of the fewest nodes that together cover [start, end].

        Fully contained subtrees contribute their aggregate and are not
        descended. A leaf that only partially overlaps contributes its whole
        record; chunks are the finest granularity.
        """
        _check_range(start, end)
        covering: list[MetadataRecord] = []

        def _collect(node: _Node) -> None:
            if not node.overlaps(start, end):
                return
            if isinstance(node, LeafNode) or node.within(start, end):
                covering.append(node.record)
                return
            for child in node.children:
                _collect(child)

        with self._lock:
            _collect(self._root)
        return covering

    def query_aggregate(self, start: int, end: int) -> MetadataRecord:
        """Consolidated statistics of every chunk overlapping [start, end]."""
        with self._lock:
            covering = self._covering_records(start, end)
            result = consolidate(self.config, covering)
        logger.debug(
            "Aggregate [%s, %s] consolidated %d records", start, end, len(covering)
        )
        return result

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def iter_nodes(self) -> Iterator[_Node]:
        """Iterate over all nodes depth-first, children in time order.

        The walk is taken under the lock; inserts made while the caller
        iterates are not seen.
        """
        nodes: list[_Node] = []
        with self._lock:
            stack: list[_Node] = [self._root]
            while stack:
                node = stack.pop()
                nodes.append(node)
                if isinstance(node, InternalNode):
                    stack.extend(reversed(node.children))
        return iter(nodes)

    def leaves(self) -> list[LeafNode]:
        return [n for n in self.iter_nodes() if isinstance(n, LeafNode)]

    def check_invariants(self) -> None:
        """Walk the whole tree and verify its structural invariants.

        Raises:
            StructuralInvariantViolation: On the first violation found
        """
        with self._lock:
            if self._frontier[-1] is not self._root:
                raise StructuralInvariantViolation("Frontier top does not match the root")

            for node in self.iter_nodes():
                if not isinstance(node, InternalNode):
                    continue
                if len(node.children) > self.k:
                    raise StructuralInvariantViolation(
                        f"Node [{node.start}, {node.end}] has "
                        f"{len(node.children)} children (k={self.k})"
                    )
                if not node.children:
                    if node is not self._root:
                        raise StructuralInvariantViolation("Empty non-root internal node")
                    continue
                for child in node.children:
                    if child.parent is not node:
                        raise StructuralInvariantViolation(
                            f"Child [{child.start}, {child.end}] has a stale parent link"
                        )
                if (node.start, node.end) != (
                    node.children[0].start,
                    node.children[-1].end,
                ):
                    raise StructuralInvariantViolation(
                        f"Node [{node.start}, {node.end}] does not span its children"
                    )
                if (node.record.start, node.record.end) != (node.start, node.end):
                    raise StructuralInvariantViolation(
                        f"Node [{node.start}, {node.end}] holds a record for "
                        f"[{node.record.start}, {node.record.end}]"
                    )

    def to_dict(self, include_payload: bool = False) -> dict:
        """Shape of the tree for inspection."""
        with self._lock:
            return {
                "k": self.k,
                "size": self._size,
                "height": len(self._frontier),
                "root": self._root.to_dict(include_payload),
            }
