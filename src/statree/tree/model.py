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

"""Aggregation tree nodes - dataclasses for the two node variants."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Any

from statree.metadata import MetadataRecord


@dataclass(eq=False)
class _Node:
    """Fields shared by leaves and internal nodes.

    ``start``/``end`` are None only for an internal node with no children yet.
    The parent link is a weak reference: nodes are owned by their parent's
    ``children`` list and the link is only used to walk upward.
    """

    start: int | None
    end: int | None
    record: MetadataRecord
    _parent: weakref.ref | None = field(default=None, repr=False)

    @property
    def parent(self) -> InternalNode | None:
        if self._parent is None:
            return None
        return self._parent()

    @property
    def depth(self) -> int:
        """Distance from the root."""
        parent = self.parent
        if parent is None:
            return 0
        return parent.depth + 1

    def overlaps(self, start: int, end: int) -> bool:
        """True if [self.start, self.end] intersects [start, end]."""
        if self.start is None:
            return False
        return not (self.end < start or self.start > end)

    def within(self, start: int, end: int) -> bool:
        """True if [self.start, self.end] lies entirely inside [start, end]."""
        if self.start is None:
            return False
        return self.start >= start and self.end <= end


@dataclass(eq=False)
class LeafNode(_Node):
    """One inserted chunk: its interval, opaque payload and own statistics."""

    payload: bytes = b""

    @property
    def is_leaf(self) -> bool:
        return True

    def to_dict(self, include_payload: bool = False) -> dict[str, Any]:
        result: dict[str, Any] = {"type": "leaf", "from": self.start, "to": self.end}
        if include_payload:
            result["payload"] = self.payload.decode("utf-8", errors="replace")
        return result


@dataclass(eq=False)
class InternalNode(_Node):
    """Aggregate over its children, holding at most k of them in time order."""

    children: list[_Node] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return False

    def add_child(self, child: _Node) -> None:
        """Append a child and point its parent link here."""
        child._parent = weakref.ref(self)
        self.children.append(child)

    def extend_interval(self, start: int, end: int) -> None:
        """Grow [start, end] to cover a newly appended descendant."""
        if self.start is None:
            self.start = start
        self.end = end

    def to_dict(self, include_payload: bool = False) -> dict[str, Any]:
        return {
            "type": "internal",
            "from": self.start,
            "to": self.end,
            "children": [c.to_dict(include_payload) for c in self.children],
        }
