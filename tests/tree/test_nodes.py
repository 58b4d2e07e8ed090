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

"""Tests for tree node dataclasses."""

from statree.metadata import MetadataRecord
from statree.tree.model import InternalNode, LeafNode


def _leaf(start, end, payload=b""):
    return LeafNode(start=start, end=end, record=MetadataRecord(start, end), payload=payload)


class TestIntervals:
    def test_overlaps_inclusive(self):
        leaf = _leaf(3, 5)
        assert leaf.overlaps(5, 9)
        assert leaf.overlaps(0, 3)
        assert leaf.overlaps(4, 4)
        assert not leaf.overlaps(6, 9)
        assert not leaf.overlaps(0, 2)

    def test_within(self):
        leaf = _leaf(3, 5)
        assert leaf.within(3, 5)
        assert leaf.within(0, 10)
        assert not leaf.within(4, 10)

    def test_empty_internal_node_matches_nothing(self):
        node = InternalNode(start=None, end=None, record=MetadataRecord())
        assert not node.overlaps(0, 100)
        assert not node.within(0, 100)


class TestLinks:
    def test_add_child_sets_parent(self):
        parent = InternalNode(start=None, end=None, record=MetadataRecord())
        child = _leaf(1, 2)
        parent.add_child(child)

        assert child.parent is parent
        assert parent.parent is None
        assert child.depth == 1
        assert parent.children == [child]

    def test_parent_link_is_weak(self):
        """A child does not keep a dropped parent alive."""
        parent = InternalNode(start=None, end=None, record=MetadataRecord())
        child = _leaf(1, 2)
        parent.add_child(child)
        del parent
        assert child.parent is None

    def test_extend_interval(self):
        node = InternalNode(start=None, end=None, record=MetadataRecord())
        node.extend_interval(1, 2)
        node.extend_interval(3, 6)
        assert (node.start, node.end) == (1, 6)

    def test_is_leaf(self):
        assert _leaf(1, 1).is_leaf
        assert not InternalNode(start=None, end=None, record=MetadataRecord()).is_leaf


class TestToDict:
    def test_nested(self):
        root = InternalNode(start=1, end=4, record=MetadataRecord(1, 4))
        root.add_child(_leaf(1, 2, b"a"))
        root.add_child(_leaf(3, 4, b"b"))

        assert root.to_dict() == {
            "type": "internal",
            "from": 1,
            "to": 4,
            "children": [
                {"type": "leaf", "from": 1, "to": 2},
                {"type": "leaf", "from": 3, "to": 4},
            ],
        }

    def test_include_payload(self):
        assert _leaf(1, 2, b"chunk").to_dict(include_payload=True)["payload"] == "chunk"
