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

"""End-to-end tests through StreamRegistry using wire metadata documents."""

import json

import pytest

from statree.config import ConfigValidationError, MetadataConfiguration
from statree.errors import UnknownSchemeError, UnknownStreamError, ValidationError
from statree.metadata import MetadataRecord
from statree.schemas import ChunkLine, decode_record, parse_metadata
from statree.schemes import PlainNumber, PlainOrdered, SchemeKind, register_scheme
from statree.streams import StreamRegistry
from statree.tags import from_words, to_words

EIGHT_CHUNKS = [(i, i + 1) for i in range(1, 16, 2)]


def _wire(trapdoor, start, end):
    """Metadata document as a client would send it for chunk [start, end]."""
    return {
        "from": start,
        "to": end,
        "sum": 1,
        "count": 1,
        "min": start,
        "max": end,
        "first": start,
        "last": end,
        "tags": to_words(trapdoor.build_filter(f"test{start}-{end}")),
    }


@pytest.fixture
def registry_stream(full_config, trapdoor):
    registry = StreamRegistry()
    stream_id = registry.create_stream(full_config, k=2, public_key="pk-bytes")
    for start, end in EIGHT_CHUNKS:
        registry.insert(stream_id, f"{start}-{end}".encode(), _wire(trapdoor, start, end))
    return registry, stream_id


class TestParseMetadata:
    def test_aliases(self):
        parsed = parse_metadata({"from": 1, "to": 2, "sum": 5})
        assert (parsed.start, parsed.end) == (1, 2)
        assert parsed.sum == 5

    def test_json_string(self):
        parsed = parse_metadata(json.dumps({"from": 1, "to": 2, "tags": [3]}))
        assert parsed.tags == [3]

    def test_missing_interval(self):
        with pytest.raises(ValidationError, match="Invalid chunk metadata"):
            parse_metadata({"sum": 5})

    def test_bad_tags(self):
        with pytest.raises(ValidationError):
            parse_metadata({"from": 1, "to": 2, "tags": "not-a-list"})

    def test_chunk_line(self):
        line = ChunkLine.model_validate_json('{"payload": "x", "metadata": {"from": 1, "to": 1}}')
        assert line.payload == "x"
        assert line.metadata.end == 1


class TestDecodeRecord:
    def test_full(self, full_config):
        record = decode_record(
            {"from": 1, "to": 2, "sum": 3, "count": 1, "min": 1, "max": 2,
             "first": "a", "last": "b", "tags": [6]},
            full_config,
        )
        assert record == MetadataRecord(
            1, 2,
            sum=PlainNumber(3), count=PlainNumber(1),
            min=PlainOrdered(1), max=PlainOrdered(2),
            first="a", last="b", tags=6,
        )

    def test_disabled_fields_ignored(self, sum_count_config):
        record = decode_record({"from": 1, "to": 2, "sum": 3, "count": 1, "min": 9}, sum_count_config)
        assert record.min is None

    def test_missing_field_left_absent(self, sum_count_config):
        record = decode_record({"from": 1, "to": 2, "sum": 3}, sum_count_config)
        assert record.missing_fields(sum_count_config) == ["count"]

    def test_undecodable_value(self, sum_count_config):
        with pytest.raises(ValidationError, match="Cannot decode sum"):
            decode_record({"from": 1, "to": 2, "sum": "lots", "count": 1}, sum_count_config)

    def test_unregistered_algorithm(self):
        config = MetadataConfiguration(sum=True, algorithms={"sum": "paillier"})
        with pytest.raises(UnknownSchemeError):
            decode_record({"from": 1, "to": 2, "sum": "c1"}, config)

    def test_registered_algorithm(self):
        register_scheme(SchemeKind.ADDITIVE, "ecelgamal", lambda v: PlainNumber(int(v), "ec"))
        config = MetadataConfiguration(sum=True, algorithms={"sum": "ecelgamal"})
        record = decode_record({"from": 1, "to": 2, "sum": 4}, config)
        assert record.sum == PlainNumber(4, "ec")


class TestStreamRegistry:
    def test_get_statistics(self, registry_stream, trapdoor):
        registry, stream_id = registry_stream
        stats = registry.get_statistics(stream_id, 7, 12)

        assert stats["from"] == 7
        assert stats["to"] == 12
        assert stats["sum"] == 3
        assert stats["count"] == 3
        assert stats["min"] == 7
        assert stats["max"] == 12
        assert stats["first"] == 7
        assert stats["last"] == 12

        bits = from_words(stats["tags"])
        assert trapdoor.may_contain("test7-8", bits)
        assert trapdoor.may_contain("test11-12", bits)
        assert not trapdoor.may_contain("test8-9", bits)

    def test_statistics_only_enabled_fields(self, sum_count_config):
        registry = StreamRegistry()
        stream_id = registry.create_stream(sum_count_config, k=3)
        registry.insert(stream_id, b"a", {"from": 1, "to": 2, "sum": 4, "count": 1, "min": 0})
        assert registry.get_statistics(stream_id, 0, 10) == {
            "from": 1, "to": 2, "sum": 4, "count": 1,
        }

    def test_get_range(self, registry_stream):
        registry, stream_id = registry_stream
        assert registry.get_range(stream_id, 2, 7) == [b"1-2", b"3-4", b"5-6", b"7-8"]

    def test_insert_json_document(self, sum_count_config):
        registry = StreamRegistry()
        stream_id = registry.create_stream(sum_count_config)
        assert registry.insert(stream_id, b"a", '{"from": 1, "to": 2, "sum": 1, "count": 1}')
        assert registry.get_stream(stream_id).tree.size == 1

    def test_incomplete_metadata_rejected(self, registry_stream):
        registry, stream_id = registry_stream
        with pytest.raises(ValidationError, match="missing"):
            registry.insert(stream_id, b"x", {"from": 20, "to": 21, "sum": 1})
        assert registry.get_stream(stream_id).tree.size == len(EIGHT_CHUNKS)

    def test_unknown_stream(self):
        registry = StreamRegistry()
        with pytest.raises(UnknownStreamError):
            registry.get_range("missing", 0, 1)
        with pytest.raises(UnknownStreamError):
            registry.drop_stream("missing")

    def test_attributes_and_drop(self, registry_stream):
        registry, stream_id = registry_stream
        stream = registry.get_stream(stream_id)
        assert stream.attributes == {"public_key": "pk-bytes"}
        assert stream.k == 2
        assert registry.stream_ids() == [stream_id]

        registry.drop_stream(stream_id)
        assert registry.stream_ids() == []

    def test_caller_dict_changes_do_not_reach_stream(self):
        algorithms = {"sum": "plaintext", "count": "plaintext"}
        registry = StreamRegistry()
        stream_id = registry.create_stream(
            MetadataConfiguration(sum=True, count=True, algorithms=algorithms)
        )
        algorithms["sum"] = "paillier"

        registry.insert(stream_id, b"a", {"from": 1, "to": 2, "sum": 3, "count": 1})
        assert registry.get_statistics(stream_id, 0, 5)["sum"] == 3

    def test_create_rejects_bad_config(self):
        config = MetadataConfiguration(sum=True, algorithms={"sum": "ope"})
        with pytest.raises(ConfigValidationError):
            StreamRegistry().create_stream(config)

    def test_create_rejects_small_fanout(self, sum_count_config):
        with pytest.raises(ValidationError):
            StreamRegistry().create_stream(sum_count_config, k=1)
