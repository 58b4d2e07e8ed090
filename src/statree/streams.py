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

"""In-memory registry of streams, each backed by its own aggregation tree.

This is the surface the network layer calls into: it owns the mapping from
stream id to tree and translates wire metadata documents into records.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Union

from statree.config import DEFAULT_FANOUT, MetadataConfiguration
from statree.errors import UnknownStreamError
from statree.schemas import decode_record
from statree.tree.aggregation_tree import AggregationTree

logger = logging.getLogger(__name__)


@dataclass
class Stream:
    """A stream's fixed configuration and its tree."""

    stream_id: str
    config: MetadataConfiguration
    tree: AggregationTree
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def k(self) -> int:
        return self.tree.k


class StreamRegistry:
    """Creates streams and routes inserts and queries to their trees."""

    def __init__(self) -> None:
        self._streams: dict[str, Stream] = {}
        self._lock = threading.Lock()

    def create_stream(
        self,
        config: MetadataConfiguration,
        k: int = DEFAULT_FANOUT,
        **attributes: Any,
    ) -> str:
        """Create a stream and return its id.

        ``attributes`` are stored verbatim (e.g. the public key the client
        registered) and never interpreted.
        """
        config.validate()
        tree = AggregationTree(config, k)
        stream_id = uuid.uuid4().hex
        with self._lock:
            self._streams[stream_id] = Stream(stream_id, config, tree, dict(attributes))
        logger.info(
            "Created stream %s (k=%d, stats=%s)",
            stream_id, k, ",".join(config.enabled_fields) or "none",
        )
        return stream_id

    def get_stream(self, stream_id: str) -> Stream:
        with self._lock:
            stream = self._streams.get(stream_id)
        if stream is None:
            raise UnknownStreamError(f"Stream not found: {stream_id}")
        return stream

    def drop_stream(self, stream_id: str) -> None:
        """Forget a stream and its tree."""
        with self._lock:
            if self._streams.pop(stream_id, None) is None:
                raise UnknownStreamError(f"Stream not found: {stream_id}")
        logger.info("Dropped stream %s", stream_id)

    def stream_ids(self) -> list[str]:
        with self._lock:
            return list(self._streams)

    def insert(
        self, stream_id: str, payload: bytes, metadata: Union[dict, str, bytes]
    ) -> bool:
        """Decode a metadata document and append the chunk to the stream.

        Raises:
            UnknownStreamError: If the stream does not exist
            ValidationError: If the metadata is malformed or incomplete
        """
        stream = self.get_stream(stream_id)
        record = decode_record(metadata, stream.config)
        stream.tree.insert(payload, record.start, record.end, record)
        return True

    def get_range(self, stream_id: str, start: int, end: int) -> list[bytes]:
        """Payloads of chunks overlapping [start, end], in time order."""
        return self.get_stream(stream_id).tree.query_chunks(start, end)

    def get_statistics(self, stream_id: str, start: int, end: int) -> dict[str, Any]:
        """Consolidated statistics over [start, end] in wire form."""
        stream = self.get_stream(stream_id)
        record = stream.tree.query_aggregate(start, end)
        return record.to_dict(stream.config)
