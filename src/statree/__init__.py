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

"""statree - statistics-preserving index for encrypted time series.

Public API:
    - AggregationTree: append chunks, query chunk ranges and aggregates
    - MetadataRecord / MetadataConfiguration: per-chunk statistics and the
      stream descriptor saying which ones are tracked
    - merge_into / consolidate: the merge algebra over records
    - StreamRegistry: stream id -> tree, with wire metadata decoding

Example:
    from statree import AggregationTree, MetadataConfiguration, MetadataRecord
    from statree.schemes import PlainNumber

    config = MetadataConfiguration(sum=True, count=True)
    tree = AggregationTree(config, k=4)
    tree.insert(b"chunk", 1, 2, MetadataRecord(sum=PlainNumber(5), count=PlainNumber(1)))
    tree.query_aggregate(0, 10).sum
"""

__version__ = "0.3.0"

from statree.config import MetadataConfiguration
from statree.consolidator import consolidate, merge_into
from statree.errors import (
    IncompatibleSchemeError,
    StatreeError,
    StructuralInvariantViolation,
    UnknownSchemeError,
    UnknownStreamError,
    ValidationError,
)
from statree.metadata import MetadataRecord
from statree.streams import StreamRegistry
from statree.tree import AggregationTree, InternalNode, LeafNode

__all__ = [
    "__version__",
    # Models
    "MetadataConfiguration",
    "MetadataRecord",
    "InternalNode",
    "LeafNode",
    # Core
    "AggregationTree",
    "StreamRegistry",
    "consolidate",
    "merge_into",
    # Errors
    "StatreeError",
    "ValidationError",
    "UnknownSchemeError",
    "StructuralInvariantViolation",
    "IncompatibleSchemeError",
    "UnknownStreamError",
]
