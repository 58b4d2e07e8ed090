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

"""Merge algebra for MetadataRecord values.

Two entry points:

- ``merge_into``: incremental fold used by roll-up. Callers must feed records
  in non-decreasing time order because ``first``/``last`` rely on it.
- ``consolidate``: order-independent fold used to answer aggregate queries.
  ``first``/``last`` are chosen by time rather than by position.
"""

from __future__ import annotations

from typing import Iterable, Optional

from statree import tags as tagbits
from statree.capabilities import HomomorphicAddable, OrderComparable
from statree.config import MetadataConfiguration
from statree.metadata import MetadataRecord


def _add(
    acc: Optional[HomomorphicAddable], value: HomomorphicAddable
) -> HomomorphicAddable:
    return value if acc is None else acc.add(value)


def _lesser(acc: Optional[OrderComparable], value: OrderComparable) -> OrderComparable:
    return value if acc is None else acc.min(value)


def _greater(acc: Optional[OrderComparable], value: OrderComparable) -> OrderComparable:
    return value if acc is None else acc.max(value)


def _fold_commutative(
    config: MetadataConfiguration, accumulator: MetadataRecord, incoming: MetadataRecord
) -> None:
    """Fold the order-independent statistics of incoming into accumulator."""
    if config.sum:
        accumulator.sum = _add(accumulator.sum, incoming.sum)
    if config.count:
        accumulator.count = _add(accumulator.count, incoming.count)
    if config.min:
        accumulator.min = _lesser(accumulator.min, incoming.min)
    if config.max:
        accumulator.max = _greater(accumulator.max, incoming.max)
    if config.tags:
        accumulator.tags = tagbits.union(accumulator.tags, incoming.tags)


def merge_into(
    config: MetadataConfiguration,
    accumulator: MetadataRecord,
    incoming: MetadataRecord,
) -> MetadataRecord:
    """Fold one more record into a running accumulator, in place.

    Precondition: calls arrive in non-decreasing ``incoming.start`` order.

    Returns:
        The accumulator, for chaining
    """
    if accumulator.start is None:
        accumulator.start = incoming.start
    accumulator.end = incoming.end

    _fold_commutative(config, accumulator, incoming)

    if config.first and accumulator.first is None:
        accumulator.first = incoming.first
    if config.last:
        accumulator.last = incoming.last

    return accumulator


def consolidate(
    config: MetadataConfiguration, records: Iterable[MetadataRecord]
) -> MetadataRecord:
    """Merge any number of records into a new, independently owned record.

    sum/count/min/max/tags are folded in input order, which does not matter
    for their algebra. ``first`` comes from the record with the earliest
    start; ``last`` from the record with the greatest end, ties going to the
    later start and then to the later record.

    An empty input gives an empty record with every statistic absent.
    """
    records = list(records)
    result = MetadataRecord()
    if not records:
        return result

    result.start = min(r.start for r in records)
    result.end = max(r.end for r in records)

    for record in records:
        _fold_commutative(config, result, record)

    if config.first or config.last:
        ordered = sorted(records, key=lambda r: r.start)
        if config.first:
            result.first = ordered[0].first
        if config.last:
            result.last = max(reversed(ordered), key=lambda r: (r.end, r.start)).last

    return result
