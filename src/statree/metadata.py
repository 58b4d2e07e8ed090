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

"""MetadataRecord - the aggregate statistics attached to every tree node."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from typing import Any

from statree import tags as tagbits
from statree.config import STAT_NAMES, MetadataConfiguration


@dataclass
class MetadataRecord:
    """Statistics over the inclusive interval [start, end].

    Each statistic is present iff the owning configuration enables it. Values
    are opaque ciphertexts: ``sum``/``count`` support ``add``, ``min``/``max``
    support ``min``/``max``, ``first``/``last`` are carried verbatim and
    ``tags`` is an int bit vector.

    ``start``/``end`` are None only for the empty record produced by
    consolidating nothing, or for a node accumulator before its first merge.
    """

    start: int | None = None
    end: int | None = None
    sum: Any = None
    count: Any = None
    min: Any = None
    max: Any = None
    first: Any = None
    last: Any = None
    tags: int | None = None

    def matches_config(self, config: MetadataConfiguration) -> bool:
        """True iff every statistic the configuration enables is present."""
        return all(getattr(self, name) is not None for name in config.enabled_fields)

    def missing_fields(self, config: MetadataConfiguration) -> list[str]:
        """Names of enabled statistics that are absent."""
        return [name for name in config.enabled_fields if getattr(self, name) is None]

    @property
    def is_empty(self) -> bool:
        return self.start is None

    def copy(self, **changes: Any) -> MetadataRecord:
        """Return an independent record.

        Ciphertexts are immutable values, so sharing them between copies is
        safe; only the record container is new.
        """
        return dataclasses.replace(self, **changes)

    def restricted_to(
        self, config: MetadataConfiguration, **changes: Any
    ) -> MetadataRecord:
        """Copy with every statistic the configuration disables dropped."""
        disabled = {name: None for name in STAT_NAMES if not config.is_enabled(name)}
        return self.copy(**disabled, **changes)

    def to_dict(self, config: MetadataConfiguration) -> dict[str, Any]:
        """Wire form: only enabled, present statistics, keyed by name."""
        result: dict[str, Any] = {}
        if self.start is not None:
            result["from"] = self.start
            result["to"] = self.end

        for name in STAT_NAMES:
            if not config.is_enabled(name):
                continue
            value = getattr(self, name)
            if value is None:
                continue
            if name == "tags":
                result[name] = tagbits.to_words(value)
            elif hasattr(value, "to_wire"):
                result[name] = value.to_wire()
            else:
                result[name] = value
        return result

    def to_json(self, config: MetadataConfiguration) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(config), default=str)
