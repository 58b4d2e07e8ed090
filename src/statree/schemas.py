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

"""Pydantic schemas for inbound chunk metadata."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from statree import tags as tagbits
from statree.config import MetadataConfiguration
from statree.errors import ValidationError
from statree.metadata import MetadataRecord
from statree.schemes import STAT_KINDS, get_decoder


class ChunkMetadata(BaseModel):
    """Metadata document sent alongside each chunk.

    Statistics are kept in their wire form here; they are decoded against the
    stream's configuration by ``decode_record``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start: int = Field(alias="from")
    end: int = Field(alias="to")
    sum: Any = None
    count: Any = None
    min: Any = None
    max: Any = None
    first: Any = None
    last: Any = None
    tags: Optional[List[int]] = None


class ChunkLine(BaseModel):
    """One line of a JSON-lines chunk file."""

    payload: str
    metadata: ChunkMetadata


def parse_metadata(data: Union[dict, str, bytes]) -> ChunkMetadata:
    """Validate a metadata document given as a mapping or a JSON string."""
    try:
        if isinstance(data, (str, bytes)):
            return ChunkMetadata.model_validate_json(data)
        return ChunkMetadata.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid chunk metadata: {e}") from e


def decode_record(
    data: Union[dict, str, bytes, ChunkMetadata], config: MetadataConfiguration
) -> MetadataRecord:
    """Turn a wire metadata document into a MetadataRecord.

    Only statistics enabled by ``config`` are decoded; others are ignored.
    Enabled statistics that are missing stay absent, so the tree can reject
    the record as incomplete.

    Raises:
        ValidationError: If the document or one of its values is malformed
        UnknownSchemeError: If no codec is registered for an algorithm
    """
    parsed = data if isinstance(data, ChunkMetadata) else parse_metadata(data)

    values: dict[str, Any] = {}
    for stat in config.enabled_fields:
        raw = getattr(parsed, stat)
        if raw is None:
            continue
        if stat == "tags":
            values[stat] = tagbits.from_words(raw)
            continue
        decoder = get_decoder(STAT_KINDS[stat], config.algorithm_for(stat))
        try:
            values[stat] = decoder(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Cannot decode {stat}: {e}") from e

    return MetadataRecord(start=parsed.start, end=parsed.end, **values)
