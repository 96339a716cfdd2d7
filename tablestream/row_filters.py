# Copyright 2024 Google LLC
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
#
"""
Filters for Bigtable read requests.

Filters are immutable trees. Each node kind is its own frozen dataclass and
the ``RowFilter`` alias names the closed set of kinds. Composite nodes are
built with :func:`chain`, :func:`interleave` and :func:`condition`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Tuple, Union

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return value


@dataclass(frozen=True)
class PassAllFilter:
    """Row filter that matches all cells."""

    def _to_dict(self) -> dict[str, Any]:
        return {"pass_all_filter": True}


@dataclass(frozen=True)
class BlockAllFilter:
    """Row filter that doesn't match any cells."""

    def _to_dict(self) -> dict[str, Any]:
        return {"block_all_filter": True}


@dataclass(frozen=True)
class RowKeyRegexFilter:
    """
    Row filter for a row key regular expression.

    The ``regex`` must be a valid RE2 pattern. String values are encoded as
    utf-8.
    """

    regex: bytes

    def __post_init__(self):
        object.__setattr__(self, "regex", _to_bytes(self.regex))

    def _to_dict(self) -> dict[str, Any]:
        return {"row_key_regex_filter": self.regex}


@dataclass(frozen=True)
class FamilyNameRegexFilter:
    """Row filter for a column family name regular expression."""

    regex: str

    def __post_init__(self):
        if isinstance(self.regex, bytes):
            object.__setattr__(self, "regex", self.regex.decode())

    def _to_dict(self) -> dict[str, Any]:
        return {"family_name_regex_filter": self.regex}


@dataclass(frozen=True)
class ColumnQualifierRegexFilter:
    """Row filter for a column qualifier regular expression."""

    regex: bytes

    def __post_init__(self):
        object.__setattr__(self, "regex", _to_bytes(self.regex))

    def _to_dict(self) -> dict[str, Any]:
        return {"column_qualifier_regex_filter": self.regex}


@dataclass(frozen=True)
class ValueRegexFilter:
    """Row filter for a cell value regular expression."""

    regex: bytes

    def __post_init__(self):
        object.__setattr__(self, "regex", _to_bytes(self.regex))

    def _to_dict(self) -> dict[str, Any]:
        return {"value_regex_filter": self.regex}


@dataclass(frozen=True)
class CellsColumnLimitFilter:
    """
    Row filter to limit cells in a column.

    Keeps the ``num_cells`` most recent versions of each column.
    """

    num_cells: int

    def __post_init__(self):
        if self.num_cells < 1:
            raise ValueError("num_cells must be positive")

    def _to_dict(self) -> dict[str, Any]:
        return {"cells_per_column_limit_filter": self.num_cells}


@dataclass(frozen=True)
class CellsRowLimitFilter:
    """Row filter to limit cells in a row."""

    num_cells: int

    def __post_init__(self):
        if self.num_cells < 1:
            raise ValueError("num_cells must be positive")

    def _to_dict(self) -> dict[str, Any]:
        return {"cells_per_row_limit_filter": self.num_cells}


@dataclass(frozen=True)
class TimestampRange:
    """
    Range of time with inclusive lower and exclusive upper bounds.

    Either bound may be omitted. Bounds are truncated to millisecond
    granularity, as required by the service.
    """

    start: datetime | None = None
    end: datetime | None = None

    @staticmethod
    def _to_micros(value: datetime) -> int:
        # naive datetimes are read as UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        micros = (value - _EPOCH) // timedelta(microseconds=1)
        return micros // 1000 * 1000

    def _to_dict(self) -> dict[str, int]:
        timestamp_range: dict[str, int] = {}
        if self.start is not None:
            timestamp_range["start_timestamp_micros"] = self._to_micros(self.start)
        if self.end is not None:
            timestamp_range["end_timestamp_micros"] = self._to_micros(self.end)
        return timestamp_range


@dataclass(frozen=True)
class TimestampRangeFilter:
    """Row filter that limits cells to a range of time."""

    range_: TimestampRange

    def _to_dict(self) -> dict[str, Any]:
        return {"timestamp_range_filter": self.range_._to_dict()}


@dataclass(frozen=True)
class StripValueTransformerFilter:
    """Row filter that transforms cells into empty string (0 bytes)."""

    def _to_dict(self) -> dict[str, Any]:
        return {"strip_value_transformer": True}


@dataclass(frozen=True)
class RowFilterChain:
    """
    Chain of row filters.

    Sends rows through several filters in sequence. The output of each filter
    is the input of the next one.
    """

    filters: Tuple["RowFilter", ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "filters", tuple(self.filters))

    def _to_dict(self) -> dict[str, Any]:
        return {"chain": {"filters": [f._to_dict() for f in self.filters]}}


@dataclass(frozen=True)
class RowFilterUnion:
    """
    Union of row filters.

    Every filter is applied to the same input row and the outputs are merged,
    so a cell survives if any of the filters keeps it.
    """

    filters: Tuple["RowFilter", ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "filters", tuple(self.filters))

    def _to_dict(self) -> dict[str, Any]:
        return {"interleave": {"filters": [f._to_dict() for f in self.filters]}}


@dataclass(frozen=True)
class ConditionalRowFilter:
    """
    Conditional row filter which exhibits ternary behavior.

    If ``predicate_filter`` returns any cells in the row, ``true_filter`` is
    applied to the row, otherwise ``false_filter`` is. A missing branch
    returns no cells.

    .. note::

        The predicate does not execute atomically with the true and false
        filters, which may lead to inconsistent or unexpected results.
    """

    predicate_filter: "RowFilter"
    true_filter: "RowFilter | None" = None
    false_filter: "RowFilter | None" = None

    def _to_dict(self) -> dict[str, Any]:
        condition: dict[str, Any] = {
            "predicate_filter": self.predicate_filter._to_dict()
        }
        if self.true_filter is not None:
            condition["true_filter"] = self.true_filter._to_dict()
        if self.false_filter is not None:
            condition["false_filter"] = self.false_filter._to_dict()
        return {"condition": condition}


RowFilter = Union[
    PassAllFilter,
    BlockAllFilter,
    RowKeyRegexFilter,
    FamilyNameRegexFilter,
    ColumnQualifierRegexFilter,
    ValueRegexFilter,
    CellsColumnLimitFilter,
    CellsRowLimitFilter,
    TimestampRangeFilter,
    StripValueTransformerFilter,
    RowFilterChain,
    RowFilterUnion,
    ConditionalRowFilter,
]

_FILTER_TYPES = RowFilter.__args__  # type: ignore[attr-defined]


def is_row_filter(value: Any) -> bool:
    """Returns True if ``value`` is one of the RowFilter node kinds"""
    return isinstance(value, _FILTER_TYPES)


def _check_filters(filters: tuple[Any, ...]) -> None:
    for row_filter in filters:
        if not is_row_filter(row_filter):
            raise TypeError(f"expected a RowFilter, got {type(row_filter).__name__}")


def chain(*filters: RowFilter) -> RowFilterChain:
    """Feeds the output of each filter into the next one"""
    _check_filters(filters)
    return RowFilterChain(filters)


def interleave(*filters: RowFilter) -> RowFilterUnion:
    """Applies every filter to the same input and unions their outputs"""
    _check_filters(filters)
    return RowFilterUnion(filters)


def condition(
    predicate: RowFilter,
    true_filter: RowFilter | None = None,
    false_filter: RowFilter | None = None,
) -> ConditionalRowFilter:
    """Picks a branch for each row depending on whether ``predicate`` matches it"""
    _check_filters(tuple(f for f in (predicate, true_filter, false_filter) if f is not None))
    return ConditionalRowFilter(predicate, true_filter, false_filter)
