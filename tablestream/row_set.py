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
Row key ranges and sets of ranges.

Both types are immutable values. Every operation returns a new object, so
instances can be shared freely between readers and retries.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator


def _to_bytes(key: str | bytes, name: str) -> bytes:
    if isinstance(key, str):
        return key.encode()
    if not isinstance(key, bytes):
        raise ValueError(f"{name} must be a string or bytes")
    return key


@dataclass(frozen=True)
class _RangePoint:
    """Model class for a point in a row range"""

    key: bytes
    is_inclusive: bool


def _max_start(a: _RangePoint | None, b: _RangePoint | None) -> _RangePoint | None:
    # None is an unbounded start, lower than every key
    if a is None:
        return b
    if b is None:
        return a
    if a.key != b.key:
        return a if a.key > b.key else b
    return _RangePoint(a.key, a.is_inclusive and b.is_inclusive)


def _min_end(a: _RangePoint | None, b: _RangePoint | None) -> _RangePoint | None:
    # None is an unbounded end, higher than every key
    if a is None:
        return b
    if b is None:
        return a
    if a.key != b.key:
        return a if a.key < b.key else b
    return _RangePoint(a.key, a.is_inclusive and b.is_inclusive)


def _max_end(a: _RangePoint | None, b: _RangePoint | None) -> _RangePoint | None:
    if a is None or b is None:
        return None
    if a.key != b.key:
        return a if a.key > b.key else b
    return _RangePoint(a.key, a.is_inclusive or b.is_inclusive)


def _start_sort_key(row_range: RowRange) -> tuple:
    start = row_range.start
    if start is None:
        return (0, b"", 0)
    # an inclusive start sorts before an exclusive one on the same key
    return (1, start.key, 0 if start.is_inclusive else 1)


@dataclass(frozen=True)
class RowRange:
    """
    A contiguous interval of row keys.

    Either bound may be omitted to leave that side unbounded. By default the
    start key is inclusive and the end key is exclusive.
    """

    start: _RangePoint | None
    end: _RangePoint | None

    def __init__(
        self,
        start_key: str | bytes | None = None,
        end_key: str | bytes | None = None,
        start_is_inclusive: bool | None = None,
        end_is_inclusive: bool | None = None,
    ):
        # check for invalid combinations of arguments
        if start_is_inclusive is None:
            start_is_inclusive = True
        elif start_key is None:
            raise ValueError("start_is_inclusive must be set with start_key")
        if end_is_inclusive is None:
            end_is_inclusive = False
        elif end_key is None:
            raise ValueError("end_is_inclusive must be set with end_key")
        if start_key is not None:
            start_key = _to_bytes(start_key, "start_key")
        if end_key is not None:
            end_key = _to_bytes(end_key, "end_key")
        # an empty key leaves that side unbounded, as it does on the wire
        start = _RangePoint(start_key, start_is_inclusive) if start_key else None
        end = _RangePoint(end_key, end_is_inclusive) if end_key else None
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def _from_points(
        cls, start: _RangePoint | None, end: _RangePoint | None
    ) -> RowRange:
        """Creates a RowRange from two RangePoints"""
        kwargs: dict[str, Any] = {}
        if start is not None:
            kwargs["start_key"] = start.key
            kwargs["start_is_inclusive"] = start.is_inclusive
        if end is not None:
            kwargs["end_key"] = end.key
            kwargs["end_is_inclusive"] = end.is_inclusive
        return cls(**kwargs)

    @classmethod
    def _from_key(cls, row_key: str | bytes) -> RowRange:
        """Creates the closed range [row_key, row_key]"""
        if not row_key:
            raise ValueError("row_key must not be empty")
        return cls(row_key, row_key, True, True)

    @classmethod
    def _from_dict(cls, data: dict[str, bytes]) -> RowRange:
        """Creates a RowRange from a dictionary"""
        start_key = data.get("start_key_closed", data.get("start_key_open"))
        end_key = data.get("end_key_closed", data.get("end_key_open"))
        start_is_inclusive = "start_key_closed" in data if start_key is not None else None
        end_is_inclusive = "end_key_closed" in data if end_key is not None else None
        return cls(start_key, end_key, start_is_inclusive, end_is_inclusive)

    def _to_dict(self) -> dict[str, bytes]:
        """Converts this object to a dictionary"""
        output = {}
        if self.start is not None:
            key = "start_key_closed" if self.start.is_inclusive else "start_key_open"
            output[key] = self.start.key
        if self.end is not None:
            key = "end_key_closed" if self.end.is_inclusive else "end_key_open"
            output[key] = self.end.key
        return output

    def is_empty(self) -> bool:
        """
        Returns True if no row key can fall inside this range.
        """
        if self.start is None or self.end is None:
            return False
        if (
            not self.start.is_inclusive
            and not self.end.is_inclusive
            and self.end.key == self.start.key + b"\x00"
        ):
            # no key sorts strictly between a key and its successor
            return True
        if self.start.key != self.end.key:
            return self.start.key > self.end.key
        return not (self.start.is_inclusive and self.end.is_inclusive)

    def is_point(self) -> bool:
        """Returns True if this range holds exactly one row key"""
        return (
            self.start is not None
            and self.end is not None
            and self.start.key == self.end.key
            and self.start.is_inclusive
            and self.end.is_inclusive
        )

    def contains(self, row_key: str | bytes) -> bool:
        row_key = _to_bytes(row_key, "row_key")
        if self.start is not None:
            if row_key < self.start.key:
                return False
            if row_key == self.start.key and not self.start.is_inclusive:
                return False
        if self.end is not None:
            if row_key > self.end.key:
                return False
            if row_key == self.end.key and not self.end.is_inclusive:
                return False
        return True

    def intersect(self, other: RowRange) -> RowRange:
        """
        Returns the range of keys found in both ``self`` and ``other``.

        The result may be empty; check with ``is_empty()``.
        """
        return RowRange._from_points(
            _max_start(self.start, other.start), _min_end(self.end, other.end)
        )


def _overlaps_or_touches(first: RowRange, second: RowRange) -> bool:
    """
    Returns True if the union of two ranges is contiguous.

    ``first`` must not start after ``second``.
    """
    if first.end is None or second.start is None:
        return True
    if first.end.key != second.start.key:
        return first.end.key > second.start.key
    return first.end.is_inclusive or second.start.is_inclusive


def _normalize(ranges: Iterable[RowRange]) -> tuple[RowRange, ...]:
    merged: list[RowRange] = []
    for row_range in sorted(
        (r for r in ranges if not r.is_empty()), key=_start_sort_key
    ):
        if merged and _overlaps_or_touches(merged[-1], row_range):
            previous = merged[-1]
            merged[-1] = RowRange._from_points(
                previous.start, _max_end(previous.end, row_range.end)
            )
        else:
            merged.append(row_range)
    return tuple(merged)


class RowSet:
    """
    A union of row ranges and individual row keys.

    Keys are kept as closed single-key ranges, so the set is always stored
    as sorted, disjoint, non-touching ranges. ``RowSet()`` is the empty set;
    use ``RowSet.all_rows()`` for the whole table.
    """

    __slots__ = ("_ranges",)

    def __init__(
        self,
        row_keys: Iterable[str | bytes] | str | bytes | None = None,
        row_ranges: Iterable[RowRange] | RowRange | None = None,
    ):
        if isinstance(row_keys, (str, bytes)):
            row_keys = [row_keys]
        if isinstance(row_ranges, RowRange):
            row_ranges = [row_ranges]
        ranges: list[RowRange] = []
        for row_range in row_ranges or ():
            if not isinstance(row_range, RowRange):
                raise ValueError("row_ranges must contain RowRange objects")
            ranges.append(row_range)
        for key in row_keys or ():
            ranges.append(RowRange._from_key(key))
        self._ranges: tuple[RowRange, ...] = _normalize(ranges)

    @classmethod
    def all_rows(cls) -> RowSet:
        """Returns a RowSet covering every row key"""
        return cls(row_ranges=RowRange())

    @classmethod
    def _from_ranges(cls, ranges: Iterable[RowRange]) -> RowSet:
        return cls(row_ranges=list(ranges))

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> RowSet:
        """Creates a RowSet from its request dictionary form"""
        return cls(
            row_keys=data.get("row_keys", []),
            row_ranges=[RowRange._from_dict(r) for r in data.get("row_ranges", [])],
        )

    @property
    def ranges(self) -> tuple[RowRange, ...]:
        """All normalized ranges, single keys included, in key order"""
        return self._ranges

    @property
    def row_keys(self) -> tuple[bytes, ...]:
        return tuple(r.start.key for r in self._ranges if r.is_point())  # type: ignore[union-attr]

    @property
    def row_ranges(self) -> tuple[RowRange, ...]:
        return tuple(r for r in self._ranges if not r.is_point())

    def is_empty(self) -> bool:
        return len(self._ranges) == 0

    def contains(self, row_key: str | bytes) -> bool:
        return any(r.contains(row_key) for r in self._ranges)

    def intersect(self, other: RowSet | RowRange) -> RowSet:
        """
        Returns the keys present in both ``self`` and ``other``.

        Computed as the union of every pairwise range intersection.
        """
        other_ranges = (other,) if isinstance(other, RowRange) else other.ranges
        return RowSet._from_ranges(
            a.intersect(b) for a in self._ranges for b in other_ranges
        )

    def union(self, other: RowSet | RowRange) -> RowSet:
        other_ranges = (other,) if isinstance(other, RowRange) else other.ranges
        return RowSet._from_ranges(self._ranges + tuple(other_ranges))

    def _to_dict(self) -> dict[str, Any]:
        """
        Converts this set into the ``rows`` field of a ReadRows request
        """
        return {
            "row_keys": list(self.row_keys),
            "row_ranges": [r._to_dict() for r in self.row_ranges],
        }

    def __iter__(self) -> Iterator[RowRange]:
        return iter(self._ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def __eq__(self, other):
        if not isinstance(other, RowSet):
            return NotImplemented
        return self._ranges == other._ranges

    def __hash__(self):
        return hash(self._ranges)

    def __repr__(self):
        return f"RowSet({list(self._ranges)})"
