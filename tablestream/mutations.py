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
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union

# special value for SetCell mutation timestamps. If set, server will assign a timestamp
SERVER_SIDE_TIMESTAMP = -1

# mutation entries above this should be rejected
_MUTATE_ROWS_REQUEST_MUTATION_LIMIT = 100_000


def _to_bytes(value: str | bytes, name: str) -> bytes:
    if isinstance(value, str):
        return value.encode()
    if not isinstance(value, bytes):
        raise TypeError(f"{name} must be bytes or str")
    return value


@dataclass(frozen=True)
class SetCell:
    """
    Mutation to set the value of a cell

    Args:
      - family: The name of the column family to which the new cell belongs.
      - qualifier: The column qualifier of the new cell.
      - new_value: The value of the new cell. int values are packed as a
            64-bit big-endian signed integer.
      - timestamp_micros: The timestamp of the new cell. If None or
            SERVER_SIDE_TIMESTAMP, the server assigns the time on arrival,
            and the mutation is not idempotent.
    """

    family: str
    qualifier: bytes
    new_value: bytes
    timestamp_micros: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        new_value: Any = self.new_value
        if isinstance(new_value, int):
            new_value = new_value.to_bytes(8, "big", signed=True)
        object.__setattr__(self, "new_value", _to_bytes(new_value, "new_value"))
        if self.timestamp_micros is not None:
            if self.timestamp_micros < SERVER_SIDE_TIMESTAMP:
                raise ValueError(
                    "timestamp_micros must be non-negative (or -1 for server-side timestamp)"
                )
            if self.timestamp_micros != SERVER_SIDE_TIMESTAMP:
                # bigtable stores timestamps at millisecond granularity
                object.__setattr__(
                    self, "timestamp_micros", self.timestamp_micros // 1000 * 1000
                )

    def is_idempotent(self) -> bool:
        """Check if the mutation's timestamp was chosen by the caller"""
        return (
            self.timestamp_micros is not None
            and self.timestamp_micros != SERVER_SIDE_TIMESTAMP
        )

    def _to_dict(self) -> dict[str, Any]:
        timestamp = (
            self.timestamp_micros
            if self.timestamp_micros is not None
            else SERVER_SIDE_TIMESTAMP
        )
        return {
            "set_cell": {
                "family_name": self.family,
                "column_qualifier": self.qualifier,
                "timestamp_micros": timestamp,
                "value": self.new_value,
            }
        }


@dataclass(frozen=True)
class DeleteRangeFromColumn:
    """
    Mutation to delete the cells of a column within a timestamp range.
    ``end_timestamp_micros`` of None leaves the range unbounded.
    """

    family: str
    qualifier: bytes
    start_timestamp_micros: int | None = None
    end_timestamp_micros: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        if (
            self.start_timestamp_micros is not None
            and self.end_timestamp_micros is not None
            and self.start_timestamp_micros > self.end_timestamp_micros
        ):
            raise ValueError("start_timestamp_micros must be <= end_timestamp_micros")

    def is_idempotent(self) -> bool:
        return True

    def _to_dict(self) -> dict[str, Any]:
        timestamp_range = {}
        if self.start_timestamp_micros is not None:
            timestamp_range["start_timestamp_micros"] = self.start_timestamp_micros
        if self.end_timestamp_micros is not None:
            timestamp_range["end_timestamp_micros"] = self.end_timestamp_micros
        return {
            "delete_from_column": {
                "family_name": self.family,
                "column_qualifier": self.qualifier,
                "time_range": timestamp_range,
            }
        }


@dataclass(frozen=True)
class DeleteAllFromFamily:
    family_to_delete: str

    def is_idempotent(self) -> bool:
        return True

    def _to_dict(self) -> dict[str, Any]:
        return {"delete_from_family": {"family_name": self.family_to_delete}}


@dataclass(frozen=True)
class DeleteAllFromRow:
    def is_idempotent(self) -> bool:
        return True

    def _to_dict(self) -> dict[str, Any]:
        return {"delete_from_row": {}}


@dataclass(frozen=True)
class IncrementCell:
    """
    Mutation to add ``increment_amount`` to a cell holding a 64-bit
    big-endian integer. Applying it twice increments twice.
    """

    family: str
    qualifier: bytes
    increment_amount: int = 1

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        if not isinstance(self.increment_amount, int):
            raise TypeError("increment_amount must be an integer")

    def is_idempotent(self) -> bool:
        return False

    def _to_dict(self) -> dict[str, Any]:
        return {
            "increment": {
                "family_name": self.family,
                "column_qualifier": self.qualifier,
                "increment_amount": self.increment_amount,
            }
        }


@dataclass(frozen=True)
class AppendToCell:
    """Mutation to append bytes to the current value of a cell."""

    family: str
    qualifier: bytes
    append_value: bytes

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        object.__setattr__(
            self, "append_value", _to_bytes(self.append_value, "append_value")
        )

    def is_idempotent(self) -> bool:
        return False

    def _to_dict(self) -> dict[str, Any]:
        return {
            "append": {
                "family_name": self.family,
                "column_qualifier": self.qualifier,
                "append_value": self.append_value,
            }
        }


Mutation = Union[
    SetCell,
    DeleteRangeFromColumn,
    DeleteAllFromFamily,
    DeleteAllFromRow,
    IncrementCell,
    AppendToCell,
]


class RowMutationEntry:
    """
    An ordered batch of mutations applied atomically to a single row.
    """

    __slots__ = ("row_key", "mutations")

    def __init__(self, row_key: str | bytes, mutations: Mutation | Sequence[Mutation]):
        if isinstance(row_key, str):
            row_key = row_key.encode()
        if not isinstance(mutations, (list, tuple)):
            mutations = [mutations]
        if len(mutations) == 0:
            raise ValueError("mutations must not be empty")
        elif len(mutations) > _MUTATE_ROWS_REQUEST_MUTATION_LIMIT:
            raise ValueError(
                f"entries must have <= {_MUTATE_ROWS_REQUEST_MUTATION_LIMIT} mutations"
            )
        self.row_key: bytes = row_key
        self.mutations: Tuple[Mutation, ...] = tuple(mutations)

    def is_idempotent(self) -> bool:
        """Check if all mutations in the entry are idempotent"""
        return all(mutation.is_idempotent() for mutation in self.mutations)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "row_key": self.row_key,
            "mutations": [mutation._to_dict() for mutation in self.mutations],
        }

    def __eq__(self, other):
        if not isinstance(other, RowMutationEntry):
            return NotImplemented
        return self.row_key == other.row_key and self.mutations == other.mutations

    def __hash__(self):
        return hash((self.row_key, self.mutations))

    def __repr__(self):
        return f"RowMutationEntry(row_key={self.row_key!r}, mutations={list(self.mutations)})"
