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

from collections import OrderedDict
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Any, Sequence, Tuple


@total_ordering
@dataclass(frozen=True)
class Cell:
    """
    A single versioned value, located by (row, family, qualifier, timestamp).

    Cells sort in Bigtable native order: family and qualifier ascending,
    then newest timestamp first.
    """

    value: bytes
    row_key: bytes
    family: str
    qualifier: bytes
    timestamp_micros: int
    labels: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if isinstance(self.qualifier, str):
            object.__setattr__(self, "qualifier", self.qualifier.encode())
        object.__setattr__(self, "labels", tuple(self.labels))

    def __int__(self) -> int:
        """
        Interprets value as a 64-bit big-endian signed integer, as written by
        an IncrementCell mutation
        """
        return int.from_bytes(self.value, byteorder="big", signed=True)

    def to_dict(self) -> dict[str, Any]:
        cell_dict: dict[str, Any] = {
            "value": self.value,
            "timestamp_micros": self.timestamp_micros,
        }
        if self.labels:
            cell_dict["labels"] = list(self.labels)
        return cell_dict

    def _ordering(self) -> tuple:
        return (
            self.family,
            self.qualifier,
            -self.timestamp_micros,
            self.value,
            self.labels,
        )

    def __lt__(self, other) -> bool:
        if not isinstance(other, Cell):
            return NotImplemented
        return self._ordering() < other._ordering()


class Row(Sequence[Cell]):
    """
    Model class for row data returned from server

    Does not represent all data contained in the row, only data returned by a
    query. Can be indexed by position, by family, or by (family, qualifier):

        cells = row["family", "qualifier"]
    """

    def __init__(self, key: bytes, cells: Sequence[Cell]):
        self.row_key = key
        self._cells_map: dict[str, dict[bytes, list[Cell]]] = OrderedDict()
        self._cells_list: list[Cell] = []
        for cell in cells:
            family = self._cells_map.setdefault(cell.family, OrderedDict())
            family.setdefault(cell.qualifier, []).append(cell)
            self._cells_list.append(cell)

    def get_cells(
        self, family: str | None = None, qualifier: str | bytes | None = None
    ) -> list[Cell]:
        """
        Returns cells for a family, or for a (family, qualifier) pair.

        If family or qualifier not passed, will include all
        """
        if family is None:
            if qualifier is not None:
                raise ValueError("Qualifier passed without family")
            return list(self._cells_list)
        if family not in self._cells_map:
            raise ValueError(f"Family '{family}' not found in row '{self.row_key!r}'")
        if qualifier is None:
            return [
                cell
                for cell_batch in self._cells_map[family].values()
                for cell in cell_batch
            ]
        if isinstance(qualifier, str):
            qualifier = qualifier.encode("utf-8")
        if qualifier not in self._cells_map[family]:
            raise ValueError(
                f"Qualifier '{qualifier!r}' not found in family '{family}' in row '{self.row_key!r}'"
            )
        return list(self._cells_map[family][qualifier])

    def __getitem__(self, index):
        if isinstance(index, str):
            return self.get_cells(family=index)
        elif isinstance(index, tuple) and len(index) == 2:
            return self.get_cells(family=index[0], qualifier=index[1])
        elif isinstance(index, (int, slice)):
            return self._cells_list[index]
        raise TypeError("Index must be family_id, (family_id, qualifier), int, or slice")

    def __len__(self) -> int:
        return len(self._cells_list)

    def __eq__(self, other):
        if not isinstance(other, Row):
            return False
        return self.row_key == other.row_key and self._cells_list == other._cells_list

    def __hash__(self):
        return hash((self.row_key, tuple(self._cells_list)))

    def __repr__(self):
        return f"Row(key={self.row_key!r}, cells={self._cells_list!r})"
