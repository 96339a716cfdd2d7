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

from typing import Any

from tablestream.row_filters import RowFilter
from tablestream.row_filters import is_row_filter
from tablestream.row_set import RowRange
from tablestream.row_set import RowSet


class ReadRowsQuery:
    """
    Class to encapsulate details of a read row request
    """

    def __init__(
        self,
        row_keys: list[str | bytes] | str | bytes | None = None,
        row_ranges: list[RowRange] | RowRange | None = None,
        limit: int | None = None,
        row_filter: RowFilter | None = None,
    ):
        """
        Create a new ReadRowsQuery

        Args:
          - row_keys: row keys to include in the query
                a query can contain multiple keys, but ranges should be preferred
          - row_ranges: ranges of rows to include in the query
          - limit: the maximum number of rows to return. None or 0 means no limit
                default: None (no limit)
          - row_filter: a RowFilter to apply to the query
        """
        self._row_set = RowSet(row_keys=row_keys, row_ranges=row_ranges)
        # keys or ranges that turned out empty select no rows, not the whole table
        self._explicit_row_set = bool(row_keys) or bool(row_ranges)
        self.limit: int | None = limit
        self.filter: RowFilter | None = row_filter

    @classmethod
    def from_row_set(
        cls,
        row_set: RowSet,
        limit: int | None = None,
        row_filter: RowFilter | None = None,
    ) -> ReadRowsQuery:
        """
        Create a query scanning exactly ``row_set``.

        Unlike the constructor, an empty RowSet here reads no rows at all.
        """
        query = cls(limit=limit, row_filter=row_filter)
        query._row_set = row_set
        query._explicit_row_set = True
        return query

    @property
    def limit(self) -> int | None:
        return self._limit

    @limit.setter
    def limit(self, new_limit: int | None):
        """
        Set the maximum number of rows to return by this query.

        None or 0 means no limit

        Raises:
          - ValueError if new_limit is < 0
        """
        if new_limit is not None and new_limit < 0:
            raise ValueError("limit must be >= 0")
        self._limit = new_limit

    @property
    def filter(self) -> RowFilter | None:
        return self._filter

    @filter.setter
    def filter(self, row_filter: RowFilter | None):
        if not (row_filter is None or is_row_filter(row_filter)):
            raise ValueError("row_filter must be a RowFilter")
        self._filter = row_filter

    def add_key(self, row_key: str | bytes):
        """
        Add a row key to this query

        A query can contain multiple keys, but ranges should be preferred

        Raises:
          - ValueError if an input is not a string or bytes
        """
        if not isinstance(row_key, (str, bytes)):
            raise ValueError("row_key must be string or bytes")
        self._row_set = self._row_set.union(RowRange._from_key(row_key))
        self._explicit_row_set = True

    def add_range(self, row_range: RowRange | dict[str, bytes]):
        """
        Add a range of row keys to this query.

        Args:
          - row_range: a range of row keys to add to this query
              Can be a RowRange object or a dict representation in
              RowRange proto format
        """
        if isinstance(row_range, dict):
            row_range = RowRange._from_dict(row_range)
        if not isinstance(row_range, RowRange):
            raise ValueError("row_range must be a RowRange or dict")
        self._row_set = self._row_set.union(row_range)
        self._explicit_row_set = True

    @property
    def row_set(self) -> RowSet:
        """
        The rows targeted by this query. A query with no keys or ranges
        targets the whole table.
        """
        if self._row_set.is_empty() and not self._explicit_row_set:
            return RowSet.all_rows()
        return self._row_set

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert this query into a dictionary that can be used to construct a
        ReadRowsRequest
        """
        final_dict: dict[str, Any] = {"rows": self.row_set._to_dict()}
        if self.filter is not None:
            final_dict["filter"] = self.filter._to_dict()
        if self.limit:
            final_dict["rows_limit"] = self.limit
        return final_dict

    def __eq__(self, other):
        if not isinstance(other, ReadRowsQuery):
            return False
        return (
            self.row_set == other.row_set
            and self.filter == other.filter
            and (self.limit or None) == (other.limit or None)
        )

    def __repr__(self):
        return f"ReadRowsQuery(row_set={self.row_set!r}, row_filter={self.filter!r}, limit={self.limit})"
