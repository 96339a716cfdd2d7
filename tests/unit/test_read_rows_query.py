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

import pytest

from tablestream.row_filters import CellsRowLimitFilter
from tablestream.row_filters import PassAllFilter
from tablestream.row_set import RowRange
from tablestream.row_set import RowSet


class TestReadRowsQuery:
    @staticmethod
    def _get_target_class():
        from tablestream.read_rows_query import ReadRowsQuery

        return ReadRowsQuery

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    def test_ctor_defaults(self):
        query = self._make_one()
        assert query.row_set == RowSet.all_rows()
        assert query.filter is None
        assert query.limit is None

    def test_ctor_explicit(self):
        row_filter = PassAllFilter()
        query = self._make_one(
            ["row_key_1", "row_key_2"],
            RowRange("row_key_3", "row_key_4"),
            limit=10,
            row_filter=row_filter,
        )
        assert query.row_set.row_keys == (b"row_key_1", b"row_key_2")
        assert query.row_set.row_ranges == (RowRange("row_key_3", "row_key_4"),)
        assert query.filter == row_filter
        assert query.limit == 10

    def test_ctor_invalid_limit(self):
        with pytest.raises(ValueError) as exc:
            self._make_one(limit=-1)
        assert str(exc.value) == "limit must be >= 0"

    def test_set_filter(self):
        query = self._make_one()
        query.filter = CellsRowLimitFilter(1)
        assert query.filter == CellsRowLimitFilter(1)
        query.filter = None
        assert query.filter is None
        with pytest.raises(ValueError) as exc:
            query.filter = 1
        assert str(exc.value) == "row_filter must be a RowFilter"
        with pytest.raises(ValueError):
            self._make_one(row_filter={"pass_all_filter": True})

    def test_set_limit(self):
        query = self._make_one()
        query.limit = 10
        assert query.limit == 10
        query.limit = 0
        assert query.limit == 0
        with pytest.raises(ValueError):
            query.limit = -100

    def test_add_key(self):
        query = self._make_one()
        query.add_key("test_row")
        query.add_key(b"test_row2")
        assert query.row_set.row_keys == (b"test_row", b"test_row2")
        # duplicates collapse
        query.add_key("test_row")
        assert len(query.row_set.row_keys) == 2

    def test_add_key_invalid(self):
        query = self._make_one()
        with pytest.raises(ValueError) as exc:
            query.add_key(1)
        assert str(exc.value) == "row_key must be string or bytes"

    def test_add_range(self):
        query = self._make_one()
        query.add_range(RowRange("a", "c"))
        query.add_range({"start_key_open": b"b", "end_key_closed": b"d"})
        assert query.row_set.row_ranges == (RowRange("a", "d", True, True),)

    def test_add_range_invalid(self):
        query = self._make_one()
        with pytest.raises(ValueError):
            query.add_range("a")

    def test_empty_ranges_select_no_rows(self):
        query = self._make_one(row_ranges=RowRange("b", "a"))
        assert query.row_set.is_empty()
        query = self._make_one()
        query.add_range(RowRange("c", "c"))
        assert query.row_set.is_empty()

    def test_from_row_set(self):
        row_set = RowSet(row_keys=["a"])
        query = self._get_target_class().from_row_set(row_set, limit=3)
        assert query.row_set is row_set
        assert query.limit == 3

    def test_from_empty_row_set_reads_nothing(self):
        query = self._get_target_class().from_row_set(RowSet())
        assert query.row_set.is_empty()

    def test_to_dict_full_table(self):
        assert self._make_one()._to_dict() == {
            "rows": {"row_keys": [], "row_ranges": [{}]}
        }

    def test_to_dict(self):
        query = self._make_one(
            row_keys=["k"],
            row_ranges=RowRange("a", "c"),
            limit=5,
            row_filter=PassAllFilter(),
        )
        assert query._to_dict() == {
            "rows": {
                "row_keys": [b"k"],
                "row_ranges": [{"start_key_closed": b"a", "end_key_open": b"c"}],
            },
            "filter": {"pass_all_filter": True},
            "rows_limit": 5,
        }

    def test_to_dict_zero_limit_omitted(self):
        query = self._make_one(limit=0)
        assert "rows_limit" not in query._to_dict()

    def test_eq(self):
        first = self._make_one(row_keys=["a", "b"], limit=0)
        second = self._make_one(row_keys=["b", "a"])
        assert first == second
        assert first != self._make_one(row_keys=["a"])
        assert first != self._make_one(row_keys=["a", "b"], limit=1)
        assert first != self._make_one(row_keys=["a", "b"], row_filter=PassAllFilter())
        assert first != "query"

    def test_repr(self):
        query = self._make_one(row_keys=["a"], limit=2)
        assert repr(query) == (
            "ReadRowsQuery(row_set=RowSet([RowRange(start=_RangePoint(key=b'a', "
            "is_inclusive=True), end=_RangePoint(key=b'a', is_inclusive=True))]), "
            "row_filter=None, limit=2)"
        )
