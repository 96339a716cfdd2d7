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

TEST_VALUE = b"1234"
TEST_ROW_KEY = b"row"
TEST_FAMILY_ID = "cf1"
TEST_QUALIFIER = b"col"
TEST_TIMESTAMP = 1_000_000
TEST_LABELS = ["label1", "label2"]


def _make_cell(
    value=TEST_VALUE,
    row_key=TEST_ROW_KEY,
    family=TEST_FAMILY_ID,
    qualifier=TEST_QUALIFIER,
    timestamp=TEST_TIMESTAMP,
    labels=TEST_LABELS,
):
    from tablestream.row import Cell

    return Cell(value, row_key, family, qualifier, timestamp, labels)


class TestRow:
    @staticmethod
    def _get_target_class():
        from tablestream.row import Row

        return Row

    def _make_one(self, *args, **kwargs):
        if len(args) == 0:
            args = (TEST_ROW_KEY, [_make_cell()])
        return self._get_target_class()(*args, **kwargs)

    def test_ctor(self):
        cells = [_make_cell(), _make_cell()]
        row_response = self._make_one(TEST_ROW_KEY, cells)
        assert list(row_response) == cells
        assert row_response.row_key == TEST_ROW_KEY

    def test_get_cells(self):
        cell_list = []
        for family_id in ["1", "2"]:
            for qualifier in [b"a", b"b"]:
                cell_list.append(_make_cell(family=family_id, qualifier=qualifier))
        row_response = self._make_one(TEST_ROW_KEY, cell_list)
        assert row_response.get_cells() == cell_list
        assert len(row_response.get_cells(family="1")) == 2
        assert row_response.get_cells(family="1", qualifier="a") == [cell_list[0]]
        assert row_response.get_cells(family="2", qualifier=b"b") == [cell_list[3]]

    def test_get_cells_errors(self):
        row_response = self._make_one()
        with pytest.raises(ValueError) as e:
            row_response.get_cells(qualifier=b"q")
        assert "Qualifier passed without family" in str(e.value)
        with pytest.raises(ValueError) as e:
            row_response.get_cells(family="missing")
        assert "Family 'missing' not found" in str(e.value)
        with pytest.raises(ValueError) as e:
            row_response.get_cells(family=TEST_FAMILY_ID, qualifier=b"missing")
        assert "not found in family" in str(e.value)

    def test_get_cells_returns_copy(self):
        row_response = self._make_one()
        row_response.get_cells().clear()
        assert len(row_response) == 1

    def test_index(self):
        cells = [
            _make_cell(family="a", qualifier=b"x"),
            _make_cell(family="a", qualifier=b"y"),
            _make_cell(family="b", qualifier=b"x"),
        ]
        row_response = self._make_one(TEST_ROW_KEY, cells)
        assert row_response[0] == cells[0]
        assert row_response[-1] == cells[2]
        assert row_response[1:] == cells[1:]
        assert row_response["a"] == cells[:2]
        assert row_response["a", "y"] == [cells[1]]
        assert row_response["b", b"x"] == [cells[2]]
        with pytest.raises(TypeError):
            row_response[None]
        with pytest.raises(IndexError):
            row_response[3]

    def test_len_and_iter(self):
        cells = [_make_cell(timestamp=t) for t in range(3)]
        row_response = self._make_one(TEST_ROW_KEY, cells)
        assert len(row_response) == 3
        assert [cell.timestamp_micros for cell in row_response] == [0, 1, 2]

    def test_eq(self):
        first = self._make_one(TEST_ROW_KEY, [_make_cell()])
        second = self._make_one(TEST_ROW_KEY, [_make_cell()])
        assert first == second
        assert hash(first) == hash(second)
        assert first != self._make_one(b"other", [_make_cell()])
        assert first != self._make_one(TEST_ROW_KEY, [_make_cell(value=b"x")])
        assert first != "not a row"

    def test_repr(self):
        row_response = self._make_one(TEST_ROW_KEY, [])
        assert repr(row_response) == "Row(key=b'row', cells=[])"


class TestCell:
    def test_ctor(self):
        cell = _make_cell(qualifier="text")
        assert cell.value == TEST_VALUE
        assert cell.row_key == TEST_ROW_KEY
        assert cell.family == TEST_FAMILY_ID
        assert cell.qualifier == b"text"
        assert cell.timestamp_micros == TEST_TIMESTAMP
        assert cell.labels == tuple(TEST_LABELS)

    def test_to_dict(self):
        assert _make_cell().to_dict() == {
            "value": TEST_VALUE,
            "timestamp_micros": TEST_TIMESTAMP,
            "labels": TEST_LABELS,
        }
        assert _make_cell(labels=[]).to_dict() == {
            "value": TEST_VALUE,
            "timestamp_micros": TEST_TIMESTAMP,
        }

    @pytest.mark.parametrize(
        "value,expected",
        [
            (b"\x00\x00\x00\x00\x00\x00\x00\x05", 5),
            (b"\xff\xff\xff\xff\xff\xff\xff\xff", -1),
        ],
    )
    def test_int_value(self, value, expected):
        assert int(_make_cell(value=value)) == expected

    def test_native_ordering(self):
        newest = _make_cell(timestamp=3)
        older = _make_cell(timestamp=1)
        other_column = _make_cell(qualifier=b"a", timestamp=0)
        other_family = _make_cell(family="a", timestamp=0)
        assert sorted([older, newest, other_column, other_family]) == [
            other_family,
            other_column,
            newest,
            older,
        ]
        assert older > newest
        assert older >= older

    def test_eq_and_hash(self):
        assert _make_cell() == _make_cell()
        assert hash(_make_cell()) == hash(_make_cell())
        assert _make_cell() != _make_cell(row_key=b"other")
