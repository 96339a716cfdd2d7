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

import dataclasses

import pytest


class TestIncrementRule:
    @staticmethod
    def _get_target_class():
        from tablestream.read_modify_write_rules import IncrementRule

        return IncrementRule

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    def test_to_dict(self):
        rule = self._make_one("family", "qualifier", 5)
        assert rule.qualifier == b"qualifier"
        assert rule._to_dict() == {
            "family_name": "family",
            "column_qualifier": b"qualifier",
            "increment_amount": 5,
        }

    def test_default_amount(self):
        assert self._make_one("f", b"q").increment_amount == 1

    @pytest.mark.parametrize("amount", [2**63 - 1, -(2**63 - 1), 0, -1])
    def test_amount_in_range(self, amount):
        assert self._make_one("f", b"q", amount).increment_amount == amount

    @pytest.mark.parametrize("amount", [2**63, -(2**63)])
    def test_amount_out_of_range(self, amount):
        with pytest.raises(ValueError):
            self._make_one("f", b"q", amount)

    def test_amount_not_int(self):
        with pytest.raises(TypeError):
            self._make_one("f", b"q", 1.5)

    def test_immutable(self):
        rule = self._make_one("f", b"q")
        with pytest.raises(dataclasses.FrozenInstanceError):
            rule.increment_amount = 3


class TestAppendValueRule:
    @staticmethod
    def _get_target_class():
        from tablestream.read_modify_write_rules import AppendValueRule

        return AppendValueRule

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    def test_to_dict(self):
        rule = self._make_one("family", b"qualifier", "suffix")
        assert rule._to_dict() == {
            "family_name": "family",
            "column_qualifier": b"qualifier",
            "append_value": b"suffix",
        }

    def test_invalid_value(self):
        with pytest.raises(TypeError):
            self._make_one("f", b"q", 5)
