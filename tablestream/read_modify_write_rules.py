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
Rules for ReadModifyWriteRow, applied by the server to the latest cell of a
column.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from tablestream.mutations import _to_bytes

# value must fit in 64-bit signed integer
_MAX_INCREMENT_VALUE = (1 << 63) - 1


@dataclass(frozen=True)
class IncrementRule:
    """
    Rule to add ``increment_amount`` to a cell holding a 64-bit big-endian
    integer. A missing cell counts as zero.
    """

    family: str
    qualifier: bytes
    increment_amount: int = 1

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        if not isinstance(self.increment_amount, int):
            raise TypeError("increment_amount must be an integer")
        if abs(self.increment_amount) > _MAX_INCREMENT_VALUE:
            raise ValueError(
                "increment_amount must be between -2**63 and 2**63 (exclusive)"
            )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "family_name": self.family,
            "column_qualifier": self.qualifier,
            "increment_amount": self.increment_amount,
        }


@dataclass(frozen=True)
class AppendValueRule:
    """Rule to append bytes to a cell. A missing cell counts as empty."""

    family: str
    qualifier: bytes
    append_value: bytes

    def __post_init__(self):
        object.__setattr__(self, "qualifier", _to_bytes(self.qualifier, "qualifier"))
        object.__setattr__(
            self, "append_value", _to_bytes(self.append_value, "append_value")
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "family_name": self.family,
            "column_qualifier": self.qualifier,
            "append_value": self.append_value,
        }


ReadModifyWriteRule = Union[IncrementRule, AppendValueRule]
