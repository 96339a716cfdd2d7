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
"""Garbage collection rules for Bigtable column families."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Tuple, Union

from google.protobuf import duration_pb2


@dataclass(frozen=True)
class MaxVersionsGCRule:
    """
    Garbage collection limiting the number of versions of a cell.

    :type max_num_versions: int
    :param max_num_versions: The maximum number of versions
    """

    max_num_versions: int

    def __post_init__(self):
        if self.max_num_versions < 1:
            raise ValueError("max_num_versions must be positive")

    def collects(self, age: datetime.timedelta, version_index: int) -> bool:
        return version_index >= self.max_num_versions

    def to_dict(self) -> dict[str, Any]:
        return {"max_num_versions": self.max_num_versions}


@dataclass(frozen=True)
class MaxAgeGCRule:
    """
    Garbage collection limiting the age of a cell.

    :type max_age: :class:`datetime.timedelta`
    :param max_age: The maximum age allowed for a cell in the table.
    """

    max_age: datetime.timedelta

    def collects(self, age: datetime.timedelta, version_index: int) -> bool:
        return age > self.max_age

    def to_dict(self) -> dict[str, Any]:
        duration = duration_pb2.Duration()
        duration.FromTimedelta(self.max_age)
        return {"max_age": {"seconds": duration.seconds, "nanos": duration.nanos}}


@dataclass(frozen=True)
class GCRuleUnion:
    """
    Union of garbage collection rules.

    A cell is collected if any of the rules collects it.
    """

    rules: Tuple["GCRule", ...]

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))

    def collects(self, age: datetime.timedelta, version_index: int) -> bool:
        return any(rule.collects(age, version_index) for rule in self.rules)

    def to_dict(self) -> dict[str, Any]:
        return {"union": {"rules": [rule.to_dict() for rule in self.rules]}}


@dataclass(frozen=True)
class GCRuleIntersection:
    """
    Intersection of garbage collection rules.

    A cell is collected only if every rule collects it.
    """

    rules: Tuple["GCRule", ...]

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))

    def collects(self, age: datetime.timedelta, version_index: int) -> bool:
        return all(rule.collects(age, version_index) for rule in self.rules)

    def to_dict(self) -> dict[str, Any]:
        return {"intersection": {"rules": [rule.to_dict() for rule in self.rules]}}


GCRule = Union[MaxVersionsGCRule, MaxAgeGCRule, GCRuleUnion, GCRuleIntersection]


def union(*rules: GCRule) -> GCRuleUnion:
    if not rules:
        raise ValueError("union requires at least one rule")
    return GCRuleUnion(rules)


def intersection(*rules: GCRule) -> GCRuleIntersection:
    if not rules:
        raise ValueError("intersection requires at least one rule")
    return GCRuleIntersection(rules)
