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
Policies deciding whether a failed write may be sent again.
"""
from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tablestream.mutations import RowMutationEntry


class IdempotentMutationPolicy(abc.ABC):
    """
    Decides whether a batch of mutations can be safely retried.

    Retrying a write that is not idempotent may apply its effect twice, so
    the write path consults the policy after every failed attempt.
    """

    @abc.abstractmethod
    def is_idempotent(self, entry: "RowMutationEntry") -> bool:
        raise NotImplementedError

    def clone(self) -> IdempotentMutationPolicy:
        return type(self)()


class SafeIdempotentMutationPolicy(IdempotentMutationPolicy):
    """
    Only retries batches whose every mutation is idempotent.

    A SetCell that lets the server pick the timestamp, an increment or an
    append makes the whole batch non-idempotent.
    """

    def is_idempotent(self, entry: "RowMutationEntry") -> bool:
        return entry.is_idempotent()


class AlwaysRetryMutationPolicy(IdempotentMutationPolicy):
    """
    Treats every batch as idempotent.

    Use with care: a retried increment or append may be applied twice.
    """

    def is_idempotent(self, entry: "RowMutationEntry") -> bool:
        return True


def default_idempotent_mutation_policy() -> IdempotentMutationPolicy:
    return SafeIdempotentMutationPolicy()
