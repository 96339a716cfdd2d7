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
Backoff policies for Bigtable RPCs.
"""
from __future__ import annotations

import abc
import random

# same schedule the data client uses for its retries
_DEFAULT_INITIAL_DELAY = 0.01
_DEFAULT_MAXIMUM_DELAY = 60.0
_DEFAULT_MULTIPLIER = 2.0
_DEFAULT_JITTER = 0.5


class RPCBackoffPolicy(abc.ABC):
    """Computes how long to wait before the next attempt of an operation."""

    @abc.abstractmethod
    def next_delay(self, attempt_count: int) -> float:
        """
        Args:
          - attempt_count: the number of failed attempts so far (1 for the first failure)
        Returns:
          - the delay before the next attempt, in seconds
        """
        raise NotImplementedError

    @abc.abstractmethod
    def clone(self) -> RPCBackoffPolicy:
        raise NotImplementedError


class ExponentialBackoffPolicy(RPCBackoffPolicy):
    """
    Exponential backoff with bounded jitter.

    The base delay starts at ``initial`` and is multiplied by ``multiplier``
    after each failure until it reaches ``maximum``. A random jitter of up to
    ``jitter * base`` is added so that clients failing together do not retry
    together, and the result is clipped at ``maximum``.

    ``multiplier`` must be at least ``1 + jitter``, so the next base delay is
    never below the current jittered one. Delays are then non-decreasing
    across consecutive failures.
    """

    def __init__(
        self,
        initial: float = _DEFAULT_INITIAL_DELAY,
        maximum: float = _DEFAULT_MAXIMUM_DELAY,
        multiplier: float = _DEFAULT_MULTIPLIER,
        jitter: float = _DEFAULT_JITTER,
        rng: random.Random | None = None,
    ):
        if initial <= 0:
            raise ValueError("initial must be greater than 0")
        if maximum < initial:
            raise ValueError("maximum must be >= initial")
        if jitter < 0:
            raise ValueError("jitter must be >= 0")
        if multiplier < 1 + jitter:
            raise ValueError("multiplier must be >= 1 + jitter")
        self.initial = initial
        self.maximum = maximum
        self.multiplier = multiplier
        self.jitter = jitter
        self._rng = rng if rng is not None else random.Random()

    def _base_delay(self, attempt_count: int) -> float:
        delay = self.initial
        for _ in range(max(attempt_count, 1) - 1):
            delay *= self.multiplier
            if delay >= self.maximum:
                return self.maximum
        return delay

    def next_delay(self, attempt_count: int) -> float:
        base = self._base_delay(attempt_count)
        return min(base + self._rng.uniform(0, self.jitter * base), self.maximum)

    def clone(self) -> ExponentialBackoffPolicy:
        return ExponentialBackoffPolicy(
            self.initial, self.maximum, self.multiplier, self.jitter
        )

    def __repr__(self):
        return (
            f"ExponentialBackoffPolicy(initial={self.initial}, maximum={self.maximum}, "
            f"multiplier={self.multiplier}, jitter={self.jitter})"
        )


def default_rpc_backoff_policy() -> RPCBackoffPolicy:
    return ExponentialBackoffPolicy()
