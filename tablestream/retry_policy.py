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
Retry policies for Bigtable RPCs.

A retry policy looks at one failure of one operation, together with the
number of failed attempts and the time spent so far, and decides whether
another attempt should be made. Each operation owns a fresh clone of its
policy, so no state leaks between operations.
"""
from __future__ import annotations

import abc
import enum
from typing import TYPE_CHECKING

import grpc
from google.api_core import exceptions as core_exceptions
from google.api_core import retry as retries

if TYPE_CHECKING:
    from tablestream._helpers import Clock


class StatusCategory(enum.Enum):
    """Status taxonomy surfaced to callers"""

    RETRYABLE_TRANSIENT = "retryable-transient"
    PERMANENT_INVALID = "permanent-invalid"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    UNKNOWN = "unknown"


_STATUS_CATEGORIES = {
    grpc.StatusCode.UNAVAILABLE: StatusCategory.RETRYABLE_TRANSIENT,
    grpc.StatusCode.DEADLINE_EXCEEDED: StatusCategory.RETRYABLE_TRANSIENT,
    grpc.StatusCode.ABORTED: StatusCategory.RETRYABLE_TRANSIENT,
    grpc.StatusCode.INVALID_ARGUMENT: StatusCategory.PERMANENT_INVALID,
    grpc.StatusCode.FAILED_PRECONDITION: StatusCategory.PERMANENT_INVALID,
    grpc.StatusCode.OUT_OF_RANGE: StatusCategory.PERMANENT_INVALID,
    grpc.StatusCode.ALREADY_EXISTS: StatusCategory.PERMANENT_INVALID,
    grpc.StatusCode.NOT_FOUND: StatusCategory.NOT_FOUND,
    grpc.StatusCode.PERMISSION_DENIED: StatusCategory.PERMISSION_DENIED,
    grpc.StatusCode.UNAUTHENTICATED: StatusCategory.PERMISSION_DENIED,
}

_is_transient = retries.if_exception_type(
    core_exceptions.DeadlineExceeded,
    core_exceptions.ServiceUnavailable,
    core_exceptions.Aborted,
)


def classify_error(exc: BaseException) -> StatusCategory:
    """
    Map an exception raised by the transport to a StatusCategory.

    Exceptions that carry no gRPC status are UNKNOWN.
    """
    if _is_transient(exc):
        return StatusCategory.RETRYABLE_TRANSIENT
    code = getattr(exc, "grpc_status_code", None)
    return _STATUS_CATEGORIES.get(code, StatusCategory.UNKNOWN)


class RetryDecision(enum.Enum):
    RETRY = "retry"
    GIVE_UP = "give_up"


class RPCRetryPolicy(abc.ABC):
    """
    Decides whether a failed attempt should be retried.

    Only RETRYABLE_TRANSIENT failures are ever retried; subclasses add the
    bound that ends an operation whose failures stay transient.
    """

    def is_retryable(self, exc: BaseException) -> bool:
        return classify_error(exc) is StatusCategory.RETRYABLE_TRANSIENT

    def on_failure(
        self, exc: BaseException, attempt_count: int, elapsed: float
    ) -> RetryDecision:
        """
        Args:
          - exc: the exception raised by the failed attempt
          - attempt_count: the number of failed attempts so far, including this one
          - elapsed: seconds since the first attempt started
        """
        if not self.is_retryable(exc) or self._exhausted(attempt_count, elapsed):
            return RetryDecision.GIVE_UP
        return RetryDecision.RETRY

    @abc.abstractmethod
    def _exhausted(self, attempt_count: int, elapsed: float) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def clone(self) -> RPCRetryPolicy:
        raise NotImplementedError


class LimitedErrorCountRetryPolicy(RPCRetryPolicy):
    """
    Retries until more than ``maximum_failures`` attempts have failed.

    With ``maximum_failures=2`` an operation makes at most 3 attempts.
    """

    def __init__(self, maximum_failures: int):
        if maximum_failures < 0:
            raise ValueError("maximum_failures must be >= 0")
        self.maximum_failures = maximum_failures

    def _exhausted(self, attempt_count: int, elapsed: float) -> bool:
        return attempt_count > self.maximum_failures

    def clone(self) -> LimitedErrorCountRetryPolicy:
        return LimitedErrorCountRetryPolicy(self.maximum_failures)

    def __repr__(self):
        return f"LimitedErrorCountRetryPolicy(maximum_failures={self.maximum_failures})"


class LimitedTimeRetryPolicy(RPCRetryPolicy):
    """Retries until ``maximum_duration`` seconds have elapsed."""

    def __init__(self, maximum_duration: float):
        if maximum_duration <= 0:
            raise ValueError("maximum_duration must be greater than 0")
        self.maximum_duration = maximum_duration

    def _exhausted(self, attempt_count: int, elapsed: float) -> bool:
        return elapsed >= self.maximum_duration

    def clone(self) -> LimitedTimeRetryPolicy:
        return LimitedTimeRetryPolicy(self.maximum_duration)

    def __repr__(self):
        return f"LimitedTimeRetryPolicy(maximum_duration={self.maximum_duration})"


class RetryContext:
    """
    Attempt count and elapsed time for one logical operation.

    Created when the operation starts and dropped when it completes.
    """

    __slots__ = ("_clock", "_start_time", "attempt_count")

    def __init__(self, clock: "Clock"):
        self._clock = clock
        self._start_time = clock.monotonic()
        self.attempt_count = 0

    def record_failure(self) -> int:
        self.attempt_count += 1
        return self.attempt_count

    @property
    def elapsed(self) -> float:
        return self._clock.monotonic() - self._start_time


# matches the ten minute budget the data client uses for read_rows
_DEFAULT_MAXIMUM_DURATION = 600.0


def default_rpc_retry_policy() -> RPCRetryPolicy:
    return LimitedTimeRetryPolicy(_DEFAULT_MAXIMUM_DURATION)
