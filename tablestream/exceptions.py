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

import sys

from typing import TYPE_CHECKING

from google.api_core import exceptions as core_exceptions

is_311_plus = sys.version_info >= (3, 11)

if TYPE_CHECKING:
    from tablestream.mutations import RowMutationEntry
    from tablestream.retry_policy import StatusCategory


class InvalidChunk(core_exceptions.GoogleAPICallError):
    """Exception raised when a read_rows stream violates row ordering."""


class _OperationError(core_exceptions.GoogleAPICallError):
    """
    Base for terminal errors that wrap the failure returned by the transport.

    The wrapped exception is kept in ``__cause__``, and its status code is
    copied so callers inspecting ``code`` see the server's answer.
    """

    def __init__(
        self,
        message: str,
        cause: Exception,
        status: "StatusCategory",
    ):
        super().__init__(message, errors=(cause,))
        self.status = status
        if isinstance(cause, core_exceptions.GoogleAPICallError):
            self.code = cause.code
            self.grpc_status_code = cause.grpc_status_code
        self.__cause__ = cause


class TransientError(_OperationError):
    """
    A retryable failure that was surfaced without retrying.

    Raised by the write path when a failed batch is not idempotent.
    """


class PermanentError(_OperationError):
    """A failure whose status is never retried."""


class RetriesExhausted(core_exceptions.RetryError):
    """
    Raised when the retry policy gives up while failures are still transient.

    ``__cause__`` holds a RetryExceptionGroup describing every failed attempt.
    """

    def __init__(self, message: str, excs: list[Exception]):
        super().__init__(message, excs[-1] if excs else None)
        self.exceptions = tuple(excs)
        self.__cause__ = RetryExceptionGroup(excs) if excs else None


class Cancelled(core_exceptions.Cancelled):
    """
    Raised after an in-progress operation is cancelled, by the caller or by
    the server ending its stream.
    """


class BigtableExceptionGroup(ExceptionGroup if is_311_plus else Exception):  # type: ignore # noqa: F821
    """
    Represents one or more exceptions that occur during a bulk Bigtable operation

    In Python 3.11+, this is an unmodified exception group. Before 3.11, it is a
    custom exception with some exception group functionality backported, but it
    does not implement the full API
    """

    def __init__(self, message, excs):
        if is_311_plus:
            super().__init__(message, excs)
        else:
            if len(excs) == 0:
                raise ValueError("exceptions must be a non-empty sequence")
            self.exceptions = tuple(excs)
            super().__init__(message)

    def __new__(cls, message, excs):
        if is_311_plus:
            return super().__new__(cls, message, excs)
        else:
            return super().__new__(cls)

    def __str__(self):
        """
        String representation doesn't display sub-exceptions. Subexceptions are
        described in message
        """
        return self.args[0]


class MutationsExceptionGroup(BigtableExceptionGroup):
    """
    Represents one or more exceptions that occur during a bulk mutation operation

    Exceptions will typically be of type FailedMutationEntryError
    """

    @staticmethod
    def _format_message(excs: list[Exception], total_entries: int) -> str:
        entry_str = "entry" if len(excs) == 1 else "entries"
        return f"{len(excs)} failed {entry_str} from {total_entries} attempted."

    def __init__(self, excs: list[Exception], total_entries: int):
        super().__init__(self._format_message(excs, total_entries), excs)
        self.total_entries_attempted = total_entries

    def __new__(cls, excs: list[Exception], total_entries: int):
        instance = super().__new__(
            cls, cls._format_message(excs, total_entries), excs
        )
        instance.total_entries_attempted = total_entries
        return instance


class FailedMutationEntryError(Exception):
    """
    Represents a single failed RowMutationEntry in a bulk_mutate_rows request.
    A collection of FailedMutationEntryErrors will be raised in a MutationsExceptionGroup
    """

    def __init__(
        self,
        failed_idx: int | None,
        failed_mutation_entry: "RowMutationEntry",
        cause: Exception,
    ):
        idempotent_msg = (
            "idempotent" if failed_mutation_entry.is_idempotent() else "non-idempotent"
        )
        index_msg = f" at index {failed_idx} " if failed_idx is not None else " "
        message = (
            f"Failed {idempotent_msg} mutation entry{index_msg}with cause: {cause!r}"
        )
        super().__init__(message)
        self.index = failed_idx
        self.entry = failed_mutation_entry
        self.__cause__ = cause


class RetryExceptionGroup(BigtableExceptionGroup):
    """Represents one or more exceptions that occur during a retryable operation"""

    @staticmethod
    def _format_message(excs: list[Exception]):
        if len(excs) == 0:
            return "No exceptions"
        if len(excs) == 1:
            return f"1 failed attempt: {type(excs[0]).__name__}"
        else:
            return f"{len(excs)} failed attempts. Latest: {type(excs[-1]).__name__}"

    def __init__(self, excs: list[Exception]):
        super().__init__(self._format_message(excs), excs)

    def __new__(cls, excs: list[Exception]):
        return super().__new__(cls, cls._format_message(excs), excs)
