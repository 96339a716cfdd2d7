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

import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, List, TYPE_CHECKING

from google.api_core import exceptions as core_exceptions

from tablestream import exceptions as bt_exceptions
from tablestream._helpers import Clock
from tablestream._helpers import _not_retried_error
from tablestream._helpers import _terminal_error
from tablestream.backoff_policy import RPCBackoffPolicy
from tablestream.idempotency import IdempotentMutationPolicy
from tablestream.retry_policy import RPCRetryPolicy
from tablestream.retry_policy import RetryContext
from tablestream.retry_policy import RetryDecision

if TYPE_CHECKING:
    from tablestream.mutations import RowMutationEntry
    from tablestream.transport import MutateRowsEntryResult

_LOGGER = logging.getLogger(__name__)

MutateRowFn = Callable[[bytes, List[Dict[str, Any]]], Awaitable[None]]
MutateRowsFn = Callable[
    [List[Dict[str, Any]]], Awaitable[AsyncIterable[List["MutateRowsEntryResult"]]]
]


class _MutateRowOperation:
    """
    Applies one RowMutationEntry, retrying the rpc only while the entry is
    idempotent.

    A failure of a non-idempotent entry is raised at once, since applying it
    again could repeat its effect.
    """

    def __init__(
        self,
        mutate_row_fn: MutateRowFn,
        entry: "RowMutationEntry",
        *,
        retry_policy: RPCRetryPolicy,
        backoff_policy: RPCBackoffPolicy,
        idempotency_policy: IdempotentMutationPolicy,
        clock: Clock,
    ):
        self._mutate_row_fn = mutate_row_fn
        self.entry = entry
        self._retry_policy = retry_policy
        self._backoff_policy = backoff_policy
        self._idempotency_policy = idempotency_policy
        self._clock = clock
        self.transient_errors: list[Exception] = []

    async def start(self) -> None:
        """
        Run the operation until it succeeds or an error is surfaced

        Raises:
          - TransientError: a non-idempotent entry failed with a retryable status
          - PermanentError: the failure status is never retried
          - RetriesExhausted: the retry policy gave up on an idempotent entry
        """
        context = RetryContext(self._clock)
        mutations = [mutation._to_dict() for mutation in self.entry.mutations]
        while True:
            try:
                await self._mutate_row_fn(self.entry.row_key, mutations)
                return
            except Exception as exc:
                attempt_count = context.record_failure()
                if not self._idempotency_policy.is_idempotent(self.entry):
                    raise _not_retried_error(
                        f"mutate_row failed for non-idempotent entry "
                        f"{self.entry.row_key!r}: {exc}",
                        exc,
                    )
                if self._retry_policy.is_retryable(exc):
                    self.transient_errors.append(exc)
                decision = self._retry_policy.on_failure(
                    exc, attempt_count, context.elapsed
                )
                if decision is RetryDecision.GIVE_UP:
                    _LOGGER.warning(
                        "mutate_row giving up after %d failed attempts: %r",
                        attempt_count,
                        exc,
                    )
                    raise _terminal_error("mutate_row", exc, self.transient_errors)
                delay = self._backoff_policy.next_delay(attempt_count)
                _LOGGER.debug(
                    "mutate_row attempt %d failed with %r; retrying in %.3fs",
                    attempt_count,
                    exc,
                    delay,
                )
                await self._clock.sleep(delay)


class _MutateRowsOperation:
    """
    MutateRowsOperation manages the logic of sending a set of row mutations,
    and retrying on failed entries.

    Each attempt sends every outstanding entry. Entries that fail with a
    retryable status and are idempotent are sent again in the next attempt,
    after the backoff delay; the retry policy bounds the number of attempts.

    Errors are exposed as a MutationsExceptionGroup, which contains a list of
    exceptions organized by the related failed mutation entries.
    """

    def __init__(
        self,
        mutate_rows_fn: MutateRowsFn,
        mutation_entries: list["RowMutationEntry"],
        *,
        retry_policy: RPCRetryPolicy,
        backoff_policy: RPCBackoffPolicy,
        idempotency_policy: IdempotentMutationPolicy,
        clock: Clock,
    ):
        self._mutate_rows_fn = mutate_rows_fn
        self._retry_policy = retry_policy
        self._backoff_policy = backoff_policy
        self._idempotency_policy = idempotency_policy
        self._clock = clock
        self.mutations = mutation_entries
        self.remaining_indices = list(range(len(self.mutations)))
        self.errors: dict[int, list[Exception]] = {}

    async def start(self) -> None:
        """
        Start the operation, and run until completion

        Raises:
          - MutationsExceptionGroup: if any mutations failed
        """
        context = RetryContext(self._clock)
        while self.remaining_indices:
            try:
                await self._run_attempt()
            except Exception as exc:
                failure = exc
            else:
                if not self.remaining_indices:
                    break
                # retry based on the most recent error of an outstanding entry
                failure = self.errors[self.remaining_indices[-1]][-1]
            attempt_count = context.record_failure()
            decision = self._retry_policy.on_failure(
                failure, attempt_count, context.elapsed
            )
            if decision is RetryDecision.GIVE_UP or not self.remaining_indices:
                break
            delay = self._backoff_policy.next_delay(attempt_count)
            _LOGGER.debug(
                "mutate_rows attempt %d left %d entries outstanding; retrying in %.3fs",
                attempt_count,
                len(self.remaining_indices),
                delay,
            )
            await self._clock.sleep(delay)
        # raise exception detailing incomplete mutations
        all_errors: list[Exception] = []
        for idx, exc_list in self.errors.items():
            if len(exc_list) == 1:
                cause_exc = exc_list[0]
            else:
                cause_exc = bt_exceptions.RetryExceptionGroup(exc_list)
            entry = self.mutations[idx]
            all_errors.append(
                bt_exceptions.FailedMutationEntryError(idx, entry, cause_exc)
            )
        if all_errors:
            _LOGGER.warning(
                "mutate_rows finished with %d failed entries of %d",
                len(all_errors),
                len(self.mutations),
            )
            raise bt_exceptions.MutationsExceptionGroup(all_errors, len(self.mutations))

    async def _run_attempt(self) -> None:
        """
        Run a single attempt of the mutate_rows rpc.

        Raises:
          - GoogleAPICallError: if the rpc fails
        """
        request_entries = [
            self.mutations[idx]._to_dict() for idx in self.remaining_indices
        ]
        # track mutations in this request that have not been finalized yet
        active_request_indices = {
            req_idx: orig_idx for req_idx, orig_idx in enumerate(self.remaining_indices)
        }
        self.remaining_indices = []
        if not request_entries:
            return
        try:
            result_generator = await self._mutate_rows_fn(request_entries)
            async for result_list in result_generator:
                for result in result_list:
                    # convert sub-request index to global index
                    orig_idx = active_request_indices.pop(result.index)
                    if result.status.code == 0:
                        self.errors.pop(orig_idx, None)
                        continue
                    entry_error = core_exceptions.from_grpc_status(
                        result.status.code,
                        result.status.message,
                        details=result.status.details,
                    )
                    self._handle_entry_error(orig_idx, entry_error)
        except Exception as exc:
            # add this exception to list for each mutation that wasn't
            # already handled
            for idx in active_request_indices.values():
                self._handle_entry_error(idx, exc)
            raise
        for idx in active_request_indices.values():
            self._handle_entry_error(
                idx,
                core_exceptions.Aborted(
                    "mutate_rows stream ended without a status for this entry"
                ),
            )

    def _handle_entry_error(self, idx: int, exc: Exception) -> None:
        """
        Add an exception to the list of exceptions for a given mutation index,
        and add the index to the list of remaining indices if the exception is
        retryable and the entry is idempotent.
        """
        entry = self.mutations[idx]
        self.errors.setdefault(idx, []).append(exc)
        if (
            self._idempotency_policy.is_idempotent(entry)
            and self._retry_policy.is_retryable(exc)
            and idx not in self.remaining_indices
        ):
            self.remaining_indices.append(idx)
