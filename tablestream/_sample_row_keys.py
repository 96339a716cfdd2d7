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
from typing import AsyncIterable, Awaitable, Callable, List, Tuple

from tablestream._helpers import Clock
from tablestream._helpers import _terminal_error
from tablestream.backoff_policy import RPCBackoffPolicy
from tablestream.retry_policy import RPCRetryPolicy
from tablestream.retry_policy import RetryContext
from tablestream.retry_policy import RetryDecision

_LOGGER = logging.getLogger(__name__)

# list of (row_key, offset_bytes) pairs
RowKeySamples = List[Tuple[bytes, int]]

SampleRowKeysFn = Callable[[], Awaitable[AsyncIterable[Tuple[bytes, int]]]]


class _SampleRowKeysOperation:
    """
    Collects the row key samples of a table.

    Samples cannot be resumed part way, so a failed stream is read again from
    the start after the backoff delay.
    """

    def __init__(
        self,
        sample_row_keys_fn: SampleRowKeysFn,
        *,
        retry_policy: RPCRetryPolicy,
        backoff_policy: RPCBackoffPolicy,
        clock: Clock,
    ):
        self._sample_row_keys_fn = sample_row_keys_fn
        self._retry_policy = retry_policy
        self._backoff_policy = backoff_policy
        self._clock = clock
        self.transient_errors: list[Exception] = []

    async def start(self) -> RowKeySamples:
        """
        Run the operation until a full set of samples is read

        Raises:
          - PermanentError: the failure status is never retried
          - RetriesExhausted: the retry policy gave up
        """
        context = RetryContext(self._clock)
        while True:
            try:
                stream = await self._sample_row_keys_fn()
                return [(row_key, offset) async for row_key, offset in stream]
            except Exception as exc:
                attempt_count = context.record_failure()
                if self._retry_policy.is_retryable(exc):
                    self.transient_errors.append(exc)
                decision = self._retry_policy.on_failure(
                    exc, attempt_count, context.elapsed
                )
                if decision is RetryDecision.GIVE_UP:
                    _LOGGER.warning(
                        "sample_row_keys giving up after %d failed attempts: %r",
                        attempt_count,
                        exc,
                    )
                    raise _terminal_error(
                        "sample_row_keys", exc, self.transient_errors
                    )
                delay = self._backoff_policy.next_delay(attempt_count)
                _LOGGER.debug(
                    "sample_row_keys attempt %d failed with %r; retrying in %.3fs",
                    attempt_count,
                    exc,
                    delay,
                )
                await self._clock.sleep(delay)
