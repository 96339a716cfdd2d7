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

import asyncio
import time

from tablestream import exceptions as bt_exceptions
from tablestream.retry_policy import StatusCategory
from tablestream.retry_policy import classify_error

"""
Helper functions used in various places in the library.
"""


class Clock:
    """
    Source of time for elapsed-time policies and backoff waits.

    Tests substitute an implementation that does not sleep.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


def _make_metadata(
    table_name: str, app_profile_id: str | None
) -> list[tuple[str, str]]:
    """
    Create properly formatted gRPC metadata for requests.
    """
    params = []
    params.append(f"table_name={table_name}")
    if app_profile_id is not None:
        params.append(f"app_profile_id={app_profile_id}")
    params_str = "&".join(params)
    return [("x-goog-request-params", params_str)]


def _terminal_error(
    operation: str, exc: Exception, transient_errors: list[Exception]
) -> Exception:
    """
    Build the exception surfaced once retries have stopped.

    Args:
      - operation: name of the rpc, used in the message
      - exc: the failure of the final attempt
      - transient_errors: every transient failure seen by the operation,
            including ``exc`` when it is transient
    """
    status = classify_error(exc)
    if status is StatusCategory.RETRYABLE_TRANSIENT:
        attempts = len(transient_errors)
        plural = "attempt" if attempts == 1 else "attempts"
        return bt_exceptions.RetriesExhausted(
            f"{operation} gave up after {attempts} failed {plural}",
            transient_errors or [exc],
        )
    return bt_exceptions.PermanentError(
        f"{operation} failed with {status.value} status: {exc}", exc, status
    )


def _not_retried_error(message: str, exc: Exception) -> Exception:
    """
    Build the exception surfaced by an operation that is never retried.

    TransientError when the status alone would have allowed a retry,
    PermanentError otherwise.
    """
    status = classify_error(exc)
    if status is StatusCategory.RETRYABLE_TRANSIENT:
        return bt_exceptions.TransientError(message, exc, status)
    return bt_exceptions.PermanentError(message, exc, status)
