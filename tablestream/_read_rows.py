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
Resumable streaming of rows from a ReadRows scan.

RowReader drives the scan in a background task that feeds a bounded
buffer. When the stream fails, the retry policy decides whether to go on;
if so the target RowSet is narrowed to keys strictly after the last row
received, so a reissued scan never returns a row twice, and the scan is
reissued after the backoff delay.

The task only holds the _ReadRowsOperation, never the RowReader, so a
reader that is dropped mid-scan is collected and its scan stopped.

States of the scan:
  - IDLE: created, no rpc issued yet
  - STREAMING: an rpc is open and rows are arriving
  - RETRYING: the stream failed and will be reissued
  - EXHAUSTED: every requested row was received
  - FAILED: the retry policy gave up, or the stream was cancelled under
    the reader; the error follows the received rows
  - CANCELLED: the caller cancelled or dropped the reader
"""
from __future__ import annotations

import asyncio
import enum
import logging
import weakref
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
)

from tablestream import exceptions as bt_exceptions
from tablestream._helpers import Clock
from tablestream._helpers import _terminal_error
from tablestream.backoff_policy import RPCBackoffPolicy
from tablestream.backoff_policy import default_rpc_backoff_policy
from tablestream.read_rows_query import ReadRowsQuery
from tablestream.retry_policy import RPCRetryPolicy
from tablestream.retry_policy import RetryContext
from tablestream.retry_policy import RetryDecision
from tablestream.retry_policy import default_rpc_retry_policy
from tablestream.row import Row
from tablestream.row_set import RowRange
from tablestream.row_set import RowSet

_LOGGER = logging.getLogger(__name__)

ReadRowsFn = Callable[[Dict[str, Any]], Awaitable[AsyncIterable[Row]]]


class ReaderState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


class _ReadRowsOperation:
    """
    State of one scan, and the coroutine that drives it into a buffer.
    """

    def __init__(
        self,
        query: ReadRowsQuery,
        read_rows_fn: ReadRowsFn,
        retry_policy: RPCRetryPolicy,
        backoff_policy: RPCBackoffPolicy,
        clock: Clock,
    ):
        self._read_rows_fn = read_rows_fn
        self._row_set: RowSet = query.row_set
        self._filter = query.filter
        self._remaining_limit: int | None = query.limit or None
        self._retry_policy = retry_policy
        self._backoff_policy = backoff_policy
        self._clock = clock
        self._stream: AsyncIterable[Row] | None = None
        self._last_seen_row_key: bytes | None = None
        self.state = ReaderState.IDLE
        # contains the list of errors that were retried
        self.transient_errors: list[Exception] = []

    async def run(self, buffer: asyncio.Queue[Any]) -> None:
        """
        Drive the scan until it is exhausted or the retry policy gives up.

        The terminal marker or error is queued after every received row. If
        the task ends any other way, it ends with the exception that stopped
        it, and the reader raises that in place of a terminal item.
        """
        try:
            await self._scan(buffer)
        except BaseException as exc:
            if self.state is not ReaderState.CANCELLED:
                self.state = ReaderState.FAILED
                _LOGGER.warning(
                    "read_rows stopped after row %r: %r",
                    self._last_seen_row_key,
                    exc,
                )
            raise

    def _scan_complete(self) -> bool:
        return self._remaining_limit == 0 or self._row_set.is_empty()

    async def _scan(self, buffer: asyncio.Queue[Any]) -> None:
        context = RetryContext(self._clock)
        while not self._scan_complete():
            self.state = ReaderState.STREAMING
            try:
                await self._read_attempt(buffer)
                break
            except Exception as exc:
                attempt_count = context.record_failure()
                decision = self._retry_policy.on_failure(
                    exc, attempt_count, context.elapsed
                )
                if self._retry_policy.is_retryable(exc):
                    self.transient_errors.append(exc)
                if decision is RetryDecision.GIVE_UP:
                    self.state = ReaderState.FAILED
                    _LOGGER.warning(
                        "read_rows giving up after %d failed attempts: %r",
                        attempt_count,
                        exc,
                    )
                    await buffer.put(
                        _terminal_error("read_rows", exc, self.transient_errors)
                    )
                    return
                self.state = ReaderState.RETRYING
                self._narrow_row_set()
                if self._scan_complete():
                    break
                delay = self._backoff_policy.next_delay(attempt_count)
                _LOGGER.debug(
                    "read_rows attempt %d failed with %r; retrying in %.3fs",
                    attempt_count,
                    exc,
                    delay,
                )
                await self._clock.sleep(delay)
        self.state = ReaderState.EXHAUSTED
        await buffer.put(StopAsyncIteration)

    async def _read_attempt(self, buffer: asyncio.Queue[Any]) -> None:
        """
        Issue one scan rpc and push its rows into the buffer.

        Returns when the stream ends or the row limit is reached.
        """
        self._stream = await self._read_rows_fn(self._build_request())
        try:
            async for row in self._stream:
                if (
                    self._last_seen_row_key is not None
                    and row.row_key <= self._last_seen_row_key
                ):
                    raise bt_exceptions.InvalidChunk(
                        "row keys should be strictly increasing"
                    )
                self._last_seen_row_key = row.row_key
                if self._remaining_limit is not None:
                    self._remaining_limit -= 1
                await buffer.put(row)
                if self._remaining_limit == 0:
                    return
        finally:
            await self.release_stream()

    def _build_request(self) -> dict[str, Any]:
        request: dict[str, Any] = {"rows": self._row_set._to_dict()}
        if self._filter is not None:
            request["filter"] = self._filter._to_dict()
        if self._remaining_limit is not None:
            request["rows_limit"] = self._remaining_limit
        return request

    def _narrow_row_set(self) -> None:
        """
        Drop every key up to and including the last received row from the
        target RowSet.
        """
        if self._last_seen_row_key is None:
            return
        self._row_set = self._row_set.intersect(
            RowRange(start_key=self._last_seen_row_key, start_is_inclusive=False)
        )

    async def release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
            return
        cancel = getattr(stream, "cancel", None)
        if cancel is not None:
            cancel()


def _abandon(operation: _ReadRowsOperation, task: asyncio.Task[None]) -> None:
    """Stop the scan of a reader that was collected while still running"""
    if task.done() or task.get_loop().is_closed():
        return
    operation.state = ReaderState.CANCELLED
    task.cancel()
    _LOGGER.debug("read_rows abandoned; stopping the scan")


class RowReader(AsyncIterable[Row]):
    """
    Async iterator over the rows of a scan, resuming it after transient
    failures.

    Rows are returned in key order, without gaps or duplicates. If the
    operation fails, the error is raised after every row received before the
    failure has been returned.

    The reader owns its open stream. It is released when the scan ends,
    fails, or is cancelled; use ``async with`` or ``aclose()`` when leaving
    the iteration early. A reader that is dropped without being closed
    stops its scan and releases the stream when it is garbage collected.
    """

    def __init__(
        self,
        query: ReadRowsQuery,
        read_rows_fn: ReadRowsFn,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
        clock: Clock | None = None,
        buffer_size: int = 1,
    ):
        """
        Args:
          - query: the rows, filter and limit to read
          - read_rows_fn: opens a scan for a request dict and returns the row stream
          - retry_policy: decides whether a failed stream is reissued. Owned by this reader
          - backoff_policy: computes the wait before reissuing. Owned by this reader
          - clock: source of time for elapsed-time policies and backoff waits
          - buffer_size: number of rows read ahead of the caller. 0 means unbounded
        """
        self._operation = _ReadRowsOperation(
            query,
            read_rows_fn,
            retry_policy if retry_policy is not None else default_rpc_retry_policy(),
            backoff_policy
            if backoff_policy is not None
            else default_rpc_backoff_policy(),
            clock if clock is not None else Clock(),
        )
        self._buffer_size = max(buffer_size, 0)
        self._buffer: asyncio.Queue[Any] | None = None
        self._task: asyncio.Task[None] | None = None
        # set once the caller has received the end of the scan or its error
        self._finished = False

    @property
    def state(self) -> ReaderState:
        return self._operation.state

    @property
    def transient_errors(self) -> list[Exception]:
        """Errors that were retried"""
        return self._operation.transient_errors

    @property
    def row_set(self) -> RowSet:
        """The rows the next attempt would request"""
        return self._operation._row_set

    @property
    def remaining_limit(self) -> int | None:
        return self._operation._remaining_limit

    @property
    def last_seen_row_key(self) -> bytes | None:
        return self._operation._last_seen_row_key

    def __aiter__(self) -> AsyncIterator[Row]:
        """Implements the AsyncIterable interface"""
        return self

    async def __anext__(self) -> Row:
        """Implements the AsyncIterator interface"""
        if self._finished:
            raise StopAsyncIteration
        if self.state is ReaderState.CANCELLED:
            raise bt_exceptions.Cancelled("read_rows was cancelled")
        if self._task is None:
            self._start()
        item = await self._next_item()
        if self.state is ReaderState.CANCELLED:
            raise bt_exceptions.Cancelled("read_rows was cancelled")
        if item is StopAsyncIteration:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        return item

    async def __aenter__(self) -> RowReader:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Close the stream and release resources"""
        await self.cancel()

    async def cancel(self) -> None:
        """
        Stop the scan.

        The open stream is released before this returns. Rows that were
        buffered but not yet returned are dropped, and every later call to
        ``__anext__`` raises Cancelled. Has no effect once the caller has
        received the end of the scan.
        """
        if self._finished or self.state is ReaderState.CANCELLED:
            return
        self._operation.state = ReaderState.CANCELLED
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.wait({self._task})
        await self._operation.release_stream()
        if self._buffer is not None:
            while not self._buffer.empty():
                self._buffer.get_nowait()
        _LOGGER.debug(
            "read_rows cancelled after row %r", self._operation._last_seen_row_key
        )

    def _start(self) -> None:
        self._buffer = asyncio.Queue(maxsize=self._buffer_size)
        self._task = asyncio.create_task(self._operation.run(self._buffer))
        weakref.finalize(self, _abandon, self._operation, self._task).atexit = False

    async def _next_item(self) -> Any:
        """
        Wait for the next buffered item, or for the scan task to end without
        queuing one.
        """
        assert self._buffer is not None and self._task is not None
        buffer, task = self._buffer, self._task
        if buffer.empty() and not task.done():
            getter = asyncio.ensure_future(buffer.get())
            try:
                await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not getter.done():
                    getter.cancel()
            if getter.done():
                return getter.result()
        if not buffer.empty():
            return buffer.get_nowait()
        if task.cancelled():
            return bt_exceptions.Cancelled("read_rows stream was cancelled")
        return task.exception() or StopAsyncIteration
