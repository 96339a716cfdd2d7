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
The RPC surface consumed by this library.

Implementations send one request and return the response, or raise a
``google.api_core.exceptions.GoogleAPICallError``. They must not retry:
retries, backoff and resumption are handled by the operations built on top.
Credentials and channel management live below this boundary.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, AsyncIterable, Sequence

from google.rpc import status_pb2

from tablestream.row import Row


@dataclass(frozen=True)
class MutateRowsEntryResult:
    """Outcome of one entry of a bulk mutation request"""

    index: int
    status: status_pb2.Status


class BigtableDataTransport(abc.ABC):
    @abc.abstractmethod
    async def read_rows(
        self,
        request: dict[str, Any],
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> AsyncIterable[Row]:
        """
        Open a scan.

        Returns a stream of rows in key order. The returned object may expose
        ``aclose()`` or ``cancel()``; one of them is called when the caller
        stops reading early.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def mutate_row(
        self,
        row_key: bytes,
        mutations: list[dict[str, Any]],
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> None:
        """Apply mutations to a single row atomically"""
        raise NotImplementedError

    @abc.abstractmethod
    async def mutate_rows(
        self,
        entries: list[dict[str, Any]],
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> AsyncIterable[list[MutateRowsEntryResult]]:
        """
        Apply a batch of row mutations.

        Streams one status per entry, where ``index`` is the position of the
        entry in ``entries``.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def sample_row_keys(
        self,
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> AsyncIterable[tuple[bytes, int]]:
        """
        Stream ``(row_key, offset_bytes)`` samples that split the table into
        contiguous sections of roughly equal size.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def check_and_mutate_row(
        self,
        row_key: bytes,
        predicate_filter: dict[str, Any] | None,
        true_mutations: list[dict[str, Any]],
        false_mutations: list[dict[str, Any]],
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> bool:
        """
        Apply ``true_mutations`` if the filter yields any cell of the row,
        ``false_mutations`` otherwise. Returns whether the filter matched.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def read_modify_write_row(
        self,
        row_key: bytes,
        rules: list[dict[str, Any]],
        *,
        table_name: str,
        app_profile_id: str | None = None,
        metadata: Sequence[tuple[str, str]] = (),
    ) -> Row:
        """Apply the rules atomically and return the modified cells"""
        raise NotImplementedError
