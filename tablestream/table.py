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

import functools
from typing import Sequence

from tablestream._helpers import Clock
from tablestream._helpers import _make_metadata
from tablestream._helpers import _not_retried_error
from tablestream._mutate_rows import _MutateRowOperation
from tablestream._mutate_rows import _MutateRowsOperation
from tablestream._read_rows import RowReader
from tablestream._sample_row_keys import RowKeySamples
from tablestream._sample_row_keys import _SampleRowKeysOperation
from tablestream.backoff_policy import RPCBackoffPolicy
from tablestream.backoff_policy import default_rpc_backoff_policy
from tablestream.idempotency import IdempotentMutationPolicy
from tablestream.idempotency import default_idempotent_mutation_policy
from tablestream.mutations import _MUTATE_ROWS_REQUEST_MUTATION_LIMIT
from tablestream.mutations import Mutation
from tablestream.mutations import RowMutationEntry
from tablestream.read_rows_query import ReadRowsQuery
from tablestream.read_modify_write_rules import ReadModifyWriteRule
from tablestream.retry_policy import RPCRetryPolicy
from tablestream.retry_policy import default_rpc_retry_policy
from tablestream.row import Row
from tablestream.row_filters import RowFilter
from tablestream.row_filters import StripValueTransformerFilter
from tablestream.row_filters import CellsRowLimitFilter
from tablestream.row_filters import chain
from tablestream.transport import BigtableDataTransport


class Table:
    """
    Main Data API surface for a single table.

    Table holds the default policies for its operations. Every operation
    works on its own clones of those policies, so the retry history of one
    operation never affects another.
    """

    def __init__(
        self,
        transport: BigtableDataTransport,
        table_name: str,
        app_profile_id: str | None = None,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
        idempotent_mutation_policy: IdempotentMutationPolicy | None = None,
        clock: Clock | None = None,
        read_rows_buffer_size: int = 1,
    ):
        """
        Initialize a Table instance

        Args:
            transport: sends requests to the service. Must not retry on its own
            table_name: the fully qualified table name,
                ``projects/<project>/instances/<instance>/tables/<table>``
            app_profile_id: The app profile to associate with requests.
                https://cloud.google.com/bigtable/docs/app-profiles
            retry_policy: default retry policy for all operations. If not set,
                retries transient failures for up to 10 minutes
            backoff_policy: default backoff between attempts. If not set,
                exponential from 10ms up to 60s
            idempotent_mutation_policy: decides which writes may be retried.
                If not set, only batches of idempotent mutations are retried.
                AlwaysRetryMutationPolicy must be passed explicitly
            clock: source of time and sleeps for retries
            read_rows_buffer_size: rows read ahead of the caller by each RowReader
        Raises:
          - ValueError if table_name is empty or read_rows_buffer_size is negative
        """
        if not table_name:
            raise ValueError("table_name must not be empty")
        if read_rows_buffer_size < 0:
            raise ValueError("read_rows_buffer_size must be >= 0")
        self._transport = transport
        self.table_name = table_name
        self.app_profile_id = app_profile_id
        self.default_retry_policy = (
            retry_policy if retry_policy is not None else default_rpc_retry_policy()
        )
        self.default_backoff_policy = (
            backoff_policy
            if backoff_policy is not None
            else default_rpc_backoff_policy()
        )
        self.default_idempotent_mutation_policy = (
            idempotent_mutation_policy
            if idempotent_mutation_policy is not None
            else default_idempotent_mutation_policy()
        )
        self._clock = clock if clock is not None else Clock()
        self.read_rows_buffer_size = read_rows_buffer_size

    def _rpc_kwargs(self) -> dict:
        return {
            "table_name": self.table_name,
            "app_profile_id": self.app_profile_id,
            "metadata": _make_metadata(self.table_name, self.app_profile_id),
        }

    def _policies(
        self,
        retry_policy: RPCRetryPolicy | None,
        backoff_policy: RPCBackoffPolicy | None,
    ) -> tuple[RPCRetryPolicy, RPCBackoffPolicy]:
        return (
            (retry_policy or self.default_retry_policy).clone(),
            (backoff_policy or self.default_backoff_policy).clone(),
        )

    def read_rows_stream(
        self,
        query: ReadRowsQuery,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
    ) -> RowReader:
        """
        Read a set of rows from the table, based on the specified query.

        Returns a RowReader that yields rows as they arrive. Failed streams
        are reissued for the rows not yet received.

        Args:
            - query: contains details about which rows to return
            - retry_policy: overrides the table's retry policy for this scan
            - backoff_policy: overrides the table's backoff policy for this scan
        Returns:
            - a RowReader, to be consumed with ``async for``. Raises
              PermanentError or RetriesExhausted after the rows received
              before the failure, or Cancelled once cancelled
        """
        retry, backoff = self._policies(retry_policy, backoff_policy)
        return RowReader(
            query,
            functools.partial(self._transport.read_rows, **self._rpc_kwargs()),
            retry_policy=retry,
            backoff_policy=backoff,
            clock=self._clock,
            buffer_size=self.read_rows_buffer_size,
        )

    async def read_rows(
        self,
        query: ReadRowsQuery,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
    ) -> list[Row]:
        """
        Read a set of rows from the table, based on the specified query.
        Returns results as a list of Row objects when the request is complete.
        """
        async with self.read_rows_stream(
            query, retry_policy=retry_policy, backoff_policy=backoff_policy
        ) as reader:
            return [row async for row in reader]

    async def read_row(
        self,
        row_key: str | bytes,
        *,
        row_filter: RowFilter | None = None,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
    ) -> Row | None:
        """
        Read a single row from the table, based on the specified key.

        Returns:
            - a Row object if the row exists, otherwise None
        """
        if row_key is None:
            raise ValueError("row_key must be string or bytes")
        query = ReadRowsQuery(row_keys=row_key, row_filter=row_filter, limit=1)
        results = await self.read_rows(
            query, retry_policy=retry_policy, backoff_policy=backoff_policy
        )
        if len(results) == 0:
            return None
        return results[0]

    async def row_exists(self, row_key: str | bytes) -> bool:
        """
        Return a boolean indicating whether the specified row exists in the table.
        Uses a filter that fetches at most one cell, with its value stripped.
        """
        if row_key is None:
            raise ValueError("row_key must be string or bytes")
        strip_filter = StripValueTransformerFilter()
        limit_filter = CellsRowLimitFilter(1)
        row = await self.read_row(row_key, row_filter=chain(limit_filter, strip_filter))
        return row is not None

    async def mutate_row(
        self,
        row_key: str | bytes,
        mutations: Sequence[Mutation] | Mutation,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
        idempotent_mutation_policy: IdempotentMutationPolicy | None = None,
    ) -> None:
        """
        Mutates a row atomically.

        Cells already present in the row are left unchanged unless explicitly
        changed by ``mutations``. The write is retried only while the
        idempotency policy reports the batch as idempotent.

        Raises:
            - TransientError: a non-idempotent batch failed with a retryable status
            - PermanentError: the failure status is never retried
            - RetriesExhausted: the retry policy gave up; chained with a
                RetryExceptionGroup of every failed attempt
        """
        retry, backoff = self._policies(retry_policy, backoff_policy)
        idempotency = (
            idempotent_mutation_policy or self.default_idempotent_mutation_policy
        ).clone()
        operation = _MutateRowOperation(
            functools.partial(self._transport.mutate_row, **self._rpc_kwargs()),
            RowMutationEntry(row_key, mutations),
            retry_policy=retry,
            backoff_policy=backoff,
            idempotency_policy=idempotency,
            clock=self._clock,
        )
        await operation.start()

    async def bulk_mutate_rows(
        self,
        mutation_entries: list[RowMutationEntry],
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
        idempotent_mutation_policy: IdempotentMutationPolicy | None = None,
    ) -> None:
        """
        Applies mutations for multiple rows in a single batched request.

        Each individual RowMutationEntry is applied atomically, but separate entries
        may be applied in arbitrary order. Idempotent entries are retried on
        transient failures; others are reported in the raised exception group

        Raises:
            - MutationsExceptionGroup if one or more mutations fails
                Contains details about any failed entries in .exceptions
        """
        retry, backoff = self._policies(retry_policy, backoff_policy)
        idempotency = (
            idempotent_mutation_policy or self.default_idempotent_mutation_policy
        ).clone()
        operation = _MutateRowsOperation(
            functools.partial(self._transport.mutate_rows, **self._rpc_kwargs()),
            list(mutation_entries),
            retry_policy=retry,
            backoff_policy=backoff,
            idempotency_policy=idempotency,
            clock=self._clock,
        )
        await operation.start()

    async def sample_row_keys(
        self,
        *,
        retry_policy: RPCRetryPolicy | None = None,
        backoff_policy: RPCBackoffPolicy | None = None,
    ) -> RowKeySamples:
        """
        Return a set of RowKeySamples that delimit contiguous sections of the table of
        approximately equal size

        RowKeySamples is simply a type alias for list[tuple[bytes, int]]; a list of
            row_keys, along with offset positions in the table

        Raises:
            - PermanentError: the failure status is never retried
            - RetriesExhausted: the retry policy gave up; chained with a
                RetryExceptionGroup of every failed attempt
        """
        retry, backoff = self._policies(retry_policy, backoff_policy)
        operation = _SampleRowKeysOperation(
            functools.partial(self._transport.sample_row_keys, **self._rpc_kwargs()),
            retry_policy=retry,
            backoff_policy=backoff,
            clock=self._clock,
        )
        return await operation.start()

    async def check_and_mutate_row(
        self,
        row_key: str | bytes,
        predicate: RowFilter | None,
        *,
        true_case_mutations: Mutation | Sequence[Mutation] | None = None,
        false_case_mutations: Mutation | Sequence[Mutation] | None = None,
    ) -> bool:
        """
        Mutates a row atomically based on the output of a predicate filter

        Non-idempotent operation: will not be retried

        Args:
            - row_key: the key of the row to mutate
            - predicate: the filter to be applied to the contents of the specified row.
                Depending on whether or not any results are yielded,
                either true_case_mutations or false_case_mutations will be executed.
                If None, checks that the row contains any values at all.
            - true_case_mutations: applied in order if the predicate yields at
                least one cell
            - false_case_mutations: applied in order if the predicate yields no
                cells. At least one of the two lists must be non-empty
        Returns:
            - bool indicating whether the predicate was true or false
        Raises:
            - ValueError if both mutation lists are empty or either is too long
            - TransientError: the call failed with a retryable status
            - PermanentError: the failure status is never retried
        """
        row_key = row_key.encode() if isinstance(row_key, str) else row_key
        true_case_dict = _mutation_dicts(true_case_mutations)
        false_case_dict = _mutation_dicts(false_case_mutations)
        if not true_case_dict and not false_case_dict:
            raise ValueError(
                "true_case_mutations or false_case_mutations must not be empty"
            )
        predicate_dict = predicate._to_dict() if predicate is not None else None
        try:
            return await self._transport.check_and_mutate_row(
                row_key,
                predicate_dict,
                true_case_dict,
                false_case_dict,
                **self._rpc_kwargs(),
            )
        except Exception as exc:
            raise _not_retried_error(
                f"check_and_mutate_row failed for {row_key!r}: {exc}", exc
            )

    async def read_modify_write_row(
        self,
        row_key: str | bytes,
        rules: ReadModifyWriteRule | Sequence[ReadModifyWriteRule],
    ) -> Row:
        """
        Reads and modifies a row atomically according to input ReadModifyWriteRules,
        and returns the contents of all modified cells

        The new value for the timestamp is the greater of the existing timestamp or
        the current server time.

        Non-idempotent operation: will not be retried

        Args:
            - row_key: the key of the row to apply read/modify/write rules to
            - rules: A rule or set of rules to apply to the row.
                Rules are applied in order, meaning that earlier rules will affect the
                results of later ones.
        Returns:
            - Row: containing cell data that was modified as part of the
                operation
        Raises:
            - ValueError if rules is empty
            - TransientError: the call failed with a retryable status
            - PermanentError: the failure status is never retried
        """
        row_key = row_key.encode() if isinstance(row_key, str) else row_key
        if not isinstance(rules, (list, tuple)):
            rules = [rules]
        if not rules:
            raise ValueError("rules must contain at least one item")
        rules_dict = [rule._to_dict() for rule in rules]
        try:
            return await self._transport.read_modify_write_row(
                row_key, rules_dict, **self._rpc_kwargs()
            )
        except Exception as exc:
            raise _not_retried_error(
                f"read_modify_write_row failed for {row_key!r}: {exc}", exc
            )
    def __repr__(self):
        return f"Table(table_name={self.table_name!r}, app_profile_id={self.app_profile_id!r})"


def _mutation_dicts(
    mutations: Mutation | Sequence[Mutation] | None,
) -> list[dict]:
    if mutations is None:
        return []
    if not isinstance(mutations, (list, tuple)):
        mutations = [mutations]
    if len(mutations) > _MUTATE_ROWS_REQUEST_MUTATION_LIMIT:
        raise ValueError(
            f"mutation lists must have <= {_MUTATE_ROWS_REQUEST_MUTATION_LIMIT} mutations"
        )
    return [mutation._to_dict() for mutation in mutations]
