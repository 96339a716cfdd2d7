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
"""Resumable row streaming and retrying writes for Cloud Bigtable."""

from tablestream._helpers import Clock
from tablestream._read_rows import ReaderState
from tablestream._read_rows import RowReader
from tablestream.backoff_policy import ExponentialBackoffPolicy
from tablestream.backoff_policy import RPCBackoffPolicy
from tablestream.exceptions import Cancelled
from tablestream.exceptions import FailedMutationEntryError
from tablestream.exceptions import MutationsExceptionGroup
from tablestream.exceptions import PermanentError
from tablestream.exceptions import RetriesExhausted
from tablestream.exceptions import RetryExceptionGroup
from tablestream.exceptions import TransientError
from tablestream.idempotency import AlwaysRetryMutationPolicy
from tablestream.idempotency import IdempotentMutationPolicy
from tablestream.idempotency import SafeIdempotentMutationPolicy
from tablestream.mutations import AppendToCell
from tablestream.mutations import DeleteAllFromFamily
from tablestream.mutations import DeleteAllFromRow
from tablestream.mutations import DeleteRangeFromColumn
from tablestream.mutations import IncrementCell
from tablestream.mutations import RowMutationEntry
from tablestream.mutations import SetCell
from tablestream.read_modify_write_rules import AppendValueRule
from tablestream.read_modify_write_rules import IncrementRule
from tablestream.read_rows_query import ReadRowsQuery
from tablestream.retry_policy import LimitedErrorCountRetryPolicy
from tablestream.retry_policy import LimitedTimeRetryPolicy
from tablestream.retry_policy import RPCRetryPolicy
from tablestream.retry_policy import RetryDecision
from tablestream.retry_policy import StatusCategory
from tablestream.row import Cell
from tablestream.row import Row
from tablestream.row_set import RowRange
from tablestream.row_set import RowSet
from tablestream.table import Table
from tablestream.transport import BigtableDataTransport
from tablestream.transport import MutateRowsEntryResult

__version__ = "0.1.0"

__all__ = (
    "AlwaysRetryMutationPolicy",
    "AppendToCell",
    "AppendValueRule",
    "BigtableDataTransport",
    "Cancelled",
    "Cell",
    "Clock",
    "DeleteAllFromFamily",
    "DeleteAllFromRow",
    "DeleteRangeFromColumn",
    "ExponentialBackoffPolicy",
    "FailedMutationEntryError",
    "IdempotentMutationPolicy",
    "IncrementCell",
    "IncrementRule",
    "LimitedErrorCountRetryPolicy",
    "LimitedTimeRetryPolicy",
    "MutateRowsEntryResult",
    "MutationsExceptionGroup",
    "PermanentError",
    "RPCBackoffPolicy",
    "RPCRetryPolicy",
    "ReadRowsQuery",
    "ReaderState",
    "RetriesExhausted",
    "RetryDecision",
    "RetryExceptionGroup",
    "Row",
    "RowMutationEntry",
    "RowRange",
    "RowReader",
    "RowSet",
    "SafeIdempotentMutationPolicy",
    "SetCell",
    "StatusCategory",
    "Table",
    "TransientError",
)
