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

import pytest

from tablestream import idempotency
from tablestream import mutations


def _entry(*mutation_list):
    return mutations.RowMutationEntry(b"row", list(mutation_list))


_IDEMPOTENT = _entry(
    mutations.SetCell("f", b"q", b"v", 1000),
    mutations.DeleteAllFromFamily("f"),
)
_SERVER_TIMESTAMP = _entry(mutations.SetCell("f", b"q", b"v"))
_INCREMENT = _entry(mutations.IncrementCell("f", b"q"))
_APPEND = _entry(mutations.AppendToCell("f", b"q", b"v"))


class TestSafeIdempotentMutationPolicy:
    def _make_one(self):
        return idempotency.SafeIdempotentMutationPolicy()

    @pytest.mark.parametrize(
        "entry,expected",
        [
            (_IDEMPOTENT, True),
            (_SERVER_TIMESTAMP, False),
            (_INCREMENT, False),
            (_APPEND, False),
        ],
    )
    def test_is_idempotent(self, entry, expected):
        assert self._make_one().is_idempotent(entry) is expected

    def test_clone(self):
        policy = self._make_one()
        cloned = policy.clone()
        assert cloned is not policy
        assert isinstance(cloned, idempotency.SafeIdempotentMutationPolicy)


class TestAlwaysRetryMutationPolicy:
    @pytest.mark.parametrize("entry", [_IDEMPOTENT, _SERVER_TIMESTAMP, _INCREMENT])
    def test_is_idempotent(self, entry):
        assert idempotency.AlwaysRetryMutationPolicy().is_idempotent(entry)

    def test_clone(self):
        cloned = idempotency.AlwaysRetryMutationPolicy().clone()
        assert isinstance(cloned, idempotency.AlwaysRetryMutationPolicy)


def test_default_policy_is_safe():
    policy = idempotency.default_idempotent_mutation_policy()
    assert isinstance(policy, idempotency.SafeIdempotentMutationPolicy)
    assert not policy.is_idempotent(_INCREMENT)


def test_abstract_policy():
    with pytest.raises(TypeError):
        idempotency.IdempotentMutationPolicy()
