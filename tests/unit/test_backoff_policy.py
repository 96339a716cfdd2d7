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

import random

import mock
import pytest


class TestExponentialBackoffPolicy:
    @staticmethod
    def _get_target_class():
        from tablestream.backoff_policy import ExponentialBackoffPolicy

        return ExponentialBackoffPolicy

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    def test_defaults(self):
        policy = self._make_one()
        assert policy.initial == 0.01
        assert policy.maximum == 60
        assert policy.multiplier == 2
        assert policy.jitter == 0.5

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial": 0},
            {"initial": 2, "maximum": 1},
            {"jitter": -0.1},
            {"multiplier": 1.2, "jitter": 0.5},
        ],
    )
    def test_ctor_invalid(self, kwargs):
        with pytest.raises(ValueError):
            self._make_one(**kwargs)

    def test_no_jitter_doubles(self):
        policy = self._make_one(initial=1, maximum=10, multiplier=2, jitter=0)
        delays = [policy.next_delay(attempt) for attempt in range(1, 7)]
        assert delays == [1, 2, 4, 8, 10, 10]

    def test_first_delay_bounds(self):
        for seed in range(20):
            policy = self._make_one(initial=1, rng=random.Random(seed))
            assert 1 <= policy.next_delay(1) <= 1.5

    def test_jitter_clipped_at_maximum(self):
        rng = mock.Mock()
        rng.uniform.side_effect = lambda low, high: high
        policy = self._make_one(initial=1, maximum=5, multiplier=2, jitter=0.5, rng=rng)
        assert policy.next_delay(3) == 5
        rng.uniform.assert_called_once_with(0, 2.0)

    def test_non_decreasing(self):
        for seed in range(50):
            policy = self._make_one(rng=random.Random(seed))
            delays = [policy.next_delay(attempt) for attempt in range(1, 30)]
            assert delays == sorted(delays)
            assert all(0 < d <= 60 for d in delays)
            assert delays[-1] == 60

    def test_non_decreasing_worst_case_jitter(self):
        # largest jitter followed by the smallest one
        rng = mock.Mock()
        rng.uniform.side_effect = [1.5 * 0.5, 0.0]
        policy = self._make_one(initial=1.5, maximum=100, multiplier=1.5, jitter=0.5, rng=rng)
        first = policy.next_delay(1)
        second = policy.next_delay(2)
        assert first == 2.25
        assert second == 2.25

    def test_restarts_with_attempt_count(self):
        policy = self._make_one(initial=1, maximum=100, jitter=0)
        assert policy.next_delay(5) == 16
        # a new operation counts its attempts from one again
        assert policy.next_delay(1) == 1

    def test_clone(self):
        policy = self._make_one(initial=0.5, maximum=2, multiplier=3, jitter=1)
        cloned = policy.clone()
        assert cloned is not policy
        assert cloned._rng is not policy._rng
        assert (cloned.initial, cloned.maximum, cloned.multiplier, cloned.jitter) == (
            0.5,
            2,
            3,
            1,
        )

    def test_default_policy(self):
        from tablestream.backoff_policy import default_rpc_backoff_policy

        assert isinstance(default_rpc_backoff_policy(), self._get_target_class())
