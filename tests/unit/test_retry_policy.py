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

from google.api_core import exceptions as core_exceptions

from tablestream.retry_policy import RetryDecision
from tablestream.retry_policy import StatusCategory


class TestClassifyError:
    @pytest.mark.parametrize(
        "exc,expected",
        [
            (core_exceptions.ServiceUnavailable("e"), StatusCategory.RETRYABLE_TRANSIENT),
            (core_exceptions.DeadlineExceeded("e"), StatusCategory.RETRYABLE_TRANSIENT),
            (core_exceptions.Aborted("e"), StatusCategory.RETRYABLE_TRANSIENT),
            (core_exceptions.InvalidArgument("e"), StatusCategory.PERMANENT_INVALID),
            (core_exceptions.FailedPrecondition("e"), StatusCategory.PERMANENT_INVALID),
            (core_exceptions.OutOfRange("e"), StatusCategory.PERMANENT_INVALID),
            (core_exceptions.AlreadyExists("e"), StatusCategory.PERMANENT_INVALID),
            (core_exceptions.NotFound("e"), StatusCategory.NOT_FOUND),
            (core_exceptions.PermissionDenied("e"), StatusCategory.PERMISSION_DENIED),
            (core_exceptions.Unauthenticated("e"), StatusCategory.PERMISSION_DENIED),
            (core_exceptions.InternalServerError("e"), StatusCategory.UNKNOWN),
            (core_exceptions.Cancelled("e"), StatusCategory.UNKNOWN),
            (RuntimeError("e"), StatusCategory.UNKNOWN),
        ],
    )
    def test_classify(self, exc, expected):
        from tablestream.retry_policy import classify_error

        assert classify_error(exc) is expected


class TestLimitedErrorCountRetryPolicy:
    @staticmethod
    def _get_target_class():
        from tablestream.retry_policy import LimitedErrorCountRetryPolicy

        return LimitedErrorCountRetryPolicy

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    def test_ctor_invalid(self):
        with pytest.raises(ValueError):
            self._make_one(-1)

    def test_allows_max_plus_one_attempts(self):
        policy = self._make_one(2)
        exc = core_exceptions.ServiceUnavailable("unavailable")
        assert policy.on_failure(exc, 1, 0.0) is RetryDecision.RETRY
        assert policy.on_failure(exc, 2, 0.0) is RetryDecision.RETRY
        assert policy.on_failure(exc, 3, 0.0) is RetryDecision.GIVE_UP

    def test_zero_failures_never_retries(self):
        policy = self._make_one(0)
        exc = core_exceptions.DeadlineExceeded("deadline")
        assert policy.on_failure(exc, 1, 0.0) is RetryDecision.GIVE_UP

    def test_ignores_elapsed_time(self):
        policy = self._make_one(5)
        exc = core_exceptions.Aborted("aborted")
        assert policy.on_failure(exc, 1, 1e9) is RetryDecision.RETRY

    @pytest.mark.parametrize(
        "exc",
        [
            core_exceptions.NotFound("missing"),
            core_exceptions.PermissionDenied("denied"),
            core_exceptions.InvalidArgument("bad"),
            ValueError("unknown"),
        ],
    )
    def test_non_transient_gives_up(self, exc):
        policy = self._make_one(100)
        assert not policy.is_retryable(exc)
        assert policy.on_failure(exc, 1, 0.0) is RetryDecision.GIVE_UP

    def test_clone(self):
        policy = self._make_one(3)
        cloned = policy.clone()
        assert cloned is not policy
        assert cloned.maximum_failures == 3
        assert repr(cloned) == "LimitedErrorCountRetryPolicy(maximum_failures=3)"


class TestLimitedTimeRetryPolicy:
    @staticmethod
    def _get_target_class():
        from tablestream.retry_policy import LimitedTimeRetryPolicy

        return LimitedTimeRetryPolicy

    def _make_one(self, *args, **kwargs):
        return self._get_target_class()(*args, **kwargs)

    @pytest.mark.parametrize("duration", [0, -1])
    def test_ctor_invalid(self, duration):
        with pytest.raises(ValueError):
            self._make_one(duration)

    def test_on_failure(self):
        policy = self._make_one(10)
        exc = core_exceptions.ServiceUnavailable("unavailable")
        assert policy.on_failure(exc, 1, 0.0) is RetryDecision.RETRY
        assert policy.on_failure(exc, 1000, 9.99) is RetryDecision.RETRY
        assert policy.on_failure(exc, 2, 10.0) is RetryDecision.GIVE_UP

    def test_non_transient_gives_up(self):
        policy = self._make_one(10)
        exc = core_exceptions.NotFound("missing")
        assert policy.on_failure(exc, 1, 0.0) is RetryDecision.GIVE_UP

    def test_clone(self):
        cloned = self._make_one(2.5).clone()
        assert isinstance(cloned, self._get_target_class())
        assert cloned.maximum_duration == 2.5


class TestRetryContext:
    def test_record_failure(self, fake_clock):
        from tablestream.retry_policy import RetryContext

        context = RetryContext(fake_clock)
        assert context.attempt_count == 0
        assert context.record_failure() == 1
        assert context.record_failure() == 2
        assert context.attempt_count == 2

    def test_elapsed(self, fake_clock):
        from tablestream.retry_policy import RetryContext

        fake_clock.now = 100.0
        context = RetryContext(fake_clock)
        assert context.elapsed == 0
        fake_clock.now = 103.5
        assert context.elapsed == 3.5

    def test_each_operation_starts_over(self, fake_clock):
        from tablestream.retry_policy import RetryContext

        first = RetryContext(fake_clock)
        first.record_failure()
        fake_clock.now = 5.0
        second = RetryContext(fake_clock)
        assert second.attempt_count == 0
        assert second.elapsed == 0
        assert first.elapsed == 5.0


def test_default_policy():
    from tablestream.retry_policy import LimitedTimeRetryPolicy
    from tablestream.retry_policy import default_rpc_retry_policy

    policy = default_rpc_retry_policy()
    assert isinstance(policy, LimitedTimeRetryPolicy)
    assert policy.maximum_duration == 600.0
