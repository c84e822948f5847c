"""
Unit tests for RetryPolicy, OperationResult and AccessRecorder
"""

import pytest

from application.access_recorder import AccessRecorder
from application.operation_result import OperationResult
from application.retry import RetryPolicy, is_transient
from domain.errors import (
    ErrorCategory,
    LinkRevokedError,
    MetadataUnavailableError,
    StorageUnavailableError,
)
from domain.file_sharing import AccessAction
from tests.fixtures import BASE_TIME, MockAccessLogRepository, create_stored_file


class Flaky:
    """Callable that fails a fixed number of times before succeeding."""

    def __init__(self, failures, result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestRetryPolicy:
    """Test bounded exponential backoff."""

    def test_delays_grow_and_are_capped(self):
        policy = RetryPolicy(max_attempts=6, base_delay=0.5, max_delay=3.0)
        assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]

    def test_succeeds_after_transient_failures(self, retry_policy, sleeps):
        op = Flaky([StorageUnavailableError("a"), MetadataUnavailableError("b")])

        assert retry_policy.call(op, description="flaky") == "ok"
        assert op.calls == 3
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_max_attempts(self, retry_policy, sleeps):
        op = Flaky([StorageUnavailableError(str(n)) for n in range(5)])

        with pytest.raises(StorageUnavailableError, match="2"):
            retry_policy.call(op)
        assert op.calls == 3
        assert len(sleeps) == 2

    def test_non_transient_error_is_not_retried(self, retry_policy, sleeps):
        op = Flaky([LinkRevokedError("revoked")])

        with pytest.raises(LinkRevokedError):
            retry_policy.call(op)
        assert op.calls == 1
        assert sleeps == []

    def test_foreign_exceptions_propagate(self, retry_policy):
        op = Flaky([KeyError("bug")])

        with pytest.raises(KeyError):
            retry_policy.call(op)
        assert op.calls == 1

    def test_arguments_are_passed_through(self, retry_policy):
        assert retry_policy.call(lambda a, b=0: a + b, 2, b=3) == 5

    def test_single_attempt(self):
        policy = RetryPolicy(max_attempts=1, sleep=lambda _: None)
        with pytest.raises(StorageUnavailableError):
            policy.call(Flaky([StorageUnavailableError("x")]))

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("RETRY_BASE_DELAY_SECONDS", "0.1")
        monkeypatch.setenv("RETRY_MAX_DELAY_SECONDS", "2")

        policy = RetryPolicy.from_env()

        assert (policy.max_attempts, policy.base_delay, policy.max_delay) == (5, 0.1, 2.0)

    def test_is_transient(self):
        assert is_transient(StorageUnavailableError("x"))
        assert not is_transient(LinkRevokedError("x"))
        assert not is_transient(ConnectionError("x"))


class TestOperationResult:
    def test_ok(self):
        file = create_stored_file(file_id="f1")
        result = OperationResult.ok(file)

        assert result.success
        assert result.unwrap() is file
        assert result.error_kind is None
        assert result.to_dict()["value"]["file_id"] == "f1"

    def test_from_error(self):
        result = OperationResult.from_error(MetadataUnavailableError("redis down"))

        assert not result.success
        assert result.error_category is ErrorCategory.METADATA_UNAVAILABLE
        assert result.retryable
        data = result.to_dict()
        assert data["error"]["error"] == "metadata_unavailable"
        assert data["error_message"] == "redis down"

    def test_unwrap_failure(self):
        with pytest.raises(ValueError):
            OperationResult.fail(ErrorCategory.LINK_EXPIRED, "gone").unwrap()


class TestAccessRecorder:
    def test_records_entry(self, clock):
        repo = MockAccessLogRepository()
        recorder = AccessRecorder(repo, clock=clock)

        assert recorder.record("f1", AccessAction.DOWNLOADED, link_id="l1", ip_address="::1")

        [entry] = repo.list_for_file("f1")
        assert entry.timestamp == BASE_TIME
        assert entry.link_id == "l1"
        assert entry.ip_address == "::1"

    def test_failed_append_is_swallowed(self, clock, caplog):
        repo = MockAccessLogRepository()
        repo.fail("append", MetadataUnavailableError("redis down"))
        recorder = AccessRecorder(repo, clock=clock)

        assert recorder.record("f1", AccessAction.UPLOADED) is False
        assert repo.list_for_file("f1") == []
        assert "Failed to record UPLOADED" in caplog.text
