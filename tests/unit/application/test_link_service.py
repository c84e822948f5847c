"""
Unit tests for LinkService

Covers issuing, validating, resolving and revoking links against the
in-memory stores, including lazy expiry and concurrent resolution.
"""

import threading
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as api_exceptions

from domain.errors import (
    DuplicateTokenError,
    ErrorCategory,
    MetadataUnavailableError,
    StorageOperationError,
    StorageUnavailableError,
)
from domain.events import (
    ConsistencyFaultEvent,
    DownloadResolvedEvent,
    LinkExpiredEvent,
    LinkIssuedEvent,
    LinkRevokedEvent,
)
from domain.file_sharing import (
    AccessAction,
    DownloadTargetKind,
    FileStatus,
    LinkStatus,
)
from tests.fixtures import create_share_link, create_stored_file


@pytest.fixture
def stored_file(file_repository, blob_storage):
    """An Active file whose blob is present."""
    file = create_stored_file(file_id="file-1")
    file_repository.put_directly(file)
    blob_storage.put_directly(file.storage_locator, b"%PDF-1.7")
    return file


def issue(link_service, file_id="file-1", ttl=60):
    result = link_service.issue_link(file_id, ttl, client_ip="10.0.0.1")
    assert result.success, result.error_message
    return result.value


class TestIssueLink:
    """Test link creation."""

    def test_issue_link_creates_active_link(self, link_service, stored_file, link_repository, clock):
        link = issue(link_service, ttl=60)

        assert link.status is LinkStatus.ACTIVE
        assert link.access_count == 0
        assert link.file_id == stored_file.file_id
        assert link.created_at == clock()
        assert (link.expires_at - link.created_at).total_seconds() == 3600
        assert link.url == f"http://localhost:5000/api/links/download/{link.token}"
        assert link_repository.get(link.link_id) == link

    def test_issue_link_records_and_publishes(self, link_service, stored_file,
                                              access_log_repository, published_events):
        link = issue(link_service)

        entries = access_log_repository.list_for_file(stored_file.file_id)
        assert [e.action for e in entries] == [AccessAction.LINK_GENERATED]
        assert entries[0].link_id == link.link_id
        assert entries[0].ip_address == "10.0.0.1"
        assert [type(e) for e in published_events] == [LinkIssuedEvent]

    def test_tokens_are_unique_across_links(self, link_service, stored_file):
        tokens = {issue(link_service).token for _ in range(50)}
        assert len(tokens) == 50

    @pytest.mark.parametrize("ttl", [1, 1440])
    def test_ttl_at_bounds_is_accepted(self, link_service, stored_file, ttl):
        assert link_service.issue_link(stored_file.file_id, ttl).success

    @pytest.mark.parametrize("ttl", [0, -5, 1441, 1.5, "60", None, True])
    def test_ttl_out_of_range_is_rejected(self, link_service, stored_file, link_repository, ttl):
        result = link_service.issue_link(stored_file.file_id, ttl)

        assert not result.success
        assert result.error_category is ErrorCategory.INVALID_TTL
        assert link_repository.snapshot() == {}

    def test_unknown_file(self, link_service):
        result = link_service.issue_link("missing", 60)
        assert result.error_category is ErrorCategory.FILE_NOT_FOUND

    def test_deleted_file_is_not_found(self, link_service, file_repository, stored_file):
        file_repository.compare_and_set_status(
            stored_file.file_id, (FileStatus.ACTIVE,), FileStatus.DELETED
        )
        result = link_service.issue_link(stored_file.file_id, 60)
        assert result.error_category is ErrorCategory.FILE_NOT_FOUND

    def test_file_past_its_expiry(self, link_service, file_repository, blob_storage, clock):
        file = create_stored_file(file_id="old", expires_at=clock())
        file_repository.put_directly(file)
        blob_storage.put_directly(file.storage_locator)

        result = link_service.issue_link("old", 60)

        assert result.error_category is ErrorCategory.FILE_EXPIRED

    def test_missing_blob_is_consistency_fault(self, link_service, stored_file, blob_storage,
                                               link_repository, published_events):
        blob_storage.remove_directly(stored_file.storage_locator)

        result = link_service.issue_link(stored_file.file_id, 60)

        assert result.error_category is ErrorCategory.OBJECT_MISSING
        assert link_repository.snapshot() == {}
        faults = [e for e in published_events if isinstance(e, ConsistencyFaultEvent)]
        assert len(faults) == 1
        assert faults[0].storage_locator == stored_file.storage_locator

    def test_storage_outage_is_reported_after_retries(self, link_service, stored_file,
                                                      blob_storage, sleeps):
        blob_storage.fail("exists", StorageUnavailableError("gcs down"), times=3)

        result = link_service.issue_link(stored_file.file_id, 60)

        assert result.error_category is ErrorCategory.STORAGE_UNAVAILABLE
        assert result.retryable
        assert sleeps == [0.5, 1.0]

    def test_refused_storage_check_is_a_failure_result(self, link_service, stored_file, blob_storage,
                                                       link_repository, sleeps):
        blob_storage.fail("exists", StorageOperationError("403 no access"))

        result = link_service.issue_link(stored_file.file_id, 60)

        assert not result.success
        assert result.error_category is ErrorCategory.STORAGE_REJECTED
        assert not result.retryable
        assert sleeps == []
        assert link_repository.snapshot() == {}

    def test_gcs_permission_error_is_a_failure_result(self, file_repository, link_repository,
                                                      access_recorder, event_publisher,
                                                      retry_policy, clock):
        from application.link_service import LinkService
        from domain.file_sharing import LinkUrlBuilder
        from infrastructure.gcs_storage_repository import GCSStorageRepository

        client = MagicMock()
        client.bucket.return_value.blob.return_value.exists.side_effect = api_exceptions.Forbidden("no access")
        storage = GCSStorageRepository("share-bucket", client=client, clock=clock)
        file_repository.put_directly(create_stored_file(file_id="cloud"))
        service = LinkService(file_repository, link_repository, storage, access_recorder,
                              event_publisher, LinkUrlBuilder(""), retry_policy=retry_policy,
                              clock=clock)

        result = service.issue_link("cloud", 30)

        assert result.error_category is ErrorCategory.STORAGE_REJECTED
        assert link_repository.snapshot() == {}

    def test_token_collision_draws_a_new_token(self, link_service, stored_file, link_repository):
        link_repository.fail("add", DuplicateTokenError("taken"))

        result = link_service.issue_link(stored_file.file_id, 60)

        assert result.success
        assert link_repository.calls_to("add") == 2

    def test_repeated_token_collision_is_internal_error(self, link_service, stored_file, link_repository):
        link_repository.fail("add", DuplicateTokenError("taken"), times=2)

        result = link_service.issue_link(stored_file.file_id, 60)

        assert result.error_category is ErrorCategory.INTERNAL_ERROR
        assert link_repository.snapshot() == {}


class TestValidateToken:
    """Test token validation and lazy expiry."""

    def test_fresh_link_is_valid(self, link_service, stored_file):
        link = issue(link_service)
        assert link_service.validate_token(link.token) is True

    def test_link_becomes_invalid_at_expiry(self, link_service, stored_file, link_repository,
                                            clock, published_events, access_log_repository):
        """
        Test lazy expiry.

        Verifies that:
        - The link is valid until its expiry instant
        - Validation at the expiry instant returns False
        - The Expired status is persisted and observed afterwards
        """
        link = issue(link_service, ttl=60)

        clock.advance(minutes=59, seconds=59)
        assert link_service.validate_token(link.token) is True

        clock.advance(seconds=1)
        assert link_service.validate_token(link.token) is False
        assert link_repository.get(link.link_id).status is LinkStatus.EXPIRED
        assert sum(isinstance(e, LinkExpiredEvent) for e in published_events) == 1
        assert AccessAction.LINK_EXPIRED in access_log_repository.actions()

        # Already expired: no second transition
        assert link_service.validate_token(link.token) is False
        assert sum(isinstance(e, LinkExpiredEvent) for e in published_events) == 1

    def test_unknown_token_is_invalid_without_writes(self, link_service, link_repository,
                                                     access_log_repository):
        assert link_service.validate_token("A" * 32) is False
        assert link_repository.calls_to("compare_and_set_status") == 0
        assert access_log_repository.actions() == []

    @pytest.mark.parametrize("token", ["", "short", "x" * 33, "a" * 31 + "!", None, 42])
    def test_malformed_token_is_invalid(self, link_service, link_repository, token):
        assert link_service.validate_token(token) is False
        assert link_repository.calls_to("get_by_token") == 0

    def test_revoked_link_is_invalid(self, link_service, stored_file):
        link = issue(link_service)
        assert link_service.revoke_link(link.link_id)
        assert link_service.validate_token(link.token) is False

    def test_link_of_deleted_file_is_expired(self, link_service, stored_file, file_repository,
                                             link_repository):
        link = issue(link_service)
        file_repository.compare_and_set_status(
            stored_file.file_id, (FileStatus.ACTIVE,), FileStatus.DELETED
        )

        assert link_service.validate_token(link.token) is False
        assert link_repository.get(link.link_id).status is LinkStatus.EXPIRED

    def test_transient_metadata_failure_is_retried(self, link_service, stored_file,
                                                   link_repository, sleeps):
        link = issue(link_service)
        link_repository.fail("get_by_token", MetadataUnavailableError("redis timeout"))

        assert link_service.validate_token(link.token) is True
        assert sleeps == [0.5]

    def test_metadata_outage_propagates(self, link_service, stored_file, link_repository):
        link = issue(link_service)
        link_repository.fail("get_by_token", MetadataUnavailableError("redis down"), times=3)

        with pytest.raises(MetadataUnavailableError):
            link_service.validate_token(link.token)


class TestResolveDownload:
    """Test download resolution."""

    def test_resolve_counts_access_and_returns_target(self, link_service, stored_file,
                                                      link_repository, access_log_repository,
                                                      published_events):
        link = issue(link_service)

        result = link_service.resolve_download(link.token, client_ip="192.0.2.7")

        assert result.success
        target = result.value
        assert target.kind is DownloadTargetKind.LOCAL_STREAM
        assert target.locator == stored_file.storage_locator
        assert target.filename == stored_file.original_name
        assert target.content_type == stored_file.content_type
        assert link_repository.get(link.link_id).access_count == 1

        downloads = [e for e in access_log_repository.list_for_file(stored_file.file_id)
                     if e.action is AccessAction.DOWNLOADED]
        assert len(downloads) == 1
        assert downloads[0].ip_address == "192.0.2.7"

        resolved = [e for e in published_events if isinstance(e, DownloadResolvedEvent)]
        assert resolved[0].access_count == 1
        assert resolved[0].target_kind == "local_stream"

    def test_delegated_url_target(self, file_repository, link_repository, access_recorder,
                                  event_publisher, retry_policy, clock):
        from application.link_service import LinkService
        from domain.file_sharing import LinkUrlBuilder
        from tests.fixtures import MockBlobStorageRepository

        storage = MockBlobStorageRepository(delegated=True)
        file = create_stored_file(file_id="cloud")
        file_repository.put_directly(file)
        storage.put_directly(file.storage_locator)
        service = LinkService(file_repository, link_repository, storage, access_recorder,
                              event_publisher, LinkUrlBuilder(""), retry_policy=retry_policy,
                              clock=clock)
        link = service.issue_link("cloud", 30).value

        target = service.resolve_download(link.token).unwrap()

        assert target.kind is DownloadTargetKind.DELEGATED_URL
        assert target.url.startswith("https://storage.example.com/")
        assert link.token not in target.url

    def test_each_resolution_increments(self, link_service, stored_file, link_repository):
        link = issue(link_service)

        for _ in range(3):
            assert link_service.resolve_download(link.token).success

        assert link_repository.get(link.link_id).access_count == 3

    def test_concurrent_resolutions_are_all_counted(self, link_service, stored_file, link_repository):
        link = issue(link_service)
        workers = 16
        barrier = threading.Barrier(workers)
        results = []
        results_lock = threading.Lock()

        def resolve():
            barrier.wait()
            outcome = link_service.resolve_download(link.token)
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=resolve) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(r.success for r in results)
        assert link_repository.get(link.link_id).access_count == workers

    def test_malformed_token(self, link_service):
        result = link_service.resolve_download("not-a-token")
        assert result.error_category is ErrorCategory.MALFORMED_TOKEN

    def test_unknown_token(self, link_service):
        result = link_service.resolve_download("B" * 32)
        assert result.error_category is ErrorCategory.TOKEN_NOT_FOUND

    def test_revoked_link(self, link_service, stored_file, link_repository):
        link = issue(link_service)
        link_service.revoke_link(link.link_id)

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.LINK_REVOKED
        assert link_repository.get(link.link_id).access_count == 0

    def test_expired_link(self, link_service, stored_file, link_repository, clock):
        link = issue(link_service, ttl=5)
        clock.advance(minutes=5)

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.LINK_EXPIRED
        assert link_repository.get(link.link_id).status is LinkStatus.EXPIRED
        assert link_repository.get(link.link_id).access_count == 0

    def test_missing_blob_is_not_counted(self, link_service, stored_file, blob_storage,
                                         link_repository, published_events):
        link = issue(link_service)
        blob_storage.remove_directly(stored_file.storage_locator)

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.OBJECT_MISSING
        assert link_repository.get(link.link_id).access_count == 0
        faults = [e for e in published_events if isinstance(e, ConsistencyFaultEvent)]
        assert faults[0].link_id == link.link_id

    def test_revocation_during_resolution(self, link_service, stored_file, link_repository,
                                          monkeypatch):
        """A revoke that lands between validation and the increment wins."""
        link = issue(link_service)
        original_increment = link_repository.increment_access_count

        def racing_increment(link_id, now):
            link_repository.compare_and_set_status(link_id, (LinkStatus.ACTIVE,), LinkStatus.REVOKED)
            return original_increment(link_id, now)

        monkeypatch.setattr(link_repository, "increment_access_count", racing_increment)

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.LINK_REVOKED
        assert link_repository.get(link.link_id).access_count == 0

    def test_refused_storage_check_is_not_counted(self, link_service, stored_file, blob_storage,
                                                  link_repository):
        link = issue(link_service)
        blob_storage.fail("exists", StorageOperationError("403 no access"))

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.STORAGE_REJECTED
        assert link_repository.get(link.link_id).access_count == 0

    def test_failed_download_target_is_not_counted(self, link_service, stored_file, blob_storage,
                                                    published_events, sleeps):
        link = issue(link_service)
        blob_storage.fail("create_download_target", StorageUnavailableError("503"), times=3)

        result = link_service.resolve_download(link.token)

        assert result.error_category is ErrorCategory.STORAGE_UNAVAILABLE
        assert sleeps == [0.5, 1.0]
        assert link_service.get_link(link.link_id).value.access_count == 0
        assert not any(isinstance(e, DownloadResolvedEvent) for e in published_events)

        # The link is still usable once storage recovers
        assert link_service.resolve_download(link.token).success
        assert link_service.get_link(link.link_id).value.access_count == 1

    def test_audit_failure_does_not_fail_resolution(self, link_service, stored_file,
                                                    access_log_repository):
        link = issue(link_service)
        access_log_repository.fail("append", MetadataUnavailableError("redis down"))

        assert link_service.resolve_download(link.token).success


class TestRevokeLink:
    """Test link revocation."""

    def test_revoke_active_link(self, link_service, stored_file, link_repository, published_events):
        link = issue(link_service)

        assert link_service.revoke_link(link.link_id) is True
        assert link_repository.get(link.link_id).status is LinkStatus.REVOKED
        assert any(isinstance(e, LinkRevokedEvent) for e in published_events)

    def test_revoke_is_not_repeatable(self, link_service, stored_file):
        link = issue(link_service)

        assert link_service.revoke_link(link.link_id) is True
        assert link_service.revoke_link(link.link_id) is False

    def test_revoke_unknown_link(self, link_service):
        assert link_service.revoke_link("nope") is False

    def test_revoke_expired_link(self, link_service, link_repository, stored_file):
        link = create_share_link(stored_file.file_id, status=LinkStatus.EXPIRED)
        link_repository.put_directly(link)

        assert link_service.revoke_link(link.link_id) is True
        assert link_repository.get(link.link_id).status is LinkStatus.REVOKED

    def test_revoked_link_never_becomes_active(self, link_service, stored_file, link_repository, clock):
        link = issue(link_service, ttl=10)
        link_service.revoke_link(link.link_id)
        clock.advance(minutes=20)

        assert link_service.validate_token(link.token) is False
        assert link_repository.get(link.link_id).status is LinkStatus.REVOKED


class TestGetLink:
    def test_get_existing(self, link_service, stored_file):
        link = issue(link_service)
        assert link_service.get_link(link.link_id).value == link

    def test_get_missing(self, link_service):
        assert link_service.get_link("missing").error_category is ErrorCategory.LINK_NOT_FOUND
