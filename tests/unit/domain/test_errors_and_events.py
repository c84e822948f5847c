"""
Unit tests for domain errors and events
"""

from datetime import datetime

import pytest

from domain.errors import (
    DomainError,
    ErrorCategory,
    ErrorKind,
    FileExpiredError,
    InvalidTTLError,
    MetadataUnavailableError,
    ObjectMissingError,
    StorageOperationError,
    StorageUnavailableError,
    TokenNotFoundError,
    describe_error,
)
from domain.events import ConsistencyFaultEvent, LinkIssuedEvent, SweepCompletedEvent


class TestErrorTaxonomy:
    """Test category to kind mapping."""

    @pytest.mark.parametrize("error_cls,kind", [
        (InvalidTTLError, ErrorKind.INVALID_INPUT),
        (TokenNotFoundError, ErrorKind.NOT_FOUND),
        (FileExpiredError, ErrorKind.CONFLICT),
        (ObjectMissingError, ErrorKind.CONSISTENCY_FAULT),
        (StorageUnavailableError, ErrorKind.STORAGE_UNAVAILABLE),
        (StorageOperationError, ErrorKind.STORAGE_UNAVAILABLE),
        (MetadataUnavailableError, ErrorKind.METADATA_UNAVAILABLE),
        (DomainError, ErrorKind.INTERNAL),
    ])
    def test_kind(self, error_cls, kind):
        assert error_cls("boom").kind is kind

    def test_every_category_has_a_kind_and_message(self):
        for category in ErrorCategory:
            described = describe_error(category)
            assert described["error"] == category.value
            assert described["kind"] == category.kind.value
            assert described["title"]

    def test_only_infrastructure_errors_are_transient(self):
        assert StorageUnavailableError("x").transient
        assert MetadataUnavailableError("x").transient
        assert not ObjectMissingError("x").transient
        assert not InvalidTTLError("x").transient
        assert not StorageOperationError("x").transient

    def test_retryable_flag(self):
        assert describe_error(ErrorCategory.STORAGE_UNAVAILABLE)["retryable"] is True
        assert describe_error(ErrorCategory.LINK_REVOKED)["retryable"] is False
        assert describe_error(ErrorCategory.STORAGE_REJECTED)["retryable"] is False

    def test_original_error_is_kept(self):
        cause = ConnectionError("refused")
        assert MetadataUnavailableError("down", cause).original_error is cause


class TestEvents:
    def test_events_are_immutable(self):
        event = LinkIssuedEvent("l1", datetime(2024, 1, 1), file_id="f1",
                                expires_at=datetime(2024, 1, 2))
        with pytest.raises(AttributeError):
            event.file_id = "other"

    def test_to_dict(self):
        event = SweepCompletedEvent("run", datetime(2024, 1, 1), found=3, deleted=1,
                                    already_absent=1, errors=1)
        data = event.to_dict()

        assert data["event_type"] == "SweepCompletedEvent"
        assert data["occurred_at"] == "2024-01-01T00:00:00"
        assert (data["found"], data["deleted"], data["already_absent"], data["errors"]) == (3, 1, 1, 1)

    def test_consistency_fault_defaults(self):
        event = ConsistencyFaultEvent("f1", datetime(2024, 1, 1), storage_locator="f1.pdf",
                                      detail="missing")
        assert event.to_dict()["link_id"] is None
