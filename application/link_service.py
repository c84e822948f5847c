"""
Link Application Service

Issues, validates, resolves and revokes share links.

Correctness under concurrency relies on the metadata store's atomic
compare-and-set (status) and conditional increment (access count); this
service holds no locks. A lost compare-and-set is never retried blindly:
the record is re-read and the state machine evaluated again.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from domain.errors import (
    DomainError,
    DuplicateTokenError,
    ErrorCategory,
    FileExpiredError,
    FileRecordNotFoundError,
    LinkExpiredError,
    LinkNotFoundError,
    MalformedTokenError,
    ObjectMissingError,
    TokenNotFoundError,
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
    DownloadTarget,
    FileRepository,
    FileStatus,
    IBlobStorageRepository,
    LinkRepository,
    LinkStateMachine,
    LinkStatus,
    LinkUrlBuilder,
    LinkVerdict,
    ShareLink,
    ShareToken,
    StoredFile,
    TimeToLive,
)
from domain.file_sharing.value_objects import DEFAULT_MAX_TTL_MINUTES, DEFAULT_MIN_TTL_MINUTES

from .access_recorder import AccessRecorder
from .event_publisher import EventPublisher
from .operation_result import OperationResult
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

# A fresh token is drawn once more after a collision before giving up
TOKEN_ATTEMPTS = 2


class LinkService:
    """
    Application service for the share-link lifecycle.

    Operations:
        issue_link: create an Active link for a shareable file
        validate_token: decide whether a token is currently usable
        resolve_download: re-validate, count the access, hand out a download target
        revoke_link: move a link to Revoked
    """

    def __init__(
        self,
        file_repository: FileRepository,
        link_repository: LinkRepository,
        storage_repository: IBlobStorageRepository,
        access_recorder: AccessRecorder,
        event_publisher: EventPublisher,
        url_builder: LinkUrlBuilder,
        retry_policy: Optional[RetryPolicy] = None,
        min_ttl_minutes: int = DEFAULT_MIN_TTL_MINUTES,
        max_ttl_minutes: int = DEFAULT_MAX_TTL_MINUTES,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize LinkService with dependencies.

        Args:
            file_repository: Metadata store for files
            link_repository: Metadata store for links
            storage_repository: Blob storage (any variant)
            access_recorder: Access log writer
            event_publisher: Domain event publisher
            url_builder: Builds the share URL for a token
            retry_policy: Backoff for transient store failures
            min_ttl_minutes: Lower bound for link lifetimes
            max_ttl_minutes: Upper bound for link lifetimes
            clock: Source of the current UTC time
        """
        self.file_repo = file_repository
        self.link_repo = link_repository
        self.storage = storage_repository
        self.access_recorder = access_recorder
        self.event_publisher = event_publisher
        self.url_builder = url_builder
        self.retry_policy = retry_policy or RetryPolicy()
        self.min_ttl_minutes = min_ttl_minutes
        self.max_ttl_minutes = max_ttl_minutes
        self.clock = clock

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_link(self, file_id: str, ttl_minutes: int,
                   client_ip: Optional[str] = None) -> OperationResult[ShareLink]:
        """
        Create a share link for a file.

        Args:
            file_id: File to share
            ttl_minutes: Link lifetime in minutes
            client_ip: Caller address for the access log

        Returns:
            OperationResult with the persisted ShareLink, or a failure with
            INVALID_TTL, FILE_NOT_FOUND, FILE_EXPIRED, STORAGE_UNAVAILABLE,
            OBJECT_MISSING, METADATA_UNAVAILABLE or INTERNAL_ERROR
        """
        try:
            ttl = TimeToLive(ttl_minutes, self.min_ttl_minutes, self.max_ttl_minutes)
            now = self.clock()

            file = self._load_shareable_file(file_id, now)
            self._confirm_blob(file, link_id=None)

            link = self._persist_new_link(file, ttl, now)
        except DomainError as e:
            self._log_failure("issue link", file_id, e)
            return OperationResult.from_error(e)

        self.access_recorder.record(
            file.file_id, AccessAction.LINK_GENERATED, link_id=link.link_id, ip_address=client_ip
        )
        self.event_publisher.publish(LinkIssuedEvent(
            aggregate_id=link.link_id,
            occurred_at=now,
            file_id=file.file_id,
            expires_at=link.expires_at,
        ))
        logger.info(f"Issued link {link.link_id} for file {file.file_id}, expires {link.expires_at.isoformat()}")
        return OperationResult.ok(link)

    def _load_shareable_file(self, file_id: str, now: datetime) -> StoredFile:
        file = self._retry(self.file_repo.get, file_id, description="load file")

        if file is None or file.status is FileStatus.DELETED:
            raise FileRecordNotFoundError(f"File not found: {file_id}")

        if file.status is FileStatus.EXPIRED or file.is_expired(now):
            raise FileExpiredError(f"File has expired: {file_id}")

        return file

    def _persist_new_link(self, file: StoredFile, ttl: TimeToLive, now: datetime) -> ShareLink:
        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            token = ShareToken.generate()
            link = ShareLink.create(
                file_id=file.file_id,
                token=token,
                url=self.url_builder.build(str(token)),
                now=now,
                ttl_minutes=ttl.minutes,
            )
            try:
                self._retry(self.link_repo.add, link, description="store link")
                return link
            except DuplicateTokenError:
                logger.warning(f"Token collision while issuing link for file {file.file_id} (attempt {attempt})")

        raise DuplicateTokenError(
            f"Could not allocate a unique token for file {file.file_id} after {TOKEN_ATTEMPTS} attempts"
        )

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def validate_token(self, token: str) -> bool:
        """
        Decide whether a token is currently usable.

        An Active link found past its expiry is durably flipped to Expired
        before returning False. Unknown or malformed tokens cause no writes.

        Raises:
            MetadataUnavailableError: If the metadata store stays unreachable
        """
        if not ShareToken.is_well_formed(token):
            logger.warning("Validation attempted with malformed token")
            return False

        link = self._retry(self.link_repo.get_by_token, token, description="load link by token")
        if link is None:
            logger.warning(f"Validation attempted with unknown token: {token[:6]}...")
            return False

        verdict, _ = self._settle(link, self.clock())
        return verdict.is_valid

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def resolve_download(self, token: str,
                         client_ip: Optional[str] = None) -> OperationResult[DownloadTarget]:
        """
        Re-validate a token, count the access and return a download target.

        Args:
            token: Share token from the link
            client_ip: Caller address for the access log

        Returns:
            OperationResult with a DownloadTarget, or a failure with
            MALFORMED_TOKEN, TOKEN_NOT_FOUND, LINK_EXPIRED, LINK_REVOKED,
            OBJECT_MISSING, STORAGE_UNAVAILABLE or METADATA_UNAVAILABLE
        """
        try:
            if not ShareToken.is_well_formed(token):
                raise MalformedTokenError("Malformed share token")

            link = self._retry(self.link_repo.get_by_token, token, description="load link by token")
            if link is None:
                raise TokenNotFoundError(f"No link for token: {token[:6]}...")

            target, access_count, link = self._resolve_link(link)
        except DomainError as e:
            self._log_failure("resolve download", token[:6] if isinstance(token, str) else "?", e)
            return OperationResult.from_error(e)

        self.access_recorder.record(
            link.file_id, AccessAction.DOWNLOADED, link_id=link.link_id, ip_address=client_ip
        )
        self.event_publisher.publish(DownloadResolvedEvent(
            aggregate_id=link.link_id,
            occurred_at=self.clock(),
            file_id=link.file_id,
            access_count=access_count,
            target_kind=target.kind.value,
        ))
        return OperationResult.ok(target)

    def _resolve_link(self, link: ShareLink):
        # Second pass only happens after a lost increment race
        for _ in range(2):
            now = self.clock()
            verdict, file = self._settle(link, now)
            if not verdict.is_valid:
                raise LinkStateMachine.error_for(verdict, link.token)

            self._confirm_blob(file, link_id=link.link_id)

            # Built before counting so a failed target never counts as an access
            target = self._retry(
                self.storage.create_download_target,
                file.storage_locator, file.original_name, file.content_type, link.expires_at,
                description="create download target",
            )
            access_count = self._retry(
                self.link_repo.increment_access_count, link.link_id, now,
                description="increment access count",
            )
            if access_count is not None:
                return target, access_count, link

            logger.info(f"Link {link.link_id} changed during resolution, re-evaluating")
            link = self._retry(self.link_repo.get, link.link_id, description="reload link")
            if link is None:
                raise TokenNotFoundError("Link disappeared during resolution")

        raise LinkExpiredError(f"Link {link.link_id} became unusable during resolution")

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    def revoke_link(self, link_id: str) -> bool:
        """
        Revoke a link.

        Returns:
            True if the link moved from Active or Expired to Revoked; False
            if it was unknown or already revoked

        Raises:
            MetadataUnavailableError: If the metadata store stays unreachable
        """
        link = self._retry(self.link_repo.get, link_id, description="load link")

        if link is None:
            logger.warning(f"Revoke attempted for non-existent link: {link_id}")
            return False

        if link.status is LinkStatus.REVOKED:
            logger.warning(f"Revoke attempted for already revoked link: {link_id}")
            return False

        revoked = self._retry(
            self.link_repo.compare_and_set_status,
            link_id, (LinkStatus.ACTIVE, LinkStatus.EXPIRED), LinkStatus.REVOKED,
            description="revoke link",
        )
        if not revoked:
            logger.warning(f"Link {link_id} was revoked concurrently")
            return False

        self.event_publisher.publish(LinkRevokedEvent(
            aggregate_id=link_id,
            occurred_at=self.clock(),
            file_id=link.file_id,
        ))
        return True

    def get_link(self, link_id: str) -> OperationResult[ShareLink]:
        try:
            link = self._retry(self.link_repo.get, link_id, description="load link")
            if link is None:
                raise LinkNotFoundError(f"Link not found: {link_id}")
            return OperationResult.ok(link)
        except DomainError as e:
            return OperationResult.from_error(e)

    # ------------------------------------------------------------------
    # Shared state machine handling
    # ------------------------------------------------------------------

    def _settle(self, link: ShareLink, now: datetime):
        """
        Evaluate a link and persist a pending expiry.

        Returns:
            (verdict, file) where verdict is never EXPIRE and file is the
            owning file when the link was Active
        """
        file = None
        if link.status is LinkStatus.ACTIVE:
            file = self._retry(self.file_repo.get, link.file_id, description="load file")

        verdict = LinkStateMachine.evaluate(link, file, now)
        if verdict is not LinkVerdict.EXPIRE:
            return verdict, file

        expired = self._retry(
            self.link_repo.compare_and_set_status,
            link.link_id, (LinkStatus.ACTIVE,), LinkStatus.EXPIRED,
            description="expire link",
        )
        if expired:
            logger.info(f"Link {link.link_id} expired")
            self.access_recorder.record(link.file_id, AccessAction.LINK_EXPIRED, link_id=link.link_id)
            self.event_publisher.publish(LinkExpiredEvent(
                aggregate_id=link.link_id,
                occurred_at=now,
                file_id=link.file_id,
            ))
            return LinkVerdict.EXPIRED, file

        # Lost the race: someone else expired or revoked it first
        current = self._retry(self.link_repo.get, link.link_id, description="reload link")
        return LinkStateMachine.verdict_for_status(current.status if current else None), file

    def _confirm_blob(self, file: StoredFile, link_id: Optional[str]) -> None:
        present = self._retry(self.storage.exists, file.storage_locator, description="check blob")
        if present:
            return

        detail = "metadata marks file active but blob storage has no object"
        logger.critical(
            f"Consistency fault for file {file.file_id}: {detail} "
            f"(locator={file.storage_locator}, link={link_id})"
        )
        self.event_publisher.publish(ConsistencyFaultEvent(
            aggregate_id=file.file_id,
            occurred_at=self.clock(),
            storage_locator=file.storage_locator,
            detail=detail,
            link_id=link_id,
        ))
        raise ObjectMissingError(f"Blob missing for file {file.file_id}: {file.storage_locator}")

    def _retry(self, operation, *args, description: str = ""):
        return self.retry_policy.call(operation, *args, description=description)

    @staticmethod
    def _log_failure(operation: str, subject: str, error: DomainError) -> None:
        if error.transient:
            logger.error(f"Could not {operation} for {subject}: {error}")
        elif error.category is not ErrorCategory.OBJECT_MISSING:
            logger.warning(f"Could not {operation} for {subject}: {error}")
