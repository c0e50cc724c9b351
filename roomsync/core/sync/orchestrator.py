"""Sync orchestrator for subscriptions, rooms and read acknowledgments.

Drives the fetch, merge and fallback sequence. Each operation first tries the
typed API (with bounded retry for transient errors). A version mismatch
switches to the legacy RPC path for the same resource, exactly once and with
the same parameters.

Every operation returns a SyncResult and, when given a completion callback,
calls it exactly once with that result after the relevant commit. No error
escapes to the caller: failures degrade to "sync did not advance this cycle"
and are resolved by a later sync.
"""

import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import UTC, datetime

from roomsync.core.sync.merge import (
    MergeMode,
    backdate_watermark,
    merge_rooms,
    merge_subscriptions,
)
from roomsync.core.sync.retry import fetch_with_retry
from roomsync.domain.entities import (
    ResourceKind,
    SyncErrorType,
    SyncOutcome,
    SyncPath,
    SyncResult,
)
from roomsync.domain.exceptions import (
    InvalidRecordError,
    LegacyRpcError,
    MalformedPayloadError,
    SessionNotFoundError,
    TransportError,
    VersionMismatchError,
)
from roomsync.domain.records import DeltaBatch, RoomRecord, SubscriptionRecord
from roomsync.domain.requests import (
    ApiRequest,
    RoomsRequest,
    SubscriptionReadRequest,
    SubscriptionsRequest,
)
from roomsync.domain.value_objects import to_date_param
from roomsync.ports.legacy import LegacyChannel
from roomsync.ports.read_fallback import ReadFallback
from roomsync.ports.repositories import SessionRepository, SubscriptionStore
from roomsync.ports.transport import SyncTransport

logger = logging.getLogger(__name__)

Completion = Callable[[SyncResult], None]

LEGACY_SUBSCRIPTIONS_METHOD = "subscriptions/get"
LEGACY_ROOMS_METHOD = "rooms/get"


def classify_sync_error(exception: Exception) -> SyncErrorType:
    """Classify an exception into a SyncErrorType.

    Args:
        exception: The exception to classify.

    Returns:
        SyncErrorType indicating the category of error.
    """
    if isinstance(exception, VersionMismatchError):
        return SyncErrorType.VERSION
    if isinstance(exception, TransportError):
        return SyncErrorType.TRANSPORT
    if isinstance(exception, LegacyRpcError):
        return SyncErrorType.LEGACY_RPC
    if isinstance(exception, MalformedPayloadError | InvalidRecordError):
        return SyncErrorType.MALFORMED
    if isinstance(exception, SessionNotFoundError):
        return SyncErrorType.NO_SESSION
    if isinstance(exception, sqlite3.Error):
        return SyncErrorType.DATABASE
    return SyncErrorType.UNKNOWN


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SubscriptionsSync:
    """Orchestrates subscription and room synchronization.

    The orchestrator holds no state of its own between calls; every
    operation opens its own transactions against the store, so operations
    may run concurrently.
    """

    def __init__(
        self,
        transport: SyncTransport,
        legacy: LegacyChannel,
        store: SubscriptionStore,
        sessions: SessionRepository,
        read_fallback: ReadFallback | None = None,
        clock: Callable[[], datetime] = _utc_now,
        retries: int = 3,
        retry_delay: float = 0.5,
        retry_backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            transport: Typed API transport.
            legacy: Legacy RPC channel, used after a version mismatch.
            store: Local subscription store.
            sessions: Session lookup, used when no session id is given.
            read_fallback: Mark-as-read routine for servers without the typed
                endpoint. Without it, read acknowledgments on old servers
                are skipped.
            clock: Returns the current (server-adjusted) time.
            retries: Retries of a typed fetch on transient failure.
            retry_delay: Seconds before the first retry.
            retry_backoff: Delay multiplier between retries.
            sleep: Sleep function used between retries.
        """
        self._transport = transport
        self._legacy = legacy
        self._store = store
        self._sessions = sessions
        self._read_fallback = read_fallback
        self._clock = clock
        self._retries = retries
        self._retry_delay = retry_delay
        self._retry_backoff = retry_backoff
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def acknowledge_read(self, rid: str, completion: Completion | None = None) -> SyncResult:
        """Tell the server the user has read a subscription.

        Fire-and-forget: failures are logged and reported in the result but
        never raised or retried. On a server without the typed endpoint the
        read fallback advances the read state instead.
        """
        request = SubscriptionReadRequest(rid=rid)
        try:
            self._transport.fetch(request)
            result = SyncResult(SyncOutcome.APPLIED, ResourceKind.READ)
        except VersionMismatchError:
            result = self._acknowledge_read_fallback(rid)
        except Exception as e:
            logger.debug("Dropping read acknowledgment for %s: %s", rid, e)
            result = self._not_applied(
                SyncOutcome.SKIPPED, ResourceKind.READ, SyncPath.TYPED, e
            )
        return self._finish(result, completion)

    def sync_subscriptions(
        self,
        updated_since: datetime | None = None,
        completion: Completion | None = None,
        session_id: str | None = None,
    ) -> SyncResult:
        """Fetch subscription deltas and merge them into the store.

        Args:
            updated_since: Only fetch changes after this time; None means full sync.
            completion: Called once with the result after the commit.
            session_id: Owning session; defaults to the current session.

        Returns:
            SyncResult describing what was applied.
        """
        resolved = self._resolve_session_id(session_id)
        if resolved is None:
            return self._finish(self._no_session(ResourceKind.SUBSCRIPTIONS), completion)

        request = SubscriptionsRequest(updated_since=updated_since)
        try:
            payload = self._fetch(request)
        except VersionMismatchError as e:
            logger.info("Subscriptions endpoint unsupported (%s); using legacy RPC", e.message)
            result = self._sync_subscriptions_legacy(updated_since, resolved)
            return self._finish(result, completion)
        except TransportError as e:
            logger.warning("Subscriptions sync skipped: %s", e.message)
            result = self._not_applied(
                SyncOutcome.SKIPPED, ResourceKind.SUBSCRIPTIONS, SyncPath.TYPED, e
            )
            return self._finish(result, completion)
        except Exception as e:
            result = self._fetch_failed(ResourceKind.SUBSCRIPTIONS, e)
            return self._finish(result, completion)

        skipped = self._check_success(payload, ResourceKind.SUBSCRIPTIONS)
        if skipped is not None:
            return self._finish(skipped, completion)

        batch = DeltaBatch.from_typed_payload(payload, SubscriptionRecord.from_payload)
        result = self._commit_subscriptions(batch, resolved, MergeMode.UPSERT, SyncPath.TYPED)
        return self._finish(result, completion)

    def sync_rooms(
        self,
        updated_since: datetime | None = None,
        completion: Completion | None = None,
        session_id: str | None = None,
    ) -> SyncResult:
        """Fetch room metadata deltas and enrich existing subscriptions.

        Rooms never create subscriptions: records whose room has no
        subscription yet are dropped. Run sync_subscriptions first.

        Args:
            updated_since: Only fetch changes after this time; None means full sync.
            completion: Called once with the result after the commit.
            session_id: Session whose watermark is backdated; defaults to the
                current session. Without a session the backdate is skipped.

        Returns:
            SyncResult describing what was applied.
        """
        resolved = self._resolve_session_id(session_id)

        request = RoomsRequest(updated_since=updated_since)
        try:
            payload = self._fetch(request)
        except VersionMismatchError as e:
            logger.info("Rooms endpoint unsupported (%s); using legacy RPC", e.message)
            result = self._sync_rooms_legacy(updated_since, resolved)
            return self._finish(result, completion)
        except TransportError as e:
            logger.warning("Rooms sync skipped: %s", e.message)
            result = self._not_applied(SyncOutcome.SKIPPED, ResourceKind.ROOMS, SyncPath.TYPED, e)
            return self._finish(result, completion)
        except Exception as e:
            result = self._fetch_failed(ResourceKind.ROOMS, e)
            return self._finish(result, completion)

        skipped = self._check_success(payload, ResourceKind.ROOMS)
        if skipped is not None:
            return self._finish(skipped, completion)

        batch = DeltaBatch.from_typed_payload(payload, RoomRecord.from_payload)
        result = self._commit_rooms(batch, resolved, SyncPath.TYPED)
        return self._finish(result, completion)

    # ------------------------------------------------------------------
    # Legacy fallbacks
    # ------------------------------------------------------------------

    def _sync_subscriptions_legacy(
        self,
        updated_since: datetime | None,
        session_id: str,
    ) -> SyncResult:
        """Fetch subscriptions over legacy RPC. No retry."""
        try:
            result = self._legacy.call(
                LEGACY_SUBSCRIPTIONS_METHOD, self._legacy_params(updated_since)
            )
        except LegacyRpcError as e:
            logger.debug("Legacy %s failed: %s", LEGACY_SUBSCRIPTIONS_METHOD, e.message)
            return self._not_applied(
                SyncOutcome.FAILED, ResourceKind.SUBSCRIPTIONS, SyncPath.LEGACY, e
            )

        try:
            batch = DeltaBatch.from_legacy_result(result, SubscriptionRecord.from_payload)
        except MalformedPayloadError as e:
            logger.warning("Ignoring legacy subscriptions result: %s", e.message)
            return self._not_applied(
                SyncOutcome.SKIPPED, ResourceKind.SUBSCRIPTIONS, SyncPath.LEGACY, e
            )

        return self._commit_subscriptions(
            batch, session_id, MergeMode.GET_OR_CREATE, SyncPath.LEGACY
        )

    def _sync_rooms_legacy(
        self,
        updated_since: datetime | None,
        session_id: str | None,
    ) -> SyncResult:
        """Fetch rooms over legacy RPC. No retry, no watermark advance."""
        try:
            result = self._legacy.call(LEGACY_ROOMS_METHOD, self._legacy_params(updated_since))
        except LegacyRpcError as e:
            logger.debug("Legacy %s failed: %s", LEGACY_ROOMS_METHOD, e.message)
            return self._not_applied(SyncOutcome.FAILED, ResourceKind.ROOMS, SyncPath.LEGACY, e)

        try:
            batch = DeltaBatch.from_legacy_result(
                result, RoomRecord.from_payload, include_remove=False
            )
        except MalformedPayloadError as e:
            logger.warning("Ignoring legacy rooms result: %s", e.message)
            return self._not_applied(SyncOutcome.SKIPPED, ResourceKind.ROOMS, SyncPath.LEGACY, e)

        return self._commit_rooms(batch, session_id, SyncPath.LEGACY)

    # ------------------------------------------------------------------
    # Commit helpers
    # ------------------------------------------------------------------

    def _commit_subscriptions(
        self,
        batch: DeltaBatch[SubscriptionRecord],
        session_id: str,
        mode: MergeMode,
        path: SyncPath,
    ) -> SyncResult:
        """Merge a subscriptions batch and advance the watermark atomically."""
        try:
            with self._store.transaction() as tx:
                stats = merge_subscriptions(tx, session_id, batch, self._clock(), mode)
        except Exception as e:
            return self._commit_failed(ResourceKind.SUBSCRIPTIONS, path, e)

        logger.info(
            "Synced subscriptions via %s: %d upserted, %d removed",
            path.value,
            stats.upserted,
            stats.removed,
        )
        return SyncResult(
            SyncOutcome.APPLIED,
            ResourceKind.SUBSCRIPTIONS,
            path=path,
            upserted=stats.upserted,
            removed=stats.removed,
            dropped=stats.dropped,
            skipped_records=batch.skipped,
            watermark=stats.watermark,
        )

    def _commit_rooms(
        self,
        batch: DeltaBatch[RoomRecord],
        session_id: str | None,
        path: SyncPath,
    ) -> SyncResult:
        """Backdate the watermark, then enrich subscriptions, in two commits.

        A crash between the two commits at worst re-syncs one second of
        subscriptions.
        """
        watermark = None
        if session_id is not None:
            try:
                with self._store.transaction() as tx:
                    watermark = backdate_watermark(tx, session_id, self._clock())
            except Exception:
                logger.warning("Could not backdate watermark for %s", session_id, exc_info=True)

        try:
            with self._store.transaction() as tx:
                stats = merge_rooms(tx, batch)
        except Exception as e:
            return self._commit_failed(ResourceKind.ROOMS, path, e)

        logger.info(
            "Synced rooms via %s: %d enriched, %d dropped",
            path.value,
            stats.enriched,
            stats.dropped,
        )
        return SyncResult(
            SyncOutcome.APPLIED,
            ResourceKind.ROOMS,
            path=path,
            enriched=stats.enriched,
            dropped=stats.dropped,
            skipped_records=batch.skipped,
            watermark=watermark,
        )

    def _commit_failed(self, resource: ResourceKind, path: SyncPath, error: Exception) -> SyncResult:
        error_type = classify_sync_error(error)
        if error_type == SyncErrorType.NO_SESSION:
            logger.warning("Skipping %s sync: %s", resource.value, error)
            outcome = SyncOutcome.SKIPPED
        else:
            logger.error("Failed to commit %s batch: %s", resource.value, error, exc_info=True)
            outcome = SyncOutcome.FAILED
        return SyncResult(outcome, resource, path=path, error=str(error), error_type=error_type)

    def _fetch_failed(self, resource: ResourceKind, error: Exception) -> SyncResult:
        """Result for an unexpected error from the typed transport."""
        logger.error("Unexpected error fetching %s: %s", resource.value, error, exc_info=True)
        return self._not_applied(SyncOutcome.FAILED, resource, SyncPath.TYPED, error)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _acknowledge_read_fallback(self, rid: str) -> SyncResult:
        if self._read_fallback is None:
            logger.debug("No read fallback configured; skipping read acknowledgment for %s", rid)
            return SyncResult(
                SyncOutcome.SKIPPED,
                ResourceKind.READ,
                path=SyncPath.LOCAL,
                error="Read endpoint unsupported and no fallback configured",
                error_type=SyncErrorType.VERSION,
            )
        try:
            self._read_fallback.mark_as_read(rid)
        except Exception as e:
            logger.debug("Read fallback failed for %s: %s", rid, e)
            return self._not_applied(SyncOutcome.FAILED, ResourceKind.READ, SyncPath.LOCAL, e)
        return SyncResult(SyncOutcome.APPLIED, ResourceKind.READ, path=SyncPath.LOCAL)

    def _fetch(self, request: ApiRequest) -> dict:
        return fetch_with_retry(
            lambda: self._transport.fetch(request),
            retries=self._retries,
            delay=self._retry_delay,
            backoff=self._retry_backoff,
            sleep=self._sleep,
        )

    def _resolve_session_id(self, session_id: str | None) -> str | None:
        if session_id is not None:
            return session_id
        session = self._sessions.current()
        return session.id if session is not None else None

    @staticmethod
    def _legacy_params(updated_since: datetime | None) -> list[dict[str, int]]:
        if updated_since is None:
            return []
        return [to_date_param(updated_since)]

    @staticmethod
    def _check_success(payload: object, resource: ResourceKind) -> SyncResult | None:
        """Return a SKIPPED result unless the payload reports success."""
        if not isinstance(payload, dict) or "success" not in payload:
            logger.warning("Ignoring %s response without a success flag", resource.value)
            return SyncResult(
                SyncOutcome.SKIPPED,
                resource,
                error="Response missing 'success'",
                error_type=SyncErrorType.MALFORMED,
            )
        if payload["success"] is not True:
            logger.info("Server reported success=false for %s; nothing merged", resource.value)
            return SyncResult(SyncOutcome.SKIPPED, resource)
        return None

    @staticmethod
    def _no_session(resource: ResourceKind) -> SyncResult:
        logger.warning("Skipping %s sync: no authenticated session", resource.value)
        return SyncResult(
            SyncOutcome.SKIPPED,
            resource,
            error="No authenticated session",
            error_type=SyncErrorType.NO_SESSION,
        )

    @staticmethod
    def _not_applied(
        outcome: SyncOutcome,
        resource: ResourceKind,
        path: SyncPath,
        error: Exception,
    ) -> SyncResult:
        return SyncResult(
            outcome,
            resource,
            path=path,
            error=str(error),
            error_type=classify_sync_error(error),
        )

    @staticmethod
    def _finish(result: SyncResult, completion: Completion | None) -> SyncResult:
        if completion is not None:
            completion(result)
        return result
