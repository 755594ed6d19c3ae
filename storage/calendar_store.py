"""Calendar event storage over the backend REST API."""
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from processor.event_processor import EventProcessor, NaturalKey
from processor.models import CalendarEvent, CommitCounts, CommitResult

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the backend rejects or fails a storage operation."""


class CalendarStore:
    """Store for calendar_event rows, acting on behalf of one caller."""

    TABLE = 'calendar_event'
    CONFLICT_COLUMNS = 'talent_id,event_title,start_date,end_date'
    CHUNK_SIZE = 500

    def __init__(
        self,
        base_url: str,
        service_key: str,
        access_token: str,
        timeout: int = 30,
        chunk_size: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the store for a caller.

        Args:
            base_url: Backend project URL
            service_key: Service role key sent as the apikey header
            access_token: Caller's JWT, forwarded as the bearer token
            timeout: HTTP request timeout in seconds
            chunk_size: Rows per upsert request
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.chunk_size = chunk_size or self.CHUNK_SIZE
        self.processor = EventProcessor()
        self.session = session or requests.Session()
        self.session.headers.update({
            'apikey': service_key,
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        return response.json()

    def get_user(self) -> Optional[Dict[str, Any]]:
        """
        Resolve the caller's user record from their access token.

        Returns:
            User dictionary, or None if the token is rejected
        """
        try:
            user = self._request('GET', '/auth/v1/user')
        except StorageError as e:
            logger.error(f"Authentication failed: {e}")
            return None
        if not user or not user.get('id'):
            return None
        return user

    def has_permission(self, user_id: str, scope: str) -> bool:
        """
        Check a permission scope through the has_permission RPC.

        Lookup failures are treated as a missing permission.
        """
        try:
            granted = self._request(
                'POST',
                '/rest/v1/rpc/has_permission',
                json={'p_uid': user_id, 'p_scope': scope}
            )
        except StorageError as e:
            logger.error(f"Permission check error for {scope}: {e}")
            return False

        logger.info(f"Permission check {scope}: {granted}")
        return bool(granted)

    def is_own_talent(self, talent_id: str, user_id: str) -> bool:
        """Check that the talent profile belongs to the user."""
        try:
            rows = self._request(
                'GET',
                '/rest/v1/talent_profiles',
                params={
                    'select': 'id',
                    'id': f'eq.{talent_id}',
                    'user_id': f'eq.{user_id}',
                }
            )
        except StorageError as e:
            logger.error(f"Talent ownership error: {e}")
            return False

        is_owner = bool(rows)
        logger.info(f"Talent ownership check for {talent_id}: {is_owner}")
        return is_owner

    def get_year_events(
        self,
        talent_id: str,
        year: int
    ) -> Dict[NaturalKey, Tuple[str, CalendarEvent]]:
        """
        Retrieve the talent's stored events starting within a year.

        Returns:
            Dictionary mapping natural key to (row id, CalendarEvent)

        Raises:
            StorageError: If the query fails
        """
        rows = self._request(
            'GET',
            f'/rest/v1/{self.TABLE}',
            params=[
                ('select', '*'),
                ('talent_id', f'eq.{talent_id}'),
                ('start_date', f'gte.{year}-01-01'),
                ('start_date', f'lt.{year + 1}-01-01'),
            ]
        ) or []

        events = {}
        for row in rows:
            try:
                event = CalendarEvent.from_dict(row)
            except (KeyError, TypeError) as e:
                logger.warning(f"Failed to convert row {row.get('id')} to CalendarEvent: {e}")
                continue
            events[self.processor.natural_key(event)] = (row.get('id'), event)

        logger.info(f"Retrieved {len(events)} existing events for {talent_id} in {year}")
        return events

    def delete_events(self, row_ids: List[str]) -> int:
        """
        Delete events by row id.

        Returns:
            Count of deleted rows

        Raises:
            StorageError: If the delete fails
        """
        if not row_ids:
            return 0

        deleted = self._request(
            'DELETE',
            f'/rest/v1/{self.TABLE}',
            params={'id': f"in.({','.join(row_ids)})"},
            headers={'Prefer': 'return=representation'}
        ) or []

        logger.info(f"Deleted {len(deleted)} events")
        return len(deleted)

    def upsert_events(self, events: List[CalendarEvent]) -> Tuple[List[CalendarEvent], List[str]]:
        """
        Upsert events on their natural key in chunks.

        A failed chunk does not stop the remaining chunks.

        Args:
            events: Events to write

        Returns:
            Tuple of (events written, chunk error messages)
        """
        written = []
        errors = []

        for i in range(0, len(events), self.chunk_size):
            chunk = events[i:i + self.chunk_size]
            chunk_number = i // self.chunk_size + 1
            logger.info(f"Processing chunk {chunk_number}: {len(chunk)} events")

            try:
                self._request(
                    'POST',
                    f'/rest/v1/{self.TABLE}',
                    params={'on_conflict': self.CONFLICT_COLUMNS},
                    headers={'Prefer': 'resolution=merge-duplicates,return=minimal'},
                    json=[event.to_row() for event in chunk]
                )
            except StorageError as e:
                logger.error(f"Chunk {chunk_number} failed: {e}")
                errors.append(f"Chunk {chunk_number}: {e}")
                continue

            written.extend(chunk)

        logger.info(f"Successfully wrote {len(written)} events")
        return written, errors

    def commit_events(
        self,
        talent_id: str,
        year: int,
        mode: str,
        events: List[CalendarEvent]
    ) -> CommitResult:
        """
        Reconcile a talent's year of events with a commit batch.

        New natural keys are created, changed ones updated and identical
        ones skipped. In replace mode, stored events missing from the batch
        are deleted.

        Args:
            talent_id: Talent the batch belongs to
            year: Calendar year of the batch
            mode: 'merge' or 'replace'
            events: Already filtered events for the talent/year

        Returns:
            CommitResult with per-record counts

        Raises:
            StorageError: If loading or deleting existing events fails
        """
        existing = self.get_year_events(talent_id, year)
        counts = CommitCounts()

        batch = {}
        for event in events:
            key = self.processor.natural_key(event)
            if key in batch:
                counts.skipped += 1
                continue
            batch[key] = event

        to_create = [e for k, e in batch.items() if k not in existing]
        to_update = [
            e for k, e in batch.items()
            if k in existing and self.processor.events_differ(e, existing[k][1])
        ]
        counts.skipped += len(batch) - len(to_create) - len(to_update)

        removed = 0
        if mode == 'replace':
            stale_ids = [row_id for k, (row_id, _) in existing.items() if k not in batch]
            logger.info(
                f"Replace Year: removing {len(stale_ids)} events for talent "
                f"{talent_id} in year {year}"
            )
            removed = self.delete_events(stale_ids)

        logger.info(
            f"Commit plan: {len(to_create)} to create, {len(to_update)} to update, "
            f"{counts.skipped} unchanged"
        )

        written, errors = self.upsert_events(to_create + to_update)
        written_keys = {self.processor.natural_key(e) for e in written}

        for event in to_create + to_update:
            key = self.processor.natural_key(event)
            if key not in written_keys:
                counts.failed += 1
            elif key in existing:
                counts.updated += 1
            else:
                counts.created += 1

        return CommitResult(ok=True, counts=counts, removed=removed, errors=errors)
