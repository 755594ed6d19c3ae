"""Edits to calendar events guarded by the concurrency check."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import requests

from client.auth import AuthClient
from client.concurrency import OptimisticConcurrency
from client.config import BackendConfig
from client.errors import AuthenticationRequired, RemoteRejected
from client.http import send
from processor.models import EditSnapshot, SaveOutcome

logger = logging.getLogger(__name__)

TABLE = 'calendar_event'


class CalendarEventEditor:
    """Loads calendar events for editing and saves them without clobbering."""

    def __init__(
        self,
        config: BackendConfig,
        auth: AuthClient,
        concurrency: Optional[OptimisticConcurrency] = None,
        language: str = 'en',
        session: Optional[requests.Session] = None
    ):
        self.config = config
        self.auth = auth
        self.concurrency = concurrency or OptimisticConcurrency()
        self.language = language
        self.http = session or requests.Session()

    def _access_token(self) -> str:
        session = self.auth.get_session()
        if session is None or not session.access_token:
            raise AuthenticationRequired()
        return session.access_token

    def _fetch(self, event_id: str, columns: str = '*') -> Dict[str, Any]:
        rows = send(
            self.http,
            self.config,
            'GET',
            f'rest/v1/{TABLE}',
            access_token=self._access_token(),
            default_error='Failed to load event',
            params={'select': columns, 'id': f'eq.{event_id}'}
        )
        if not rows:
            raise RemoteRejected(f"Event {event_id} not found", 404)
        return rows[0]

    def begin_edit(self, event_id: str) -> EditSnapshot:
        """Load an event and remember when it was last modified."""
        record = self._fetch(event_id)
        return EditSnapshot(id=event_id, updated_at=record.get('updated_at'), data=record)

    def save(self, snapshot: EditSnapshot, changes: Dict[str, Any], force: bool = False) -> SaveOutcome:
        """
        Write changes made on top of a snapshot.

        Unless forced, the write is refused when the stored record is newer
        than the snapshot; the conflict is handed to the concurrency state
        and nothing is written.

        Args:
            snapshot: Snapshot from begin_edit
            changes: Column values to write
            force: Skip the staleness check (the 'overwrite' resolution)

        Returns:
            SaveOutcome with the saved record, or the conflicting one
        """
        if not force:
            current = self._fetch(snapshot.id, columns='id,updated_at')
            if not self.concurrency.check_concurrency({'updatedAt': snapshot.updated_at}, current):
                logger.info(
                    f"Stale edit of event {snapshot.id}: snapshot {snapshot.updated_at}, "
                    f"stored {current.get('updated_at')}"
                )
                self.concurrency.handle_conflict(current, self.language)
                return SaveOutcome(saved=False, conflict=current)

        values = dict(changes)
        values['updated_at'] = datetime.now(timezone.utc).isoformat()

        rows = send(
            self.http,
            self.config,
            'PATCH',
            f'rest/v1/{TABLE}',
            access_token=self._access_token(),
            default_error='Failed to save event',
            headers={'Prefer': 'return=representation'},
            params={'id': f'eq.{snapshot.id}'},
            json=values
        )
        record = rows[0] if rows else values
        return SaveOutcome(saved=True, record=record)

    def resolve(
        self,
        snapshot: EditSnapshot,
        changes: Dict[str, Any],
        action: str
    ) -> Union[EditSnapshot, SaveOutcome]:
        """
        Apply the user's conflict resolution.

        Returns:
            A fresh EditSnapshot for 'reload', the SaveOutcome of a forced
            write for 'overwrite'
        """
        action = self.concurrency.resolve_conflict(action)
        if action == 'reload':
            return self.begin_edit(snapshot.id)
        return self.save(snapshot, changes, force=True)
