"""Read-only calendar views scoped to the signed-in user."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from client.auth import AuthClient
from client.config import BackendConfig
from client.http import send

BUSINESS_VIEW = 'v_business_calendar_events'
TALENT_VIEW = 'v_talent_calendar_events'


class CalendarViews:
    """
    Queries over the business and talent calendar views.

    Row-level authorization on the backend decides which rows the caller
    sees; nothing is filtered here.
    """

    def __init__(
        self,
        config: BackendConfig,
        auth: AuthClient,
        session: Optional[requests.Session] = None
    ):
        self.config = config
        self.auth = auth
        self.http = session or requests.Session()

    def _select(self, view: str, params: List[tuple]) -> List[Dict[str, Any]]:
        session = self.auth.get_session()
        rows = send(
            self.http,
            self.config,
            'GET',
            f'rest/v1/{view}',
            access_token=session.access_token if session else None,
            default_error=f'Failed to load {view}',
            params=[('select', '*')] + params + [('order', 'start_at.asc')]
        )
        return rows or []

    def _next(self, view: str, now: Optional[datetime]) -> Optional[Dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        rows = self._select(view, [('start_at', f'gte.{now.isoformat()}'), ('limit', '1')])
        return rows[0] if rows else None

    def get_business_calendar(self) -> List[Dict[str, Any]]:
        """Business calendar for the current user, earliest first."""
        return self._select(BUSINESS_VIEW, [])

    def get_talent_calendar(self) -> List[Dict[str, Any]]:
        """Talent calendar for the current talent, earliest first."""
        return self._select(TALENT_VIEW, [])

    def get_next_business_event(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        return self._next(BUSINESS_VIEW, now)

    def get_next_talent_event(self, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        return self._next(TALENT_VIEW, now)
