"""Session provider backed by the backend auth API."""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from client.config import BackendConfig
from client.errors import BackendError, RemoteRejected
from client.http import send

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    """Signed-in user session."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token_response(cls, data: Dict[str, Any]) -> 'AuthSession':
        expires_at = data.get('expires_at')
        if expires_at is None and data.get('expires_in'):
            expires_at = int(time.time()) + int(data['expires_in'])
        return cls(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token'),
            expires_at=expires_at,
            user=data.get('user') or {}
        )

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


class AuthClient:
    """Holds the current session and talks to the auth endpoints."""

    def __init__(self, config: BackendConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.http = session or requests.Session()
        self._session: Optional[AuthSession] = None

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password and keep the resulting session.

        Raises:
            RemoteRejected: If the credentials are rejected
            NetworkFailure: If the auth endpoint is unreachable
        """
        data = send(
            self.http,
            self.config,
            'POST',
            'auth/v1/token',
            params={'grant_type': 'password'},
            json={'email': email, 'password': password},
            default_error='Invalid login credentials'
        )
        self._session = AuthSession.from_token_response(data)
        logger.info(f"Signed in user {self._session.user.get('id')}")
        return self._session

    def set_session(self, session: Optional[AuthSession]) -> None:
        self._session = session

    def get_session(self) -> Optional[AuthSession]:
        """
        Return the current session, refreshing it once it has expired.

        Returns:
            The valid session, or None when there is none
        """
        if self._session is None:
            return None
        if not self._session.is_expired():
            return self._session

        if not self._session.refresh_token:
            logger.info("Session expired with no refresh token")
            self._session = None
            return None

        try:
            data = send(
                self.http,
                self.config,
                'POST',
                'auth/v1/token',
                params={'grant_type': 'refresh_token'},
                json={'refresh_token': self._session.refresh_token},
                default_error='Session refresh failed'
            )
        except BackendError as e:
            logger.warning(f"Session refresh failed: {e}")
            self._session = None
            return None

        self._session = AuthSession.from_token_response(data)
        return self._session

    def get_user(self) -> Optional[Dict[str, Any]]:
        """
        Fetch the signed-in user.

        Returns:
            User dictionary, or None without a session or when the token is
            rejected
        """
        session = self.get_session()
        if session is None:
            return None

        try:
            return send(self.http, self.config, 'GET', 'auth/v1/user', access_token=session.access_token)
        except RemoteRejected as e:
            if e.status_code in (401, 403):
                return None
            raise

    def sign_out(self) -> None:
        """End the session locally and on the server."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            send(self.http, self.config, 'POST', 'auth/v1/logout', access_token=session.access_token)
        except BackendError as e:
            logger.warning(f"Server-side sign out failed: {e}")
