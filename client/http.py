"""Request helper shared by the backend clients."""
import logging
from typing import Any, Optional

import requests

from client.config import BackendConfig
from client.errors import NetworkFailure, RemoteRejected, error_message

logger = logging.getLogger(__name__)


def send(
    session: requests.Session,
    config: BackendConfig,
    method: str,
    path: str,
    access_token: Optional[str] = None,
    default_error: str = 'Request failed',
    headers: Optional[dict] = None,
    **kwargs
) -> Any:
    """
    Send one request to the backend and decode the JSON response.

    Args:
        session: requests session to send with
        config: Backend connection settings
        method: HTTP method
        path: Path relative to the project URL
        access_token: User token; the anon key is used when omitted
        default_error: Message used when an error response carries none
        headers: Extra headers merged over the defaults

    Returns:
        Decoded JSON body, or None for an empty body

    Raises:
        RemoteRejected: If the backend answers with a non-2xx status
        NetworkFailure: If no response is received
    """
    request_headers = config.headers(access_token)
    if headers:
        request_headers.update(headers)

    try:
        response = session.request(
            method,
            config.endpoint(path),
            headers=request_headers,
            timeout=config.timeout,
            **kwargs
        )
    except requests.RequestException as e:
        raise NetworkFailure(str(e)) from e

    if not response.ok:
        raise RemoteRejected(error_message(response, default_error), response.status_code)

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise RemoteRejected(f"Invalid JSON response from {path}", response.status_code) from e
