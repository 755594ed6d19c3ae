"""Errors raised by the backend client."""
from typing import Optional

import requests


class BackendError(Exception):
    """Base class for backend client failures."""


class AuthenticationRequired(BackendError):
    """No valid session is available for an authenticated call."""

    def __init__(self, message: str = 'Authentication required'):
        super().__init__(message)


class RemoteRejected(BackendError):
    """The backend answered with an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(BackendError):
    """The request never produced a response."""


def error_message(response: requests.Response, default: str) -> str:
    """
    Extract the error message from an error response body.

    Args:
        response: Non-2xx response
        default: Message used when the body carries none

    Returns:
        The remote message, or default when it is missing or empty
    """
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or default

    if isinstance(body, dict):
        for key in ('error', 'message', 'msg', 'error_description'):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get('message'):
                return value['message']
    return default
