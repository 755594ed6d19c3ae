"""Invoker for the backend's serverless functions."""
import logging
from typing import Any, Dict, Optional

import requests

from client.config import BackendConfig
from client.http import send

logger = logging.getLogger(__name__)


class FunctionsClient:
    """Calls serverless functions by name."""

    def __init__(self, config: BackendConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.http = session or requests.Session()

    def invoke(
        self,
        name: str,
        body: Dict[str, Any],
        access_token: Optional[str] = None,
        default_error: str = 'Function invocation failed'
    ) -> Any:
        """
        POST a JSON body to a function.

        Each call sends exactly one request; nothing is retried.

        Args:
            name: Function name
            body: JSON-serializable request body
            access_token: Caller's access token
            default_error: Message used when an error response carries none

        Returns:
            Decoded JSON response

        Raises:
            RemoteRejected: If the function returns an error status
            NetworkFailure: If the request fails in transport
        """
        logger.debug(f"Invoking function {name}")
        return send(
            self.http,
            self.config,
            'POST',
            f'functions/v1/{name}',
            access_token=access_token,
            default_error=default_error,
            json=body
        )
