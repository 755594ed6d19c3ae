"""Backend connection settings for the client."""
import os
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class BackendConfig:
    """Connection settings for the hosted backend project."""
    url: str
    anon_key: str
    # None leaves requests without a timeout
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> 'BackendConfig':
        """
        Read settings from BAAS_URL, BAAS_ANON_KEY and BAAS_TIMEOUT_SECONDS.

        Raises:
            KeyError: If BAAS_URL or BAAS_ANON_KEY is not set
        """
        timeout = os.environ.get('BAAS_TIMEOUT_SECONDS')
        return cls(
            url=os.environ['BAAS_URL'],
            anon_key=os.environ['BAAS_ANON_KEY'],
            timeout=float(timeout) if timeout else None
        )

    def endpoint(self, path: str) -> str:
        return f"{self.url.rstrip('/')}/{path.lstrip('/')}"

    def headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        """Request headers, authorized as the user when a token is given."""
        return {
            'apikey': self.anon_key,
            'Authorization': f'Bearer {access_token or self.anon_key}',
            'Content-Type': 'application/json',
        }
