# Telerivet REST Client
# File: auth.py
# Version: v1

"""HTTP Basic credentials derived from a Telerivet API key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import base64

from .config import ClientConfig
from .errors import ConfigurationError


@dataclass
class ApiKeyAuth:
    """Builds the Authorization header for every request.

    Telerivet authenticates with HTTP Basic: the API key is the username
    and the password is empty.
    """

    config: ClientConfig
    _cached_header: Optional[str] = None

    def authorization_header(self) -> str:
        if self._cached_header:
            return self._cached_header

        if not self.config.api_key:
            raise ConfigurationError(
                "Telerivet API key is not set. "
                "Pass api_key=... or set TELERIVET_API_KEY."
            )

        # base64("<api_key>:")
        raw_credentials = f"{self.config.api_key}:"
        basic_token = base64.b64encode(raw_credentials.encode("utf-8")).decode("ascii")

        self._cached_header = f"Basic {basic_token}"
        return self._cached_header

    def headers(self) -> Dict[str, str]:
        return {"Authorization": self.authorization_header()}
