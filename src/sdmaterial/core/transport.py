"""
HTTP transport for the Stable Diffusion web API.

A thin wrapper over requests: sends one request, adds Basic auth when the
config enables it and maps failures to the transport error types. It knows
nothing about endpoints or fallbacks; callers decide which URL to hit.
"""

import base64
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from sdmaterial.core.config import ServerConfig
from sdmaterial.core.models import excerpt
from sdmaterial.logging_config import get_logger
from sdmaterial.utils.exceptions import (
    AuthRequiredError,
    NetworkError,
    ProtocolError,
    RequestTimeoutError,
)

logger = get_logger(__name__)


def basic_auth_header(username: str, password: str) -> str:
    """Return the Authorization header value for Basic auth."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


@dataclass
class Response:
    """Successful HTTP response (status < 400)."""

    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)


class Transport:
    """Send requests to the server, uniformly authenticated."""

    def __init__(self, config: ServerConfig) -> None:
        self._config = config

    @property
    def config(self) -> ServerConfig:
        return self._config

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        credentials = self._config.credentials
        if credentials is not None:
            self._config.check_credentials()
            headers["Authorization"] = basic_auth_header(*credentials)
        return headers

    def send(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Response:
        """
        Perform one HTTP request.

        Args:
            method: HTTP method ("GET" or "POST")
            url: Absolute URL
            body: Optional JSON body
            timeout: Seconds; defaults to config.request_timeout

        Returns:
            Response for any status below 400

        Raises:
            ConfigurationError: If auth is enabled without credentials
            AuthRequiredError: On 401/403
            ProtocolError: On any other status >= 400
            RequestTimeoutError: If the request timed out
            NetworkError: If the server could not be reached
        """
        if timeout is None:
            timeout = self._config.request_timeout
        headers = self._headers()
        if body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("HTTP %s %s timeout=%s", method, url, timeout)
        start_time = time.time()
        try:
            response = requests.request(method, url, headers=headers, json=body, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(f"{method} {url} timed out after {timeout} seconds.") from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(
                f"Failed to connect to {url}. Is the Stable Diffusion server running?",
                original_error=e,
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network error during request: {str(e)}", original_error=e) from e
        elapsed = time.time() - start_time
        logger.debug(
            "HTTP %s %s status=%s time=%.2fs", method, url, response.status_code, elapsed
        )

        if response.status_code in (401, 403):
            raise AuthRequiredError(
                "Authentication failed. Check the server username and password.",
                status_code=response.status_code,
                response=excerpt(response.text),
            )
        if response.status_code == 404:
            raise ProtocolError(
                f"Endpoint not found: {url}",
                status_code=404,
                response=excerpt(response.text),
            )
        if response.status_code >= 500:
            raise ProtocolError(
                f"Stable Diffusion server error: {response.status_code}",
                status_code=response.status_code,
                response=excerpt(response.text),
            )
        if response.status_code >= 400:
            raise ProtocolError(
                f"Request failed with status {response.status_code}: {excerpt(response.text, 200)}",
                status_code=response.status_code,
                response=excerpt(response.text),
            )
        return Response(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )
