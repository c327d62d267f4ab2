"""Data models for the BOS HTTP client."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

# Default per-request timeout in seconds
DEFAULT_TIMEOUT = 120.0


@dataclass(frozen=True)
class Credentials:
    """Access key / secret key pair used to sign requests."""

    ak: str
    sk: str

    def __repr__(self) -> str:
        return f"Credentials(ak={self.ak!r}, sk='***')"


@dataclass
class ClientConfig:
    """Configuration for an HttpClient."""

    endpoint: str
    credentials: Optional[Credentials] = None
    account: Optional[dict[str, str]] = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        # Signatures cover the request path only, so a path prefix on the
        # endpoint would be sent but never signed
        remainder = self._without_scheme().partition("/")[2]
        if remainder.strip("/"):
            raise ValueError(f"Endpoint must not contain a path: {self.endpoint}")

    def _without_scheme(self) -> str:
        endpoint = self.endpoint
        if "://" in endpoint:
            endpoint = endpoint.split("://", 1)[1]
        return endpoint

    @property
    def host(self) -> str:
        """Host (and port, if any) part of the endpoint."""
        return self._without_scheme().split("/", 1)[0]


@dataclass
class HttpResponse:
    """A materialized response from the service.

    Header keys are lower-cased. The body is the parsed JSON document,
    raw bytes for non-JSON content, or an empty dict when the response
    had no body or was written to an output stream.
    """

    status_code: int
    http_headers: dict[str, str] = field(default_factory=dict)
    body: Union[dict[str, Any], list, bytes] = field(default_factory=dict)
