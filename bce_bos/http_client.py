"""Signed HTTP request dispatch for BOS.

HttpClient.send_request builds a single request (default headers, body,
query string), lets a sign function compute the Authorization header,
sends it with httpx and turns the response into an HttpResponse.

Failures are raised, never retried:
- Transport failures raise BceClientError carrying a ``code``
  (ENOTFOUND, ECONNREFUSED, ETIMEDOUT, EPROTO, EPARSE, EIO).
- Non-2xx responses raise BceServerError carrying a ``status_code``.
"""

import collections.abc
import inspect
import json
import logging
import platform
import socket
from typing import Any, AsyncIterator, Callable, Mapping, Optional

import httpx
from h11 import LocalProtocolError as H11LocalProtocolError

from bce_bos import __version__
from bce_bos.auth import format_timestamp, uri_encode
from bce_bos.models import ClientConfig, Credentials, HttpResponse

logger = logging.getLogger(__name__)

# Read size used when streaming a file-like request body
STREAM_CHUNK_SIZE = 64 * 1024

DEFAULT_CONTENT_TYPE = "application/json; charset=UTF-8"

USER_AGENT = "bce-sdk-python/%s/%s/%s" % (
    __version__,
    platform.python_version(),
    platform.system(),
)

# Messages the resolver uses for unknown hosts, when no gaierror is chained
_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)

SignFunction = Callable[
    [Optional[Credentials], str, str, Optional[Mapping[str, Any]], Mapping[str, str]],
    str,
]


class BceError(Exception):
    """Base class for errors raised by HttpClient."""

    pass


class BceClientError(BceError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class BceServerError(BceError):
    """The service answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.request_id = request_id


def _caused_by(error: BaseException, exc_type: type) -> bool:
    """Check whether exc_type appears anywhere in the exception chain."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        if isinstance(current, exc_type):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def transport_error_code(error: Exception) -> str:
    """Map an httpx transport exception to an errno-style code."""
    if isinstance(error, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(error, (httpx.ProtocolError, H11LocalProtocolError)):
        return "EPROTO"
    if isinstance(error, httpx.ConnectError):
        if _caused_by(error, socket.gaierror):
            return "ENOTFOUND"
        message = str(error).lower()
        if any(marker in message for marker in _DNS_FAILURE_MARKERS):
            return "ENOTFOUND"
        return "ECONNREFUSED"
    return "EIO"


def fix_headers(headers: httpx.Headers) -> dict[str, str]:
    """Lower-case header names and strip the quotes around an ETag."""
    fixed = {}
    for key, value in headers.items():
        key = key.lower().strip()
        value = value.strip()
        if key == "etag":
            value = value.strip('"')
        fixed[key] = value
    return fixed


def _find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup returning the stored key."""
    name = name.lower()
    for key in headers:
        if key.lower() == name:
            return key
    return None


def _set_header(headers: dict[str, str], name: str, value: Any) -> None:
    existing = _find_header(headers, name)
    if existing is not None:
        del headers[existing]
    headers[name] = str(value)


def _is_stream(body: Any) -> bool:
    # Plain containers (dict, list, ...) are iterable but not byte streams
    return (
        hasattr(body, "read")
        or hasattr(body, "__aiter__")
        or isinstance(body, collections.abc.Iterator)
    )


async def _iter_body(body: Any) -> AsyncIterator[bytes]:
    """Adapt a readable, async iterable or iterable of bytes for httpx."""
    if hasattr(body, "read"):
        while True:
            chunk = body.read(STREAM_CHUNK_SIZE)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                break
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    elif hasattr(body, "__aiter__"):
        async for chunk in body:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    else:
        for chunk in body:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


def parse_body(content: bytes, content_type: str) -> Any:
    """Materialize a buffered response body.

    Args:
        content: Raw response bytes.
        content_type: Value of the content-type header (may be empty).

    Returns:
        {} for an empty body, the decoded document for JSON content,
        the raw bytes otherwise.

    Raises:
        BceClientError: If a JSON response cannot be decoded.
    """
    if not content:
        return {}
    if "json" not in content_type.lower():
        return content
    try:
        return json.loads(content)
    except ValueError as e:
        raise BceClientError(f"Invalid JSON in response body: {e}", code="EPARSE") from e


def build_server_error(
    status_code: int,
    headers: Mapping[str, str],
    content: bytes,
    reason: str = "",
) -> BceServerError:
    """Build a BceServerError from an error response.

    BOS error bodies look like {"code": ..., "message": ..., "requestId": ...}.
    Anything else falls back to the status line.
    """
    code = None
    message = reason or f"HTTP {status_code}"
    request_id = headers.get("x-bce-request-id")

    if content:
        try:
            document = json.loads(content)
        except ValueError:
            document = None
        if isinstance(document, dict):
            code = document.get("code") or None
            message = document.get("message") or message
            request_id = document.get("requestId") or request_id

    return BceServerError(message, status_code=status_code, code=code, request_id=request_id)


class HttpClient:
    """Asynchronous client sending one signed request per send_request call.

    Calls share only the underlying httpx.AsyncClient, so several may be
    awaited concurrently. Use as an async context manager, or call aclose().
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Endpoint, credentials and timeout.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        self.config = config
        endpoint = config.endpoint.rstrip("/")
        if "://" not in endpoint:
            endpoint = "http://" + endpoint
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(timeout=config.timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _default_headers(self) -> dict[str, str]:
        return {
            "Connection": "close",
            "Content-Type": DEFAULT_CONTENT_TYPE,
            "Host": self.config.host,
            "User-Agent": USER_AGENT,
            "x-bce-date": format_timestamp(),
        }

    def get_request_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Join the endpoint, encoded path and query string."""
        if not path.startswith("/"):
            path = "/" + path
        url = self.endpoint + uri_encode(path, encode_slash=False)
        if params:
            query = "&".join(
                f"{uri_encode(key)}={uri_encode(value)}" for key, value in params.items()
            )
            url = f"{url}?{query}"
        return url

    def _prepare_body(self, body: Any, headers: dict[str, str]) -> Any:
        """Return httpx content for the body, setting Content-Length."""
        if body is None:
            _set_header(headers, "Content-Length", 0)
            return None

        if isinstance(body, str):
            body = body.encode("utf-8")
        if isinstance(body, (bytearray, memoryview)):
            body = bytes(body)

        if isinstance(body, bytes):
            _set_header(headers, "Content-Length", len(body))
            return body

        if _is_stream(body):
            if _find_header(headers, "Content-Length") is None:
                raise ValueError("Content-Length header is required for a stream body")
            return _iter_body(body)

        raise TypeError(f"Unsupported body type: {type(body).__name__}")

    async def send_request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        sign_function: Optional[SignFunction] = None,
        output_stream: Any = None,
    ) -> HttpResponse:
        """Send a single request and materialize its response.

        Args:
            method: HTTP method.
            path: Request path, e.g. "/v1/bucket".
            body: None, bytes, str, or a readable/iterable byte stream.
                A stream requires a Content-Length header.
            headers: Extra headers; they override the defaults. Headers
                whose value is None are not sent.
            params: Query parameters; None or "" values give a bare "key=".
            sign_function: Called as sign_function(credentials, method, path,
                params, headers); its result becomes the Authorization header.
            output_stream: Object with write(bytes). When given, the body is
                written to it and the returned body is {}.

        Returns:
            The HttpResponse.

        Raises:
            BceClientError: Transport failure.
            BceServerError: Non-2xx status.
            ValueError: Stream body without Content-Length.
            TypeError: Unsupported body type.
        """
        method = method.upper()
        request_headers = self._default_headers()
        for name, value in (headers or {}).items():
            if value is not None:
                _set_header(request_headers, name, value)

        content = self._prepare_body(body, request_headers)

        if sign_function is not None:
            request_headers["Authorization"] = sign_function(
                self.config.credentials, method, path, params, request_headers
            )

        url = self.get_request_url(path, params)
        logger.debug("%s %s", method, url)

        request = self._client.build_request(
            method, url, content=content, headers=request_headers
        )
        try:
            response = await self._client.send(request, stream=True)
            try:
                return await self._read_response(response, output_stream)
            finally:
                await response.aclose()
        except (httpx.LocalProtocolError, H11LocalProtocolError) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise BceClientError(str(e), code="EPROTO") from e
        except httpx.RequestError as e:
            # TransportError, plus DecodingError raised while reading the body
            code = transport_error_code(e)
            logger.warning("%s %s failed (%s): %s", method, url, code, e)
            raise BceClientError(str(e) or code, code=code) from e

    async def _read_response(self, response: httpx.Response, output_stream: Any) -> HttpResponse:
        headers = fix_headers(response.headers)
        status_code = response.status_code
        logger.debug(
            "Response %d (request id %s)", status_code, headers.get("x-bce-request-id")
        )

        if status_code < 200 or status_code >= 300:
            content = await response.aread()
            raise build_server_error(status_code, headers, content, response.reason_phrase)

        if output_stream is not None:
            async for chunk in response.aiter_bytes():
                written = output_stream.write(chunk)
                if inspect.isawaitable(written):
                    await written
            return HttpResponse(status_code=status_code, http_headers=headers, body={})

        content = await response.aread()
        body = parse_body(content, headers.get("content-type", ""))
        return HttpResponse(status_code=status_code, http_headers=headers, body=body)
