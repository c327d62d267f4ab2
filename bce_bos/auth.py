"""BCE v1 request signing.

Builds the value of the ``Authorization`` header for a BOS request:

    bce-auth-v1/{ak}/{timestamp}/{expiration}/{signed_headers}/{signature}

The signing key is HMAC-SHA256(sk, auth_string_prefix) and the signature
is HMAC-SHA256(signing_key, canonical_request), both hex encoded. The
canonical request is the method, URI, query string and headers joined by
newlines, each in its canonical form.
"""

import calendar
import hashlib
import hmac
import time
from typing import Any, Iterable, Mapping, Optional

from bce_bos.models import Credentials

AUTH_VERSION = "bce-auth-v1"

# Default validity window of a signature, in seconds
DEFAULT_EXPIRATION_IN_SECONDS = 1800

# Headers signed when the caller does not choose a set.
# Any x-bce-* header is signed as well.
DEFAULT_HEADERS_TO_SIGN = frozenset(["host", "content-md5", "content-length", "content-type"])

BCE_PREFIX = "x-bce-"

BCE_DATE_HEADER = "x-bce-date"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# RFC 3986 unreserved characters
_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)


def uri_encode(value: Any, encode_slash: bool = True) -> str:
    """Percent-encode a value, leaving only unreserved characters as-is.

    Args:
        value: The value to encode. Non-string values are converted with str().
        encode_slash: If False, '/' is kept literally (used for URI paths).

    Returns:
        The encoded string, with upper-case hex escapes.
    """
    if value is None:
        return ""
    if not isinstance(value, (str, bytes)):
        value = str(value)
    if isinstance(value, str):
        value = value.encode("utf-8")

    out = []
    for byte in value:
        char = chr(byte)
        if char in _UNRESERVED or (char == "/" and not encode_slash):
            out.append(char)
        else:
            out.append("%%%02X" % byte)
    return "".join(out)


def format_timestamp(timestamp: Optional[float] = None) -> str:
    """Format a unix timestamp as UTC ISO-8601 without fractional seconds."""
    if timestamp is None:
        timestamp = time.time()
    return time.strftime(TIMESTAMP_FORMAT, time.gmtime(timestamp))


def parse_timestamp(value: str) -> int:
    """Parse a UTC ISO-8601 timestamp (as written by format_timestamp) to unix time.

    Raises:
        ValueError: If the value is not in YYYY-MM-DDTHH:MM:SSZ form.
    """
    return calendar.timegm(time.strptime(value.strip(), TIMESTAMP_FORMAT))


def canonical_uri(path: str) -> str:
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return uri_encode(path, encode_slash=False)


def canonical_query_string(params: Optional[Mapping[str, Any]]) -> str:
    """Sorted ``key=value`` pairs joined by '&', excluding ``authorization``."""
    if not params:
        return ""

    pairs = []
    for key, value in params.items():
        if key.lower() == "authorization":
            continue
        pairs.append(f"{uri_encode(key)}={uri_encode(value)}")
    pairs.sort()
    return "&".join(pairs)


def canonical_headers(
    headers: Optional[Mapping[str, Any]],
    headers_to_sign: Optional[Iterable[str]] = None,
) -> tuple[str, list[str]]:
    """Canonicalize the headers that take part in the signature.

    Args:
        headers: Request headers.
        headers_to_sign: Header names to sign. Defaults to
            DEFAULT_HEADERS_TO_SIGN; x-bce-* headers are always signed.

    Returns:
        Tuple of (canonical header block, sorted signed header names).
    """
    if not headers:
        return "", []

    if headers_to_sign is None:
        wanted = DEFAULT_HEADERS_TO_SIGN
    else:
        wanted = frozenset(h.strip().lower() for h in headers_to_sign)

    entries = []
    signed = []
    for name, value in headers.items():
        key = name.strip().lower()
        if value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        if key in wanted or key.startswith(BCE_PREFIX):
            entries.append(f"{uri_encode(key)}:{uri_encode(text)}")
            signed.append(key)

    entries.sort()
    signed.sort()
    return "\n".join(entries), signed


def _hmac_sha256_hex(key: str, message: str) -> str:
    return hmac.new(
        key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class Auth:
    """Signer for BCE v1 authorization headers.

    Holds only the credentials; every call to generate_authorization is
    independent.
    """

    def __init__(self, ak: str, sk: str):
        self.ak = ak
        self.sk = sk

    def generate_authorization(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[float] = None,
        expiration_in_seconds: int = DEFAULT_EXPIRATION_IN_SECONDS,
        headers_to_sign: Optional[Iterable[str]] = None,
    ) -> str:
        """Compute the Authorization header value for a request.

        Args:
            method: HTTP method, e.g. "GET".
            path: Request path, not yet URI-encoded.
            params: Query parameters.
            headers: Request headers that will be sent.
            timestamp: Unix time of signing (defaults to now).
            expiration_in_seconds: How long the signature stays valid.
            headers_to_sign: Explicit set of header names to sign.

        Returns:
            The authorization string.
        """
        auth_string_prefix = "%s/%s/%s/%d" % (
            AUTH_VERSION,
            self.ak,
            format_timestamp(timestamp),
            expiration_in_seconds,
        )
        signing_key = _hmac_sha256_hex(self.sk, auth_string_prefix)

        header_block, signed_headers = canonical_headers(headers, headers_to_sign)
        canonical_request = "\n".join([
            method.upper(),
            canonical_uri(path),
            canonical_query_string(params),
            header_block,
        ])
        signature = _hmac_sha256_hex(signing_key, canonical_request)

        return f"{auth_string_prefix}/{';'.join(signed_headers)}/{signature}"


def sign_function(
    credentials: Credentials,
    method: str,
    path: str,
    params: Optional[Mapping[str, Any]],
    headers: Optional[Mapping[str, Any]],
) -> str:
    """Default signer, suitable as the sign_function of HttpClient.send_request.

    The signing time is taken from the x-bce-date header when the request
    carries one, so the header and the authorization string always agree.
    """
    if credentials is None:
        raise ValueError("Credentials are required to sign a request")
    timestamp = None
    for name, value in (headers or {}).items():
        if name.strip().lower() == BCE_DATE_HEADER and value:
            timestamp = parse_timestamp(str(value))
            break
    auth = Auth(credentials.ak, credentials.sk)
    return auth.generate_authorization(method, path, params, headers, timestamp)
