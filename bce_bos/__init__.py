"""
BOS HTTP client.

Signed request dispatch and response handling for the Baidu Object
Storage REST API.
"""

__version__ = "0.1.0"

from bce_bos.auth import Auth, sign_function
from bce_bos.http_client import BceClientError, BceError, BceServerError, HttpClient
from bce_bos.memory_stream import MemoryStream
from bce_bos.models import ClientConfig, Credentials, HttpResponse

__all__ = [
    "Auth",
    "BceClientError",
    "BceError",
    "BceServerError",
    "ClientConfig",
    "Credentials",
    "HttpClient",
    "HttpResponse",
    "MemoryStream",
    "sign_function",
    "__version__",
]
