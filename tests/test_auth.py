"""Tests for the BCE v1 signer."""

import hashlib
import hmac

import pytest

from bce_bos.auth import (
    Auth,
    canonical_headers,
    canonical_query_string,
    canonical_uri,
    format_timestamp,
    parse_timestamp,
    sign_function,
    uri_encode,
)
from bce_bos.models import Credentials

# 2015-04-27T08:23:49Z
TIMESTAMP = 1430123029


def hex_hmac(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()


class TestUriEncode:
    """Tests for uri_encode."""

    def test_unreserved_characters_kept(self):
        """Letters, digits and -_.~ pass through unchanged."""
        assert uri_encode("AZaz09-_.~") == "AZaz09-_.~"

    def test_space_and_slash_encoded(self):
        """Space and slash are percent-encoded by default."""
        assert uri_encode("a b/c") == "a%20b%2Fc"

    def test_slash_kept_for_paths(self):
        """encode_slash=False keeps '/' literal."""
        assert uri_encode("/v1/a b", encode_slash=False) == "/v1/a%20b"

    def test_utf8_uses_uppercase_hex(self):
        """Non-ASCII characters are encoded as upper-case UTF-8 escapes."""
        assert uri_encode("中") == "%E4%B8%AD"

    def test_reserved_characters(self):
        """Reserved characters like '=', '&', ':' are encoded."""
        assert uri_encode("a=b&c:d") == "a%3Db%26c%3Ad"

    def test_none_is_empty(self):
        assert uri_encode(None) == ""

    def test_numbers_are_stringified(self):
        assert uri_encode(42) == "42"


class TestFormatTimestamp:
    """Tests for format_timestamp."""

    def test_known_timestamp(self):
        """Format is UTC ISO-8601 without fractional seconds."""
        assert format_timestamp(TIMESTAMP) == "2015-04-27T08:23:49Z"

    def test_fractional_seconds_dropped(self):
        assert format_timestamp(TIMESTAMP + 0.75) == "2015-04-27T08:23:49Z"

    def test_parse_timestamp(self):
        assert parse_timestamp("2015-04-27T08:23:49Z") == TIMESTAMP

    def test_parse_invalid_timestamp(self):
        with pytest.raises(ValueError):
            parse_timestamp("Mon, 27 Apr 2015 08:23:49 GMT")


class TestCanonicalUri:
    """Tests for canonical_uri."""

    def test_empty_path_is_root(self):
        assert canonical_uri("") == "/"

    def test_leading_slash_added(self):
        assert canonical_uri("v1/bucket") == "/v1/bucket"

    def test_object_key_encoded(self):
        assert canonical_uri("/v1/bucket/my file.txt") == "/v1/bucket/my%20file.txt"


class TestCanonicalQueryString:
    """Tests for canonical_query_string."""

    def test_empty_params(self):
        assert canonical_query_string(None) == ""
        assert canonical_query_string({}) == ""

    def test_sorted_and_blank_values(self):
        """Pairs are sorted; empty values keep the '=' separator."""
        params = {"b": "2", "acl": "", "a": "1"}
        assert canonical_query_string(params) == "a=1&acl=&b=2"

    def test_none_value_renders_empty(self):
        assert canonical_query_string({"acl": None}) == "acl="

    def test_authorization_excluded(self):
        """The authorization param is never part of the signature."""
        params = {"Authorization": "x", "acl": ""}
        assert canonical_query_string(params) == "acl="

    def test_keys_and_values_encoded(self):
        params = {"prefix": "a/b c"}
        assert canonical_query_string(params) == "prefix=a%2Fb%20c"


class TestCanonicalHeaders:
    """Tests for canonical_headers."""

    def test_empty_headers(self):
        assert canonical_headers(None) == ("", [])

    def test_default_header_set(self):
        """Default set plus x-bce-*; other headers and blank values skipped."""
        headers = {
            "Host": "bj.bcebos.com",
            "Content-Type": "text/plain",
            "Content-Length": " 5 ",
            "x-bce-date": "2015-04-27T08:23:49Z",
            "User-Agent": "test-agent",
            "X-Bce-Meta-Empty": "   ",
        }

        block, signed = canonical_headers(headers)

        assert block == "\n".join([
            "content-length:5",
            "content-type:text%2Fplain",
            "host:bj.bcebos.com",
            "x-bce-date:2015-04-27T08%3A23%3A49Z",
        ])
        assert signed == ["content-length", "content-type", "host", "x-bce-date"]

    def test_explicit_headers_to_sign(self):
        """Only the chosen headers plus x-bce-* are signed."""
        headers = {
            "Host": "bj.bcebos.com",
            "Content-Type": "text/plain",
            "x-bce-date": "2015-04-27T08:23:49Z",
        }

        block, signed = canonical_headers(headers, headers_to_sign=["Host"])

        assert signed == ["host", "x-bce-date"]
        assert "content-type" not in block

    def test_none_value_skipped(self):
        block, signed = canonical_headers({"Host": None})
        assert block == ""
        assert signed == []


class TestGenerateAuthorization:
    """Tests for Auth.generate_authorization."""

    def test_matches_hmac_chain(self):
        """Signature is HMAC(HMAC(sk, prefix), canonical request)."""
        auth = Auth("my-ak", "my-sk")

        result = auth.generate_authorization(
            "get",
            "/v1/test",
            params={"acl": ""},
            headers={"Host": "bj.bcebos.com"},
            timestamp=TIMESTAMP,
        )

        prefix = "bce-auth-v1/my-ak/2015-04-27T08:23:49Z/1800"
        signing_key = hex_hmac("my-sk", prefix)
        canonical_request = "GET\n/v1/test\nacl=\nhost:bj.bcebos.com"
        expected = f"{prefix}/host/{hex_hmac(signing_key, canonical_request)}"
        assert result == expected

    def test_no_signed_headers(self):
        """Without headers the signed header segment is empty."""
        auth = Auth("ak", "sk")

        result = auth.generate_authorization("GET", "/", timestamp=TIMESTAMP)

        prefix = "bce-auth-v1/ak/2015-04-27T08:23:49Z/1800"
        signing_key = hex_hmac("sk", prefix)
        signature = hex_hmac(signing_key, "GET\n/\n\n")
        assert result == f"{prefix}//{signature}"

    def test_custom_expiration(self):
        auth = Auth("ak", "sk")
        result = auth.generate_authorization("GET", "/", timestamp=TIMESTAMP, expiration_in_seconds=60)
        assert result.startswith("bce-auth-v1/ak/2015-04-27T08:23:49Z/60/")

    def test_deterministic_for_fixed_timestamp(self):
        auth = Auth("ak", "sk")
        headers = {"Host": "h", "x-bce-date": "2015-04-27T08:23:49Z"}
        first = auth.generate_authorization("PUT", "/v1/b", {"acl": ""}, headers, TIMESTAMP)
        second = auth.generate_authorization("PUT", "/v1/b", {"acl": ""}, headers, TIMESTAMP)
        assert first == second

    def test_signature_depends_on_secret(self):
        one = Auth("ak", "sk1").generate_authorization("GET", "/", timestamp=TIMESTAMP)
        two = Auth("ak", "sk2").generate_authorization("GET", "/", timestamp=TIMESTAMP)
        assert one != two

    def test_signature_depends_on_method(self):
        auth = Auth("ak", "sk")
        get = auth.generate_authorization("GET", "/v1", timestamp=TIMESTAMP)
        put = auth.generate_authorization("PUT", "/v1", timestamp=TIMESTAMP)
        assert get != put

    def test_signature_is_hex_sha256(self):
        auth = Auth("ak", "sk")
        signature = auth.generate_authorization("GET", "/", timestamp=TIMESTAMP).rsplit("/", 1)[1]
        assert len(signature) == 64
        int(signature, 16)


class TestSignFunction:
    """Tests for the default sign_function."""

    def test_uses_credentials(self):
        credentials = Credentials(ak="ak-1", sk="sk-1")
        result = sign_function(credentials, "GET", "/v1", None, {"Host": "h"})
        assert result.startswith("bce-auth-v1/ak-1/")
        assert "/host/" in result

    def test_missing_credentials_raises(self):
        with pytest.raises(ValueError, match="Credentials are required"):
            sign_function(None, "GET", "/v1", None, {})

    def test_timestamp_from_date_header(self):
        """The x-bce-date header fixes the signing time."""
        credentials = Credentials(ak="ak", sk="sk")
        headers = {"Host": "h", "X-Bce-Date": "2015-04-27T08:23:49Z"}

        result = sign_function(credentials, "GET", "/v1", None, headers)

        expected = Auth("ak", "sk").generate_authorization("GET", "/v1", None, headers, TIMESTAMP)
        assert result == expected
        assert result.startswith("bce-auth-v1/ak/2015-04-27T08:23:49Z/1800/")
