"""
AWS Signature Version 4 request signing.

Only the pieces needed for S3 header-based authentication are implemented:
canonical request, credential scope, string to sign and the chained HMAC
signing key. Everything is built on hashlib/hmac.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Union
from urllib.parse import quote

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
TERMINATOR = "aws4_request"

Bytes = Union[str, bytes]


def _to_bytes(data: Bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def sha256_hex(data: Bytes) -> str:
    """Hex-encoded SHA-256 digest."""
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def hmac_sha256(key: bytes, data: Bytes) -> bytes:
    return hmac.new(key, _to_bytes(data), hashlib.sha256).digest()


EMPTY_PAYLOAD_HASH = sha256_hex(b"")


def uri_encode(value: str) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set."""
    return quote(value, safe="-_.~")


def quote_path(path: str) -> str:
    """Percent-encode a URL path segment by segment, keeping the slashes."""
    return quote(path, safe="/-_.~")


def canonical_query(params: Optional[Mapping[str, str]]) -> str:
    """
    Canonical query string: encoded ``key=value`` pairs sorted by key.

    The same string is used on the wire so the signed and sent queries match.
    """
    if not params:
        return ""
    pairs = sorted((uri_encode(str(k)), uri_encode(str(v))) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in pairs)


def amz_timestamps(now: datetime):
    """Return ``(date_stamp, amz_date)`` for a moment in time, in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d"), now.strftime("%Y%m%dT%H%M%SZ")


class SigV4Signer:
    """
    Signs S3 requests with AWS Signature Version 4.

    ``sign`` is a pure function of its arguments: the same credentials,
    request and timestamp always produce the same authorization header.
    """

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        region: str,
        service: str = SERVICE,
    ):
        self.access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self.region = region
        self.service = service

    def scope(self, date_stamp: str) -> str:
        return f"{date_stamp}/{self.region}/{self.service}/{TERMINATOR}"

    def signing_key(self, date_stamp: str) -> bytes:
        key = hmac_sha256(f"AWS4{self._secret_access_key}".encode("utf-8"), date_stamp)
        key = hmac_sha256(key, self.region)
        key = hmac_sha256(key, self.service)
        return hmac_sha256(key, TERMINATOR)

    @staticmethod
    def canonical_headers(headers: Mapping[str, str]):
        """Return ``(canonical_header_block, signed_header_list)``."""
        normalized = {name.lower(): " ".join(str(value).split()) for name, value in headers.items()}
        names = sorted(normalized)
        block = "".join(f"{name}:{normalized[name]}\n" for name in names)
        return block, ";".join(names)

    def canonical_request(
        self,
        method: str,
        path: str,
        query: str,
        headers: Mapping[str, str],
        payload_hash: str,
    ) -> str:
        header_block, signed_headers = self.canonical_headers(headers)
        return "\n".join([
            method.upper(),
            path or "/",
            query,
            header_block,
            signed_headers,
            payload_hash,
        ])

    def string_to_sign(self, amz_date: str, scope: str, canonical_request: str) -> str:
        return "\n".join([ALGORITHM, amz_date, scope, sha256_hex(canonical_request)])

    def sign(
        self,
        method: str,
        path: str,
        query: str,
        headers: Mapping[str, str],
        payload_hash: str,
        now: datetime,
    ) -> Dict[str, str]:
        """
        Sign a request.

        Args:
            method: HTTP method
            path: Encoded URL path exactly as it will be sent
            query: Canonical query string (see ``canonical_query``)
            headers: Headers to sign; must include ``host``
            payload_hash: Hex SHA-256 of the body
            now: Request timestamp

        Returns:
            A new header dict including ``x-amz-date``,
            ``x-amz-content-sha256`` and ``authorization``
        """
        date_stamp, amz_date = amz_timestamps(now)

        signed = {name.lower(): value for name, value in headers.items()}
        signed["x-amz-date"] = amz_date
        signed["x-amz-content-sha256"] = payload_hash

        request = self.canonical_request(method, path, query, signed, payload_hash)
        scope = self.scope(date_stamp)
        to_sign = self.string_to_sign(amz_date, scope, request)
        signature = hmac.new(
            self.signing_key(date_stamp), to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        _, signed_headers = self.canonical_headers(signed)
        signed["authorization"] = (
            f"{ALGORITHM} Credential={self.access_key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return signed
