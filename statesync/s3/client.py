"""
Minimal S3 client: signed list/get/put over httpx.

Supports path-style addressing (explicit endpoint, e.g. MinIO, SeaweedFS,
Ceph) and AWS virtual-hosted-style addressing (no endpoint).
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from statesync.config import SyncConfig
from statesync.s3.signing import (
    EMPTY_PAYLOAD_HASH,
    SigV4Signer,
    canonical_query,
    quote_path,
    sha256_hex,
)

logger = logging.getLogger(__name__)

# Upper bound on continuation requests for a single listing.
MAX_LIST_PAGES = 100

ERROR_BODY_LIMIT = 200


class S3Error(Exception):
    """A request failed, either in transport or with a non-2xx status."""

    def __init__(
        self,
        method: str,
        key: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.method = method
        self.key = key
        self.status_code = status_code
        self.body = body[:ERROR_BODY_LIMIT]
        status = f"HTTP {status_code}" if status_code is not None else "transport error"
        detail = f": {self.body}" if self.body else ""
        super().__init__(f"S3 {method} {key or '/'}: {status}{detail}")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_list_response(body: bytes) -> Tuple[List[str], Optional[str]]:
    """
    Parse a ListObjectsV2 response.

    Returns:
        Tuple of (object keys in document order, continuation token or None
        when the listing is complete)
    """
    root = ET.fromstring(body)

    keys = []
    truncated = False
    token = None
    for element in root:
        name = _local_name(element.tag)
        if name == "Contents":
            for child in element:
                if _local_name(child.tag) == "Key" and child.text:
                    keys.append(child.text)
        elif name == "IsTruncated":
            truncated = (element.text or "").strip().lower() == "true"
        elif name == "NextContinuationToken":
            token = (element.text or "").strip() or None

    return keys, token if truncated else None


class S3Client:
    """
    Signed HTTP client for an S3-compatible object store.

    Each call is a single round trip; there is no retry or backoff here.
    """

    def __init__(
        self,
        config: SyncConfig,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.signer = SigV4Signer(
            config.access_key_id,
            config.secret_access_key,
            config.region,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._http = httpx.Client(
            transport=transport,
            verify=config.verify_tls,
            timeout=config.timeout,
        )

    def __enter__(self) -> "S3Client":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def wire_path(self, key: str) -> str:
        """URL path for an object key, as sent on the wire and signed."""
        if self.config.path_style:
            path = f"/{self.config.bucket}/{key}" if key else f"/{self.config.bucket}"
        else:
            path = f"/{key}"
        return quote_path(path)

    def request(
        self,
        method: str,
        key: str = "",
        body: Optional[bytes] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Send a signed request.

        Raises:
            S3Error: On transport failure or a non-2xx response
        """
        path = self.wire_path(key)
        query = canonical_query(params)
        payload_hash = sha256_hex(body) if body else EMPTY_PAYLOAD_HASH

        headers = {"host": self.config.host_header}
        if body:
            headers["content-length"] = str(len(body))
        headers = self.signer.sign(method, path, query, headers, payload_hash, self._clock())

        url = f"{self.config.scheme}://{self.config.host_header}{path}"
        if query:
            url = f"{url}?{query}"

        logger.debug(f"{method} {url}")
        try:
            response = self._http.request(method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            raise S3Error(method, key, None, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise S3Error(method, key, response.status_code, response.text)
        return response

    def list_objects(self, prefix: str) -> List[str]:
        """
        List object keys under a prefix, following continuation tokens.

        Keys are returned in listing order and are not deduplicated.
        """
        params = {"list-type": "2", "prefix": prefix}
        keys: List[str] = []

        for page in range(MAX_LIST_PAGES):
            response = self.request("GET", "", params=params)
            try:
                page_keys, token = parse_list_response(response.content)
            except ET.ParseError as e:
                raise S3Error("GET", "", response.status_code, f"malformed listing: {e}") from e

            keys.extend(page_keys)
            if token is None:
                break
            params = {"list-type": "2", "prefix": prefix, "continuation-token": token}
        else:
            logger.warning(f"Listing of '{prefix}' stopped after {MAX_LIST_PAGES} pages")

        return keys

    def get_object(self, key: str) -> bytes:
        """Download the full body of an object."""
        return self.request("GET", key).content

    def put_object(self, key: str, data: bytes) -> None:
        """Upload bytes to a key, overwriting any existing object."""
        self.request("PUT", key, body=data)
