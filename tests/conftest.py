"""
Shared pytest fixtures for statesync tests.
"""

import os
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import unquote
from xml.sax.saxutils import escape

import httpx
import pytest

from statesync.config import SyncConfig
from statesync.s3.client import S3Client
from statesync.sync.manager import SyncEngine

FIXED_NOW = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"


class FakeS3:
    """
    In-memory S3 endpoint served through httpx.MockTransport.

    Understands path-style and virtual-hosted requests for a single bucket,
    ListObjectsV2 with continuation tokens, GetObject and PutObject.
    """

    def __init__(self, bucket: str = "state-bucket", page_size: int = 1000):
        self.bucket = bucket
        self.page_size = page_size
        self.objects: Dict[str, bytes] = {}
        self.requests: List[httpx.Request] = []
        self.fail_puts: Dict[str, int] = {}  # key -> status code

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def puts(self) -> List[str]:
        return [self._key(r) for r in self.requests if r.method == "PUT"]

    def _key(self, request: httpx.Request) -> str:
        path = unquote(request.url.raw_path.decode().partition("?")[0])
        host = request.headers["host"]
        if host.startswith(f"{self.bucket}."):
            return path.lstrip("/")
        bucket_path = f"/{self.bucket}"
        assert path == bucket_path or path.startswith(bucket_path + "/"), path
        return path[len(bucket_path) + 1:]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._key(request)

        if request.method == "GET" and not key:
            return self._list(request)
        if request.method == "GET":
            if key not in self.objects:
                return httpx.Response(404, text="<Error><Code>NoSuchKey</Code></Error>")
            return httpx.Response(200, content=self.objects[key])
        if request.method == "PUT":
            if key in self.fail_puts:
                return httpx.Response(self.fail_puts[key], text="<Error><Code>InternalError</Code></Error>")
            self.objects[key] = request.content
            return httpx.Response(200)
        return httpx.Response(405)

    def _list(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        prefix = params.get("prefix", "")
        keys = sorted(k for k in self.objects if k.startswith(prefix))

        start = int(params.get("continuation-token", "0"))
        page = keys[start:start + self.page_size]
        truncated = start + self.page_size < len(keys)

        parts = [f'<ListBucketResult xmlns="{S3_NAMESPACE}">', f"<Name>{self.bucket}</Name>"]
        parts.append(f"<Prefix>{escape(prefix)}</Prefix><KeyCount>{len(page)}</KeyCount>")
        parts.append(f"<IsTruncated>{'true' if truncated else 'false'}</IsTruncated>")
        if truncated:
            parts.append(f"<NextContinuationToken>{start + self.page_size}</NextContinuationToken>")
        for key in page:
            parts.append(f"<Contents><Key>{escape(key)}</Key><Size>{len(self.objects[key])}</Size></Contents>")
        parts.append("</ListBucketResult>")
        return httpx.Response(200, text="".join(parts))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real S3_* settings out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("S3_") or name.upper() == "OPENCLAW_STATE_DIR":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def state_dir(tmp_path):
    path = tmp_path / "state"
    path.mkdir()
    return path


def make_config(state_dir, endpoint: Optional[str] = "http://minio.local:9000", **overrides) -> SyncConfig:
    values = dict(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        bucket="state-bucket",
        endpoint=endpoint,
        state_dir=state_dir,
    )
    values.update(overrides)
    return SyncConfig(**values)


@pytest.fixture
def config(state_dir):
    """Path-style configuration pointing at a fake MinIO endpoint."""
    return make_config(state_dir)


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def s3_client(config, fake_s3):
    client = S3Client(config, transport=fake_s3.transport, clock=lambda: FIXED_NOW)
    yield client
    client.close()


@pytest.fixture
def engine(config, s3_client):
    return SyncEngine(config, s3_client)


def write_file(root, relative_path: str, content) -> None:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
