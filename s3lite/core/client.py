"""Client for an S3-style object store.

``S3Client`` wraps the credentials for one bucket. It holds no other state,
so a single instance can be shared freely between threads and uploads.
"""

from __future__ import annotations

import base64
import io
import logging
import secrets
from collections.abc import Mapping
from typing import Any, BinaryIO
from urllib.parse import quote

import requests

from s3lite.core.auth.signer import Query, canonical_query, http_date, sign
from s3lite.core.config.s3_config import S3Config, load_config
from s3lite.core.const import (
    DEFAULT_CONTENT_TYPE,
    SELF_TEST_CONTENT_TYPE,
    SELF_TEST_KEY,
)
from s3lite.core.exceptions import IncompleteReadError, S3SelfTestError
from s3lite.core.models import ObjectHead, StoredObject
from s3lite.core.multipart.chunked_uploader import put_multipart
from s3lite.core.multipart.manifest import parse_initiate_response
from s3lite.core.multipart.multipart_upload import MultipartUpload
from s3lite.core.utils.http_errors import wrap_error
from s3lite.core.utils.streams import BoundedReader

logger = logging.getLogger(__name__)

DELETE_SUCCESS_CODES = frozenset({200, 204})


class S3Client:
    """Signed access to the objects of a single bucket.

    Every operation is one blocking HTTP round-trip. Non-success responses
    raise ``S3Error``; transport failures raise the underlying
    ``requests.RequestException`` unchanged. Nothing is retried.
    """

    def __init__(self, config: S3Config):
        """Initialize the client.

        Args:
            config: Bucket, credentials and endpoint settings.
        """
        self._config = config

    @classmethod
    def from_env(cls, **overrides: Any) -> S3Client:
        """Create a client from ``S3_*`` environment variables.

        Args:
            **overrides: Configuration fields that take precedence over the
                environment.

        Raises:
            ConfigError: If required settings are missing.
        """
        return cls(load_config(overrides))

    @property
    def config(self) -> S3Config:
        return self._config

    @property
    def bucket(self) -> str:
        return self._config.bucket

    @property
    def host(self) -> str:
        """Host header value for requests to this bucket."""
        return f"{self._config.bucket}.{self._config.host}"

    def resource(self, path: str, query: Query | None = None) -> str:
        """Build the URL of an object, with a canonical query string.

        The query string is the same one the signature covers.
        """
        url = f"{self._config.endpoint}/{_quote_key(path)}"
        query_string = canonical_query(query)
        if query_string:
            url += f"?{query_string}"
        return url

    def sign_request(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        query: Query | None = None,
    ) -> dict[str, str]:
        """Add ``Date`` (when missing) and ``Authorization`` to ``headers``.

        Args:
            method: HTTP method.
            path: Object key.
            headers: Request headers; updated in place.
            query: Query parameters of the request.

        Returns:
            The same ``headers`` mapping.
        """
        headers.setdefault("Date", http_date())
        headers["Authorization"] = sign(
            method=method,
            bucket=self._config.bucket,
            path=_quote_key(path),
            access_id=self._config.access_id,
            secret=self._config.secret.get_secret_value(),
            query=query,
            content_md5=headers.get("Content-MD5", ""),
            content_type=headers.get("Content-Type", ""),
            date=headers["Date"],
        )
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        query: Query | None = None,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
    ) -> requests.Response:
        """Send one signed request to the store.

        This is the transport every other operation, including each step of
        a multipart upload, is built on. The response is returned whatever
        its status.

        Raises:
            requests.RequestException: If the request could not be sent.
        """
        request_headers = dict(headers or {})
        request_headers.setdefault("Host", self.host)
        self.sign_request(method, path, request_headers, query)

        url = self.resource(path, query)
        logger.debug("%s %s", method, url)
        response = requests.request(
            method,
            url,
            headers=request_headers,
            data=data,
            timeout=self._config.timeout,
        )
        logger.debug("%s %s -> HTTP %d", method, url, response.status_code)
        return response

    def put(
        self,
        data: bytes | bytearray | memoryview | BinaryIO,
        size: int,
        path: str,
        md5sum: bytes | None = None,
        content_type: str = "",
        progress: bool = False,
    ) -> None:
        """Upload an object.

        Objects larger than the configured multipart threshold (3 GiB by
        default) are uploaded through the multipart API in fixed-size parts,
        each checksummed separately; ``md5sum`` is ignored in that case.
        Smaller objects are sent in a single request.

        Args:
            data: Object contents, as bytes or a binary stream.
            size: Number of bytes to upload.
            path: Object key.
            md5sum: Optional raw MD5 digest of the whole object.
            content_type: MIME type the store will serve the object with.
                Defaults to ``application/octet-stream``.
            progress: Show a progress bar on stderr when the upload goes
                through the multipart API.

        Raises:
            S3Error: If the store rejects the upload.
            IncompleteReadError: If ``data`` holds fewer than ``size`` bytes.
        """
        if isinstance(data, (bytes, bytearray, memoryview)):
            if len(data) < size:
                raise IncompleteReadError(expected=size, received=len(data))
            if size > self._config.multipart_threshold:
                data = io.BytesIO(data)

        if size > self._config.multipart_threshold:
            put_multipart(
                self, data, size, path, content_type=content_type, progress=progress
            )
            return

        if isinstance(data, (bytes, bytearray, memoryview)):
            body: memoryview | bytes | BoundedReader = (
                memoryview(data).cast("B")[:size] if size > 0 else b""
            )
        else:
            body = BoundedReader(data, size) if size > 0 else b""

        headers = {
            "Content-Type": content_type or DEFAULT_CONTENT_TYPE,
            "Content-Length": str(size),
        }
        if md5sum is not None:
            headers["Content-MD5"] = base64.b64encode(md5sum).decode("ascii")

        response = self.request("PUT", path, headers=headers, data=body)
        if response.status_code != 200:
            raise wrap_error(response)
        logger.debug("Stored %s (%d bytes)", path, size)

    def get(self, path: str) -> StoredObject:
        """Fetch an object and the headers it was stored with.

        Raises:
            S3Error: If the object cannot be fetched.
        """
        response = self.request("GET", path)
        if response.status_code != 200:
            raise wrap_error(response)
        return StoredObject(body=response.content, headers=response.headers)

    def head(self, path: str) -> ObjectHead:
        """Get object metadata without transferring its content.

        Raises:
            S3Error: If the object does not exist or cannot be read.
        """
        response = self.request("HEAD", path)
        if response.status_code != 200:
            raise wrap_error(response)

        size = response.headers.get("Content-Length")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.headers.get("ETag"),
            content_type=response.headers.get("Content-Type"),
            headers=response.headers,
        )

    def delete(self, path: str) -> None:
        """Delete an object.

        Raises:
            S3Error: If the store rejects the request.
        """
        response = self.request("DELETE", path)
        if response.status_code not in DELETE_SUCCESS_CODES:
            raise wrap_error(response)

    def test(self) -> None:
        """Write a short object and read it back.

        Intended to validate configuration at startup so that bad
        credentials fail fast.

        Raises:
            S3SelfTestError: If the object read back differs from what was
                written, or was served with a different content type.
            S3Error: If either request is rejected.
        """
        payload = f"roundtrip-test-{secrets.token_hex(8)}".encode("ascii")
        self.put(
            payload, len(payload), SELF_TEST_KEY, content_type=SELF_TEST_CONTENT_TYPE
        )

        stored = self.get(SELF_TEST_KEY)
        if stored.body != payload:
            raise S3SelfTestError(
                "Data read back from the store differs from what was written"
            )
        if stored.content_type != SELF_TEST_CONTENT_TYPE:
            raise S3SelfTestError(
                "Content served back from the store had a different Content-Type "
                f"({stored.content_type!r}) than what was written"
            )

    def start_multipart(self, path: str) -> MultipartUpload:
        """Initiate a multipart upload.

        The returned upload must be finished with ``complete()`` or
        ``abort()``; using it as a context manager guarantees the abort.

        Args:
            path: Object key to upload to.

        Returns:
            An open ``MultipartUpload``.

        Raises:
            S3Error: If the store rejects the request.
            S3ResponseError: If the response has no upload id.
        """
        response = self.request("POST", path, query={"uploads": ""})
        if response.status_code != 200:
            raise wrap_error(response)

        upload_id, key = parse_initiate_response(response.content)
        upload = MultipartUpload(self, upload_id=upload_id, key=key or path)
        logger.info("Started multipart upload %s for %s", upload_id, upload.key)
        return upload


def _quote_key(path: str) -> str:
    """Percent-encode an object key for use in a URL path."""
    return quote(path.lstrip("/"), safe="/~")
