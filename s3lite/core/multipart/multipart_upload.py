"""Coordinator for a single multipart upload.

A multipart upload is a sequence of independent requests: initiate, one
request per part, and a final complete or abort. ``MultipartUpload`` keeps
the state that ties those requests together (the upload id and the ETag the
store returned for each part) and serializes every mutating call behind a
per-upload lock so that concurrent callers cannot corrupt it.

Callers must always finish an upload explicitly with ``complete()`` or
``abort()``, or use the upload as a context manager, which aborts it if the
block exits before it was completed. Parts of an upload that is never
finished keep occupying storage on the store. As a last resort an abort is
attempted when the object is garbage collected, but that is best-effort
only and may never run.
"""

from __future__ import annotations

import base64
import logging
import threading
import weakref
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO

from s3lite.core.const import DEFAULT_CONTENT_TYPE
from s3lite.core.exceptions import MultipartFinalizedError
from s3lite.core.models import CompletedPart
from s3lite.core.multipart.manifest import build_complete_manifest
from s3lite.core.utils.http_errors import wrap_error
from s3lite.core.utils.streams import BoundedReader

if TYPE_CHECKING:
    from s3lite.core.client import S3Client

logger = logging.getLogger(__name__)

PART_CONTENT_TYPE = "application/octet-stream"
ABORT_SUCCESS_CODES = frozenset({200, 204})


class UploadState(str, Enum):
    """Lifecycle state of a multipart upload."""

    OPEN = "open"
    FINALIZED = "finalized"


def _abort_upload(client: S3Client, key: str, upload_id: str) -> None:
    """Send the abort request for an upload and raise on failure."""
    response = client.request("DELETE", key, query={"uploadId": upload_id})
    if response.status_code not in ABORT_SUCCESS_CODES:
        raise wrap_error(response)


def _abort_quietly(client: S3Client, key: str, upload_id: str) -> None:
    """Best-effort abort for uploads that were dropped without being finished.

    Runs from a garbage-collection finalizer, so it must never raise.
    """
    logger.warning(
        "Multipart upload %s for %s was never completed or aborted; aborting",
        upload_id,
        key,
    )
    try:
        _abort_upload(client, key, upload_id)
    except Exception:
        logger.warning(
            "Best-effort abort of multipart upload %s failed", upload_id, exc_info=True
        )


class MultipartUpload:
    """State of one multipart upload and the operations that advance it.

    Instances are created by ``S3Client.start_multipart``. Part numbers are
    assigned internally, starting at 1, in the order ``add_part`` calls
    succeed.
    """

    def __init__(self, client: S3Client, upload_id: str, key: str):
        """Initialize an open upload.

        Args:
            client: Client used to sign and send every request.
            upload_id: Identifier the store assigned at initiation.
            key: Object key the upload will produce.
        """
        self._client = client
        self._upload_id = upload_id
        self._key = key
        self._parts: list[CompletedPart] = []
        self._state = UploadState.OPEN
        self._lock = threading.Lock()

        # Holds no reference to self, so it cannot keep the upload alive.
        self._finalizer = weakref.finalize(
            self, _abort_quietly, client, key, upload_id
        )
        self._finalizer.atexit = False

    @property
    def upload_id(self) -> str:
        """Identifier the store assigned to this upload."""
        return self._upload_id

    @property
    def key(self) -> str:
        """Object key this upload will produce."""
        return self._key

    @property
    def parts(self) -> tuple[CompletedPart, ...]:
        """Parts acknowledged so far, in part-number order."""
        with self._lock:
            return tuple(self._parts)

    @property
    def state(self) -> UploadState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_finalized(self) -> bool:
        """Whether the upload was completed or aborted."""
        return self._state is UploadState.FINALIZED

    def _ensure_open(self, operation: str) -> None:
        if self._state is UploadState.FINALIZED:
            raise MultipartFinalizedError(operation, self._upload_id)

    def _finalize(self) -> None:
        self._state = UploadState.FINALIZED
        self._finalizer.detach()

    def add_part(
        self,
        data: bytes | bytearray | memoryview | BinaryIO,
        size: int | None = None,
        md5sum: bytes | None = None,
    ) -> CompletedPart:
        """Upload the next part of the object.

        The store requires every part except the last to be at least 5 MiB;
        this is not checked locally.

        A failed upload leaves the recorded parts unchanged, so calling
        ``add_part`` again with the same data reuses the same part number and
        overwrites whatever the store kept from the failed attempt.

        Args:
            data: Part contents, as bytes or a binary stream.
            size: Number of bytes to send. Required when ``data`` is a stream;
                defaults to ``len(data)`` for bytes.
            md5sum: Optional raw MD5 digest of the part, verified by the store.

        Returns:
            The part number and ETag the store acknowledged.

        Raises:
            MultipartFinalizedError: If the upload was already completed or
                aborted. No request is made.
            S3Error: If the store rejects the part.
            ValueError: If ``size`` is missing for a stream or does not match
                the length of ``data``.
        """
        with self._lock:
            self._ensure_open("add_part")

            if isinstance(data, (bytes, bytearray, memoryview)):
                # Sent as-is; the chunking driver reuses one buffer for every part.
                view = memoryview(data).cast("B")
                if size is None:
                    size = len(view)
                elif size != len(view):
                    raise ValueError(
                        f"size {size} does not match the {len(view)} bytes given"
                    )
                body: memoryview | bytes | BoundedReader = view if size > 0 else b""
            elif size is None:
                raise ValueError("size is required when data is a stream")
            else:
                body = BoundedReader(data, size) if size > 0 else b""

            part_number = len(self._parts) + 1
            headers = {
                "Content-Length": str(size),
                "Content-Type": PART_CONTENT_TYPE,
            }
            if md5sum is not None:
                headers["Content-MD5"] = base64.b64encode(md5sum).decode("ascii")

            logger.debug(
                "Uploading part %d (%d bytes) of upload %s",
                part_number,
                size,
                self._upload_id,
            )
            response = self._client.request(
                "PUT",
                self._key,
                query={"partNumber": str(part_number), "uploadId": self._upload_id},
                headers=headers,
                data=body,
            )
            if response.status_code != 200:
                logger.debug(
                    "Part %d of upload %s failed with HTTP %d",
                    part_number,
                    self._upload_id,
                    response.status_code,
                )
                raise wrap_error(response)

            part = CompletedPart(
                part_number=part_number, etag=response.headers.get("ETag", "")
            )
            self._parts.append(part)
            return part

    def complete(self, content_type: str = "") -> None:
        """Ask the store to assemble the uploaded parts into the object.

        A failed completion leaves the upload open; the caller may retry or
        abort it.

        Args:
            content_type: MIME type sent with the request. Defaults to
                ``application/octet-stream``.

        Raises:
            MultipartFinalizedError: If the upload was already completed or
                aborted. No request is made.
            S3Error: If the store rejects the manifest.
        """
        with self._lock:
            self._ensure_open("complete")

            manifest = build_complete_manifest(self._parts)
            response = self._client.request(
                "POST",
                self._key,
                query={"uploadId": self._upload_id},
                headers={
                    "Content-Length": str(len(manifest)),
                    "Content-Type": content_type or DEFAULT_CONTENT_TYPE,
                },
                data=manifest,
            )
            if response.status_code != 200:
                raise wrap_error(response)

            self._finalize()
            logger.info(
                "Completed multipart upload %s for %s (%d parts)",
                self._upload_id,
                self._key,
                len(self._parts),
            )

    def abort(self) -> None:
        """Cancel the upload and release the storage held by its parts.

        Aborting is not idempotent: a second call raises, since the store has
        already discarded the upload id.

        Raises:
            MultipartFinalizedError: If the upload was already completed or
                aborted. No request is made.
            S3Error: If the store rejects the abort.
        """
        with self._lock:
            self._ensure_open("abort")
            _abort_upload(self._client, self._key, self._upload_id)
            self._finalize()
            logger.info(
                "Aborted multipart upload %s for %s", self._upload_id, self._key
            )

    def __enter__(self) -> MultipartUpload:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.is_finalized:
            return
        if exc_type is None:
            self.abort()
            return
        try:
            self.abort()
        except Exception:
            logger.warning(
                "Failed to abort multipart upload %s after error",
                self._upload_id,
                exc_info=True,
            )

    def __repr__(self) -> str:
        return (
            f"MultipartUpload(key={self._key!r}, upload_id={self._upload_id!r}, "
            f"parts={len(self._parts)}, state={self._state.value})"
        )
