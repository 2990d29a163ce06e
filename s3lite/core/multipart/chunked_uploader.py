"""Upload a whole stream through the multipart API in fixed-size parts."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, BinaryIO

from tqdm import tqdm

from s3lite.core.const import MIN_PART_SIZE
from s3lite.core.multipart.multipart_upload import MultipartUpload
from s3lite.core.utils.streams import readinto_exactly

if TYPE_CHECKING:
    from s3lite.core.client import S3Client

logger = logging.getLogger(__name__)


def _abort_after_error(upload: MultipartUpload) -> None:
    """Abort an upload whose transfer already failed.

    The caller re-raises the original error, so an abort failure is only
    logged.
    """
    try:
        upload.abort()
    except Exception:
        logger.warning(
            "Failed to abort multipart upload %s after error",
            upload.upload_id,
            exc_info=True,
        )


def put_multipart(
    client: S3Client,
    stream: BinaryIO,
    size: int,
    path: str,
    content_type: str = "",
    chunk_size: int | None = None,
    progress: bool = False,
) -> MultipartUpload:
    """Upload ``size`` bytes from ``stream`` as a multipart upload.

    The stream is read in parts of ``chunk_size`` bytes (the last part holds
    the remainder), each sent with its own MD5 checksum. A single buffer is
    reused for every part. If any read or part upload fails the upload is
    aborted and the original error is raised; if completion fails the upload
    is aborted as well.

    Args:
        client: Client for the target bucket.
        stream: Binary source holding at least ``size`` bytes.
        size: Total number of bytes to upload.
        path: Object key.
        content_type: MIME type of the assembled object.
        chunk_size: Part size in bytes. Defaults to the client's configured
            chunk size (7 MiB unless overridden). Must be at least 5 MiB for
            the store to accept uploads with more than one part.
        progress: Show a progress bar on stderr.

    Returns:
        The completed upload.

    Raises:
        S3Error: If the store rejects any step.
        IncompleteReadError: If ``stream`` ends before ``size`` bytes.
    """
    if chunk_size is None:
        chunk_size = client.config.chunk_size
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_size < MIN_PART_SIZE and size > chunk_size:
        logger.warning(
            "Part size %d is below the store minimum of %d; completion may be rejected",
            chunk_size,
            MIN_PART_SIZE,
        )

    upload = client.start_multipart(path)
    buffer = bytearray(min(chunk_size, size))
    remaining = size

    try:
        with tqdm(
            total=size,
            desc=f"Uploading {path}",
            unit="B",
            unit_scale=True,
            disable=not progress,
        ) as pbar:
            while remaining > 0:
                part_size = min(chunk_size, remaining)
                view = memoryview(buffer)[:part_size]
                readinto_exactly(stream, view)
                md5sum = hashlib.md5(view, usedforsecurity=False).digest()
                upload.add_part(view, part_size, md5sum)
                remaining -= part_size
                pbar.update(part_size)
    except BaseException:
        _abort_after_error(upload)
        raise

    try:
        upload.complete(content_type)
    except Exception:
        _abort_after_error(upload)
        raise

    logger.info(
        "Uploaded %s (%d bytes in %d parts)", path, size, len(upload.parts)
    )
    return upload
