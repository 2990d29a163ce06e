"""HTTP error helpers for turning store responses into typed errors."""

from __future__ import annotations

import requests

from s3lite.core.exceptions import S3Error

# Only internal server errors are flagged retryable; throttling responses
# (429, 503) are surfaced with should_retry=False.
RETRYABLE_STATUS_CODES = frozenset({500})


def is_retryable_status(status_code: int) -> bool:
    """Return whether a failed request with this status may be reissued."""
    return status_code in RETRYABLE_STATUS_CODES


def wrap_error(response: requests.Response) -> S3Error:
    """Build an S3Error from a non-success response.

    The full body is read so it can be kept for diagnostics.
    """
    return S3Error(
        status_code=response.status_code,
        body=response.content or b"",
        should_retry=is_retryable_status(response.status_code),
    )


def extract_error_detail(error: S3Error) -> str:
    """Extract a short human-readable detail from a store error."""
    code = error.error_code
    if code is None:
        return error.body.decode("utf-8", errors="replace").strip()

    message = error.error_message
    return f"{code}: {message}" if message else code
