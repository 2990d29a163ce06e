"""Exception classes raised by the s3lite client."""

from __future__ import annotations

import xml.etree.ElementTree as ET

TEMPORARY_REDIRECT_CODE = "TemporaryRedirect"


class S3ClientError(Exception):
    """Base error for everything raised by s3lite itself.

    Transport failures from ``requests`` are never wrapped in this type.
    """


class ConfigError(S3ClientError):
    """Raised when client configuration is missing or invalid."""


class S3Error(S3ClientError):
    """Raised when the store answers with a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned by the store.
        should_retry: Advisory flag; the client itself never retries.
        body: Raw response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: bytes = b"", should_retry: bool = False):
        """Initialize the error from the parts of a failed response.

        Args:
            status_code: HTTP status returned by the store.
            body: Raw response body.
            should_retry: Whether the request may succeed if reissued.
        """
        self.status_code = status_code
        self.should_retry = should_retry
        self.body = body
        super().__init__(
            f"S3 Error: {status_code} {body.decode('utf-8', errors='replace')}"
        )

    def _error_fields(self) -> dict[str, str]:
        if not self.body:
            return {}
        try:
            root = ET.fromstring(self.body)
        except ET.ParseError:
            return {}
        return {
            _local_name(child.tag): (child.text or "").strip() for child in root
        }

    @property
    def error_code(self) -> str | None:
        """The ``Code`` element of an XML error body, if there is one."""
        return self._error_fields().get("Code") or None

    @property
    def error_message(self) -> str | None:
        """The ``Message`` element of an XML error body, if there is one."""
        return self._error_fields().get("Message") or None

    def new_endpoint(self) -> str:
        """Return the alternate endpoint carried by a TemporaryRedirect error.

        This is advisory only; the client does not follow redirects.

        Returns:
            The ``Endpoint`` value, or an empty string when the body is not a
            TemporaryRedirect error.
        """
        fields = self._error_fields()
        if fields.get("Code") == TEMPORARY_REDIRECT_CODE:
            return fields.get("Endpoint", "")
        return ""


class S3ResponseError(S3ClientError):
    """Raised when a successful response carries an unusable body."""


class MultipartFinalizedError(S3ClientError):
    """Raised when a multipart upload is used after complete or abort."""

    def __init__(self, operation: str, upload_id: str):
        """Initialize the error.

        Args:
            operation: Name of the rejected operation.
            upload_id: Upload the operation was attempted on.
        """
        self.operation = operation
        self.upload_id = upload_id
        super().__init__(
            f"cannot call {operation} on finalized multipart upload {upload_id}"
        )


class IncompleteReadError(S3ClientError):
    """Raised when a source stream ends before the declared size."""

    def __init__(self, expected: int, received: int):
        """Initialize the error.

        Args:
            expected: Number of bytes the caller declared.
            received: Number of bytes actually read.
        """
        self.expected = expected
        self.received = received
        super().__init__(
            f"source stream ended after {received} of {expected} bytes"
        )


class S3SelfTestError(S3ClientError):
    """Raised when the write/read-back self test sees different data."""


def _local_name(tag: str) -> str:
    """Strip an XML namespace from an element tag."""
    return tag.rsplit("}", 1)[-1]
