"""Value types returned by the s3lite client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """A part the store has acknowledged within a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    headers: Mapping[str, str] = field(default_factory=dict, repr=False)


@dataclass(frozen=True, slots=True)
class StoredObject:
    """An object fetched from the store, with the headers it was served with."""

    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict, repr=False)

    @property
    def content_type(self) -> str | None:
        """The ``Content-Type`` the object was stored with."""
        return self.headers.get("Content-Type")
