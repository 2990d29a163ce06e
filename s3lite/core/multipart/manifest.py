"""XML documents exchanged with the store during a multipart upload."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Sequence

from s3lite.core.exceptions import S3ResponseError
from s3lite.core.models import CompletedPart


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def build_complete_manifest(parts: Sequence[CompletedPart]) -> bytes:
    """Serialize the body of a CompleteMultipartUpload request.

    Parts are written in ascending part-number order, since the store joins
    parts in the order the manifest lists them.

    Args:
        parts: Parts acknowledged by the store.

    Returns:
        UTF-8 encoded XML document without an XML declaration.
    """
    root = ET.Element("CompleteMultipartUpload")
    for part in sorted(parts, key=lambda p: p.part_number):
        part_element = ET.SubElement(root, "Part")
        ET.SubElement(part_element, "PartNumber").text = str(part.part_number)
        ET.SubElement(part_element, "ETag").text = part.etag
    return ET.tostring(
        root, encoding="utf-8", xml_declaration=False, short_empty_elements=False
    )


def parse_initiate_response(body: bytes) -> tuple[str, str | None]:
    """Extract the upload id and key from an InitiateMultipartUploadResult.

    Args:
        body: Raw response body.

    Returns:
        Tuple of ``(upload_id, key)``; ``key`` is None when the store omits it.

    Raises:
        S3ResponseError: If the body is not XML or has no ``UploadId``.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise S3ResponseError(f"Malformed initiate multipart response: {exc}") from exc

    fields = {_local_name(child.tag): (child.text or "").strip() for child in root}
    upload_id = fields.get("UploadId")
    if not upload_id:
        raise S3ResponseError("Initiate multipart response missing UploadId")

    return upload_id, fields.get("Key") or None
