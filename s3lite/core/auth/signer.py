"""Request signing for the store's shared-secret authentication scheme.

Every request carries an ``Authorization: AWS <access id>:<signature>``
header, where the signature is an HMAC-SHA1 over a canonical description of
the request. All functions here are pure; identical inputs always yield the
same output.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping, Sequence
from email.utils import formatdate
from urllib.parse import quote_plus

QueryValue = str | Sequence[str] | None
Query = Mapping[str, QueryValue] | Iterable[tuple[str, str]]

AUTH_SCHEME = "AWS"


def _iter_query_pairs(query: Query) -> Iterable[tuple[str, str]]:
    if isinstance(query, Mapping):
        for key, value in query.items():
            if value is None or isinstance(value, str):
                yield key, value or ""
            else:
                for item in value:
                    yield key, item
    else:
        yield from query


def canonical_query(query: Query | None) -> str:
    """Build the canonical form of a query string.

    Keys are sorted lexicographically and percent-encoded along with their
    values. A parameter with an empty value is emitted as the bare key, which
    is what the store expects for flags such as ``uploads``.

    Args:
        query: Mapping of key to value (or list of values), or a sequence of
            ``(key, value)`` pairs.

    Returns:
        The canonical query string without a leading ``?``.
    """
    if not query:
        return ""

    grouped: dict[str, list[str]] = {}
    for key, value in _iter_query_pairs(query):
        grouped.setdefault(key, []).append(value)

    parts: list[str] = []
    for key in sorted(grouped):
        for value in grouped[key]:
            if value == "":
                parts.append(quote_plus(key))
            else:
                parts.append(f"{quote_plus(key)}={quote_plus(value)}")
    return "&".join(parts)


def http_date() -> str:
    """Return the current time formatted for the ``Date`` header."""
    return formatdate(usegmt=True)


def string_to_sign(
    method: str,
    resource: str,
    content_md5: str = "",
    content_type: str = "",
    date: str = "",
) -> str:
    """Assemble the canonical string the signature is computed over."""
    return "\n".join(
        [method.strip().upper(), content_md5, content_type, date, resource]
    )


def sign(
    *,
    method: str,
    bucket: str,
    path: str,
    access_id: str,
    secret: str,
    query: Query | None = None,
    content_md5: str = "",
    content_type: str = "",
    date: str | None = None,
) -> str:
    """Compute the ``Authorization`` header value for a request.

    Args:
        method: HTTP method.
        bucket: Bucket the request targets.
        path: Object key, with or without a leading slash.
        access_id: Public access identifier.
        secret: Shared secret key.
        query: Query parameters of the request.
        content_md5: Value of the ``Content-MD5`` header, if any.
        content_type: Value of the ``Content-Type`` header, if any.
        date: Value of the ``Date`` header. Defaults to the current time;
            callers that need to reproduce a signature must pass the same
            date they send on the wire.

    Returns:
        The header value, ``AWS <access_id>:<base64 signature>``.
    """
    resource = f"/{bucket}/{path.lstrip('/')}"
    query_string = canonical_query(query)
    if query_string:
        resource += f"?{query_string}"

    canonical = string_to_sign(
        method,
        resource,
        content_md5=content_md5,
        content_type=content_type,
        date=date if date is not None else http_date(),
    )
    digest = hmac.new(
        secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha1
    ).digest()
    signature = base64.b64encode(digest).decode("ascii")
    return f"{AUTH_SCHEME} {access_id}:{signature}"
