"""Canonical request construction for AWS Signature Version 4."""

import logging
import urllib.parse
from collections.abc import Iterable, Mapping

from yarl import URL

from .encoding import uri_encode
from .exceptions import MalformedRequestError
from .models import SignableRequest

logger = logging.getLogger(__name__)

AUTHORITY_HEADER = ":authority"
AMZ_HEADER_PREFIX = "x-amz-"


def canonical_headers(
    headers: Mapping[str, str], host: str | None = None
) -> list[tuple[str, str]]:
    """Returns the signed headers as sorted (name, value) pairs.

    Only ``:authority`` and ``x-amz-*`` headers take part in the signature.
    ``:authority`` is synthesized from ``host`` when the headers lack it.
    """
    values: dict[str, list[str]] = {}
    for name, value in headers.items():
        name = name.strip().lower()
        if name == AUTHORITY_HEADER or name.startswith(AMZ_HEADER_PREFIX):
            values.setdefault(name, []).append(value.strip())

    if host and AUTHORITY_HEADER not in values:
        values[AUTHORITY_HEADER] = [host.strip()]

    # repeated headers are folded into one comma separated value
    return sorted((name, ",".join(parts)) for name, parts in values.items())


def canonical_header_block(pairs: Iterable[tuple[str, str]]) -> str:
    return "".join(f"{name}:{value}\n" for name, value in pairs)


def signed_header_names(pairs: Iterable[tuple[str, str]]) -> str:
    return ";".join(name for name, _ in pairs)


def canonical_uri(raw_path: str) -> str:
    """Encodes a percent-encoded path one segment at a time.

    Segments are decoded once and encoded again, so an encoded slash inside a
    segment (``%2F``) stays encoded.
    """
    segments = [urllib.parse.unquote(segment) for segment in raw_path.split("/")]
    encoded = "/".join(uri_encode(segment, encode_slash=True) for segment in segments)
    return encoded or "/"


def query_pairs(raw_query: str) -> list[tuple[str, str]]:
    # "+" is a literal plus here, not a form-encoded space
    pairs = []
    for part in raw_query.split("&"):
        if not part:
            continue
        name, _, value = part.partition("=")
        pairs.append((urllib.parse.unquote(name), urllib.parse.unquote(value)))
    return pairs


def canonical_query(query: Iterable[tuple[str, str]]) -> str:
    # sorted() is stable: parameters with the same name keep their order
    items = sorted(query, key=lambda item: item[0])
    return "&".join(
        f"{uri_encode(name, encode_slash=True)}="
        f"{uri_encode(value, encode_slash=True)}"
        for name, value in items
    )


def canonical_url(url: URL) -> URL:
    """The URL to send, with path and query exactly as they are signed."""
    return URL.build(
        scheme=url.scheme,
        authority=url.raw_authority,
        path=canonical_uri(url.raw_path),
        query_string=canonical_query(query_pairs(url.raw_query_string)),
        encoded=True,
    )


def build_canonical_request(
    request: SignableRequest,
    headers: Mapping[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """Builds the canonical request text.

    ``headers`` is the already decorated header set (``x-amz-date`` and
    ``x-amz-content-sha256`` included). Returns the canonical request and
    the signed headers list.
    """
    path = request.path
    if path is None:
        raise MalformedRequestError()

    pairs = canonical_headers(headers, request.authority)
    signed_headers = signed_header_names(pairs)

    canonical_request = "\n".join(
        [
            request.verb,
            canonical_uri(path),
            canonical_query(query_pairs(request.url.raw_query_string)),
            canonical_header_block(pairs),
            signed_headers,
            payload_hash,
        ]
    )
    logger.debug("Canonical request:\n%s", canonical_request)
    return canonical_request, signed_headers
