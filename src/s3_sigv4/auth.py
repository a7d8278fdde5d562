"""AWS Signature Version 4 request signing."""

import datetime as dt
import logging
from collections.abc import Mapping

from multidict import CIMultiDict
from yarl import URL

from . import timefmt
from .canonical import build_canonical_request, canonical_url
from .chunked import (
    AWS_CHUNKED_ENCODING,
    DEFAULT_CHUNK_SIZE,
    STREAMING_PAYLOAD,
    ChunkedBody,
    ChunkSigner,
    encoded_content_length,
    validate_chunk_size,
)
from .exceptions import MalformedRequestError
from .hashing import hmac_sha256, hmac_sha256_hex, sha256_hex
from .models import Account, BodyStream, SignableRequest, SignedRequest

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"


def derive_signing_key(
    secret_key: str, date_stamp: str, region: str, service: str
) -> bytes:
    k_date = hmac_sha256(f"AWS4{secret_key}".encode(), date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    k_signing = hmac_sha256(k_service, "aws4_request")
    return k_signing


def create_string_to_sign(timestamp: str, scope: str, canonical_request: str) -> str:
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            scope,
            sha256_hex(canonical_request),
        ]
    )


def format_authorization(credential: str, signed_headers: str, signature: str) -> str:
    return (
        f"{ALGORITHM} "
        f"Credential={credential},"
        f"SignedHeaders={signed_headers},"
        f"Signature={signature}"
    )


def payload_hash(body: bytes | None, sign_payload: bool) -> str:
    if not sign_payload:
        return UNSIGNED_PAYLOAD
    return sha256_hex(body or b"")


def _add_content_encoding(headers: CIMultiDict[str]):
    current = headers.get("Content-Encoding")
    if not current:
        headers["Content-Encoding"] = AWS_CHUNKED_ENCODING
    elif AWS_CHUNKED_ENCODING not in current:
        headers["Content-Encoding"] = f"{AWS_CHUNKED_ENCODING},{current}"


class AWSSignatureV4:
    """Signs requests with the credentials of one account.

    ``sign_payload`` and ``chunk_size`` are defaults for every request and can
    be overridden per call. A ``chunk_size`` turns on chunked signing even for
    in-memory bodies; streamed bodies are always chunked.
    """

    def __init__(
        self,
        account: Account,
        sign_payload: bool = False,
        chunk_size: int | None = None,
    ):
        if chunk_size is not None:
            validate_chunk_size(chunk_size)
        self.account = account
        self.sign_payload = sign_payload
        self.chunk_size = chunk_size
        self._signing_key: tuple[str, Account, bytes] | None = None

    def _get_signature_key(self, date_stamp: str) -> bytes:
        # only the current day is kept, a new date or account replaces it
        cached = self._signing_key
        if cached is not None and cached[:2] == (date_stamp, self.account):
            return cached[2]
        key = derive_signing_key(
            self.account.secret_key,
            date_stamp,
            self.account.region,
            self.account.service,
        )
        self._signing_key = (date_stamp, self.account, key)
        return key

    def _decorate_headers(
        self,
        request: SignableRequest,
        timestamp: str,
        content_sha256: str,
        stream: BodyStream | None,
        chunk_size: int,
    ) -> CIMultiDict[str]:
        headers = CIMultiDict(request.headers)
        headers["x-amz-date"] = timestamp
        headers["x-amz-content-sha256"] = content_sha256
        if self.account.session_token:
            headers["x-amz-security-token"] = self.account.session_token

        if stream is not None:
            _add_content_encoding(headers)
            if stream.length is None:
                headers.popall("Content-Length", None)
            else:
                headers["x-amz-decoded-content-length"] = str(stream.length)
                headers["Content-Length"] = str(
                    encoded_content_length(stream.length, chunk_size)
                )
        return headers

    def sign(
        self,
        request: SignableRequest,
        now: dt.datetime | None = None,
        sign_payload: bool | None = None,
        chunk_size: int | None = None,
    ) -> SignedRequest:
        """Signs ``request`` and returns the headers and body to send.

        The request itself is left untouched. Headers covered by the signature
        (``x-amz-date``, ``x-amz-content-sha256`` and, when streaming,
        ``x-amz-decoded-content-length``) are set before the canonical request
        is built.
        """
        if request.path is None:
            raise MalformedRequestError()

        if sign_payload is None:
            sign_payload = self.sign_payload
        if chunk_size is None:
            chunk_size = self.chunk_size

        stream = None
        if request.is_streamed or chunk_size is not None:
            chunk_size = validate_chunk_size(
                DEFAULT_CHUNK_SIZE if chunk_size is None else chunk_size
            )
            if isinstance(request.body, BodyStream):
                stream = request.body
            else:
                stream = BodyStream.from_bytes(request.body or b"")
            content_sha256 = STREAMING_PAYLOAD
        else:
            chunk_size = 0
            content_sha256 = payload_hash(request.body, sign_payload)

        if now is None:
            now = dt.datetime.now(dt.UTC)
        timestamp = timefmt.basic_date(now)
        date_stamp = timefmt.date_stamp(now)
        scope = self.account.scope(date_stamp)

        headers = self._decorate_headers(
            request, timestamp, content_sha256, stream, chunk_size
        )
        canonical_request, signed_headers = build_canonical_request(
            request, headers, content_sha256
        )
        string_to_sign = create_string_to_sign(timestamp, scope, canonical_request)
        logger.debug("String to sign:\n%s", string_to_sign)

        signing_key = self._get_signature_key(date_stamp)
        signature = hmac_sha256_hex(signing_key, string_to_sign)

        headers["Authorization"] = format_authorization(
            self.account.credential(date_stamp), signed_headers, signature
        )

        if stream is not None:
            signer = ChunkSigner(signature, signing_key, timestamp, scope)
            body = ChunkedBody(stream, signer, chunk_size)
        else:
            body = request.body

        return SignedRequest(
            method=request.verb,
            url=canonical_url(request.url),
            headers=headers,
            body=body,
            signature=signature,
            signed_headers=signed_headers,
        )

    def sign_request(
        self,
        method: str,
        url: URL | str,
        headers: Mapping[str, str] | None = None,
        body: bytes | BodyStream | None = None,
        now: dt.datetime | None = None,
        sign_payload: bool | None = None,
        chunk_size: int | None = None,
    ) -> SignedRequest:
        request = SignableRequest(
            url=url,
            method=method,
            headers=headers or {},
            body=body,
        )
        return self.sign(
            request, now=now, sign_payload=sign_payload, chunk_size=chunk_size
        )
