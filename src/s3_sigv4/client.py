import logging
import pathlib
import xml.etree.ElementTree as ET
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import BinaryIO, Self

import aiohttp
from yarl import URL

from .auth import AWSSignatureV4
from .chunked import ChunkedBody
from .config import load_account
from .exceptions import (
    AccessDeniedError,
    ClientResponseError,
    InvalidRequestError,
    NotFoundError,
    ResponseError,
    S3BucketNotFoundError,
    S3NotFoundError,
    ServerResponseError,
)
from .models import Account, BodyStream, SignableRequest

logger = logging.getLogger(__name__)


# S3 reports missing resources with these codes, other services only by status
S3_NOT_FOUND = {
    "NoSuchKey": S3NotFoundError,
    "NoSuchBucket": S3BucketNotFoundError,
}


def parse_error_response(status: int, body: str) -> ResponseError:
    """Maps an error response to an exception, keeping its status and code.

    Handles the S3 ``<Error>`` document as well as the ``<ErrorResponse>``
    wrapper of the query APIs. A body that is not XML becomes the message.
    """
    code, message = None, body or None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        pass
    else:
        code = root.findtext(".//{*}Code")
        message = root.findtext(".//{*}Message")
    code = code or "Unknown"
    message = message or "Unknown error"

    if code in S3_NOT_FOUND:
        error_class = S3_NOT_FOUND[code]
    elif status == 404:
        error_class = NotFoundError
    elif status == 403:
        error_class = AccessDeniedError
    elif code == "InvalidRequest":
        error_class = InvalidRequestError
    elif 400 <= status < 500:
        error_class = ClientResponseError
    else:
        error_class = ServerResponseError
    return error_class(message, status, code)


class SignedClient:
    """Sends SigV4 signed requests over an aiohttp session."""

    def __init__(
        self,
        account: Account,
        sign_payload: bool = False,
        chunk_size: int | None = None,
    ):
        self.account = account
        self._auth = AWSSignatureV4(account, sign_payload, chunk_size)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_aws_config(
        cls,
        service: str = "s3",
        profile_name: str = "default",
        config_path: str | pathlib.Path | None = None,
        credentials_path: str | pathlib.Path | None = None,
        **kwargs,
    ) -> Self:
        account = load_account(service, profile_name, config_path, credentials_path)
        return cls(account, **kwargs)

    @property
    def session(self) -> aiohttp.ClientSession:
        # created lazily so the client can be built outside a running loop
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def __aenter__(self) -> Self:
        self.session
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def request(
        self,
        method: str,
        url: URL | str,
        headers: Mapping[str, str] | None = None,
        data: bytes | BodyStream | None = None,
        sign_payload: bool | None = None,
        chunk_size: int | None = None,
    ) -> aiohttp.ClientResponse:
        request = SignableRequest(
            url=URL(url),
            method=method,
            headers=headers or {},
            body=data,
        )
        signed = self._auth.sign(
            request, sign_payload=sign_payload, chunk_size=chunk_size
        )

        body = signed.body
        if isinstance(body, ChunkedBody):
            body = aiter(body)

        logger.debug("%s %s", signed.method, signed.url)
        response = await self.session.request(
            method=signed.method,
            url=signed.url,
            headers=signed.headers,
            data=body,
        )
        logger.debug("%s %s -> %d", signed.method, signed.url, response.status)

        if response.status >= 400:
            error_text = await response.text()
            response.close()
            logger.warning(
                "%s %s failed with HTTP %d", signed.method, signed.url, response.status
            )
            raise parse_error_response(response.status, error_text)

        return response

    async def put_stream(
        self,
        url: URL | str,
        source: Iterable[bytes] | AsyncIterable[bytes] | BinaryIO,
        length: int | None = None,
        headers: Mapping[str, str] | None = None,
        chunk_size: int | None = None,
    ) -> dict[str, str | None]:
        """Uploads a streamed body with aws-chunked signing."""
        response = await self.request(
            "PUT",
            url,
            headers=headers,
            data=BodyStream(source, length),
            chunk_size=chunk_size,
        )
        result = {
            "etag": response.headers.get("ETag", "").strip('"'),
            "version_id": response.headers.get("x-amz-version-id"),
        }
        response.close()
        return result
