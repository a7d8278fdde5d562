import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest

from s3_sigv4.chunked import STREAMING_PAYLOAD
from s3_sigv4.client import SignedClient, parse_error_response
from s3_sigv4.exceptions import (
    AccessDeniedError,
    ClientResponseError,
    InvalidRequestError,
    NotFoundError,
    S3BucketNotFoundError,
    S3NotFoundError,
    ServerResponseError,
    UnsupportedChunkSizeError,
)


def make_response(status: int = 200, text: str = "", headers: dict | None = None):
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.text = AsyncMock(return_value=text)
    response.close = MagicMock()
    return response


def mock_session():
    session = MagicMock(closed=False)
    session.request = AsyncMock(return_value=make_response())
    return session


@pytest.fixture
def client(account):
    client = SignedClient(account)
    client._session = mock_session()
    return client


def test_client_initialization(account):
    client = SignedClient(account, sign_payload=True)
    assert client.account is account
    assert client._auth.sign_payload is True
    assert client._session is None


def test_client_rejects_small_chunk_size(account):
    with pytest.raises(UnsupportedChunkSizeError):
        SignedClient(account, chunk_size=100)


def test_from_aws_config(tmp_path):
    config_file = tmp_path / "config"
    config_file.write_text("""[default]
aws_access_key_id = KEY
aws_secret_access_key = SECRET
region = eu-west-3
""")

    client = SignedClient.from_aws_config(config_path=config_file, sign_payload=True)

    assert client.account.access_key == "KEY"
    assert client.account.region == "eu-west-3"
    assert client._auth.sign_payload is True


@pytest.mark.asyncio
async def test_request_is_signed(client):
    await client.request(
        "get", "https://examplebucket.s3.amazonaws.com/test.txt?versionId=1"
    )

    call = client._session.request.call_args
    headers = call.kwargs["headers"]
    assert call.kwargs["method"] == "GET"
    assert str(call.kwargs["url"]).endswith("/test.txt?versionId=1")
    assert headers["Authorization"].startswith("AWS4-HMAC-SHA256 Credential=")
    assert "x-amz-date" in headers
    assert call.kwargs["data"] is None


@pytest.mark.asyncio
async def test_request_with_signed_payload(account):
    client = SignedClient(account, sign_payload=True)
    client._session = mock_session()

    await client.request("PUT", "https://example.com/key", data=b"payload")

    call = client._session.request.call_args
    assert call.kwargs["data"] == b"payload"
    assert call.kwargs["headers"]["x-amz-content-sha256"] == (
        hashlib.sha256(b"payload").hexdigest()
    )


@pytest.mark.asyncio
async def test_put_stream(client):
    client._session.request.return_value = make_response(
        headers={"ETag": '"abcd1234"', "x-amz-version-id": "v1"}
    )

    async def source():
        yield b"a" * 5000
        yield b"b" * 5000

    result = await client.put_stream(
        "https://examplebucket.s3.amazonaws.com/big.bin", source(), length=10000
    )

    assert result == {"etag": "abcd1234", "version_id": "v1"}
    call = client._session.request.call_args
    headers = call.kwargs["headers"]
    assert headers["x-amz-content-sha256"] == STREAMING_PAYLOAD
    assert headers["x-amz-decoded-content-length"] == "10000"

    body = b"".join([frame async for frame in call.kwargs["data"]])
    assert len(body) == int(headers["Content-Length"])
    assert body.startswith(b"2000;chunk-signature=")
    assert body.endswith(b"\r\n\r\n")


@pytest.mark.asyncio
async def test_error_response_raises(client):
    client._session.request.return_value = make_response(
        status=403,
        text="""<?xml version="1.0" encoding="UTF-8"?>
    <Error>
        <Code>SignatureDoesNotMatch</Code>
        <Message>The request signature we calculated does not match.</Message>
    </Error>""",
    )

    with pytest.raises(AccessDeniedError, match="does not match"):
        await client.request("GET", "https://example.com/key")


def test_parse_error_response_s3_missing_key():
    xml_response = """<?xml version="1.0" encoding="UTF-8"?>
    <Error>
        <Code>NoSuchKey</Code>
        <Message>The specified key does not exist.</Message>
    </Error>"""

    exception = parse_error_response(404, xml_response)
    assert type(exception) is S3NotFoundError
    assert isinstance(exception, NotFoundError)
    assert exception.error_code == "NoSuchKey"
    assert "specified key does not exist" in str(exception)


def test_parse_error_response_s3_missing_bucket():
    xml_response = "<Error><Code>NoSuchBucket</Code><Message>Gone</Message></Error>"

    exception = parse_error_response(404, xml_response)
    assert type(exception) is S3BucketNotFoundError
    assert exception.error_code == "NoSuchBucket"


def test_parse_error_response_query_api_document():
    xml_response = """<ErrorResponse xmlns="https://iam.amazonaws.com/doc/2010-05-08/">
    <Error>
        <Type>Sender</Type>
        <Code>NoSuchEntity</Code>
        <Message>The user with name Bob cannot be found.</Message>
    </Error>
    <RequestId>4cd5-a7d6</RequestId>
</ErrorResponse>"""

    exception = parse_error_response(404, xml_response)
    assert type(exception) is NotFoundError
    assert exception.status_code == 404
    assert exception.error_code == "NoSuchEntity"
    assert exception.message == "The user with name Bob cannot be found."


def test_parse_error_response_keeps_denied_code():
    xml_response = (
        "<Error><Code>SignatureDoesNotMatch</Code><Message>No</Message></Error>"
    )

    exception = parse_error_response(403, xml_response)
    assert type(exception) is AccessDeniedError
    assert exception.error_code == "SignatureDoesNotMatch"
    assert str(exception) == "SignatureDoesNotMatch (403): No"


def test_parse_error_response_invalid_request():
    xml_response = "<Error><Code>InvalidRequest</Code><Message>Bad</Message></Error>"

    exception = parse_error_response(400, xml_response)
    assert isinstance(exception, InvalidRequestError)


def test_parse_error_response_client_error():
    xml_response = "<Error><Code>Conflict</Code><Message>Nope</Message></Error>"

    exception = parse_error_response(409, xml_response)
    assert type(exception) is ClientResponseError
    assert exception.status_code == 409
    assert exception.error_code == "Conflict"


def test_parse_error_response_not_xml():
    exception = parse_error_response(502, "Bad Gateway")
    assert isinstance(exception, ServerResponseError)
    assert exception.message == "Bad Gateway"
    assert exception.error_code == "Unknown"
@pytest.mark.asyncio
async def test_context_manager_closes_session(account):
    client = SignedClient(account)

    async with client:
        assert client._session is not None

    assert client._session is None


@pytest.mark.asyncio
async def test_session_reopened_after_close(account):
    client = SignedClient(account)

    async with client:
        first = client.session
    async with client:
        assert client.session is not first
        assert not client.session.closed

    assert client._session is None
