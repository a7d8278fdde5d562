"""AWS Signature Version 4 request signing with chunked upload support."""

__version__ = "0.1.0"

from .auth import UNSIGNED_PAYLOAD, AWSSignatureV4
from .chunked import MIN_CHUNK_SIZE, STREAMING_PAYLOAD, ChunkedBody, ChunkSigner
from .client import SignedClient
from .exceptions import (
    AccessDeniedError,
    ClientResponseError,
    InvalidRequestError,
    MalformedRequestError,
    NotFoundError,
    ResponseError,
    S3BucketNotFoundError,
    S3NotFoundError,
    ServerResponseError,
    SigV4Error,
    UnsupportedChunkSizeError,
)
from .models import Account, BodyStream, SignableRequest, SignedRequest

__all__ = [
    "AWSSignatureV4",
    "Account",
    "BodyStream",
    "ChunkSigner",
    "ChunkedBody",
    "MIN_CHUNK_SIZE",
    "SignableRequest",
    "SignedClient",
    "SignedRequest",
    "STREAMING_PAYLOAD",
    "UNSIGNED_PAYLOAD",
    "SigV4Error",
    "MalformedRequestError",
    "UnsupportedChunkSizeError",
    "ResponseError",
    "ClientResponseError",
    "ServerResponseError",
    "NotFoundError",
    "AccessDeniedError",
    "InvalidRequestError",
    "S3NotFoundError",
    "S3BucketNotFoundError",
]
