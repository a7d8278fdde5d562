"""Chunked upload signing (``STREAMING-AWS4-HMAC-SHA256-PAYLOAD``).

Every chunk carries a signature computed over the signature of the chunk
before it, starting from the seed signature of the request itself. The
chain is strictly sequential: a ChunkSigner must be driven by one consumer,
in order.
"""

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from .exceptions import SigV4Error, UnsupportedChunkSizeError
from .hashing import EMPTY_SHA256, hmac_sha256_hex, sha256_hex
from .models import BodyStream

logger = logging.getLogger(__name__)

KB = 1024

# S3 rejects chunks smaller than 8 KB (except the last one)
MIN_CHUNK_SIZE = 8 * KB
DEFAULT_CHUNK_SIZE = MIN_CHUNK_SIZE

STREAMING_PAYLOAD = "STREAMING-AWS4-HMAC-SHA256-PAYLOAD"
CHUNK_ALGORITHM = "AWS4-HMAC-SHA256-PAYLOAD"
AWS_CHUNKED_ENCODING = "aws-chunked"

_SIGNATURE_EXTENSION = ";chunk-signature="
_SIGNATURE_LENGTH = 64
_CRLF = b"\r\n"


def validate_chunk_size(chunk_size: int) -> int:
    if chunk_size < MIN_CHUNK_SIZE:
        raise UnsupportedChunkSizeError(chunk_size, MIN_CHUNK_SIZE)
    return chunk_size


def chunk_frame_length(size: int) -> int:
    """Number of bytes a chunk of ``size`` payload bytes takes on the wire."""
    header = len(f"{size:x}") + len(_SIGNATURE_EXTENSION) + _SIGNATURE_LENGTH
    return header + len(_CRLF) + size + len(_CRLF)


def encoded_content_length(decoded_length: int, chunk_size: int) -> int:
    full_chunks, remainder = divmod(decoded_length, chunk_size)
    length = full_chunks * chunk_frame_length(chunk_size)
    if remainder:
        length += chunk_frame_length(remainder)
    return length + chunk_frame_length(0)


class ChunkSigner:
    def __init__(
        self,
        seed_signature: str,
        signing_key: bytes,
        timestamp: str,
        scope: str,
    ):
        self.previous_signature = seed_signature
        self.signing_key = signing_key
        self.timestamp = timestamp
        self.scope = scope
        self.chunk_count = 0

    def string_to_sign(self, chunk: bytes) -> str:
        return "\n".join(
            [
                CHUNK_ALGORITHM,
                self.timestamp,
                self.scope,
                self.previous_signature,
                EMPTY_SHA256,
                sha256_hex(chunk),
            ]
        )

    def sign(self, chunk: bytes) -> str:
        signature = hmac_sha256_hex(self.signing_key, self.string_to_sign(chunk))
        self.previous_signature = signature
        self.chunk_count += 1
        return signature

    def frame(self, chunk: bytes) -> bytes:
        """Signs the chunk and wraps it in the aws-chunked framing.

        An empty chunk is the terminal chunk.
        """
        signature = self.sign(chunk)
        header = f"{len(chunk):x}{_SIGNATURE_EXTENSION}{signature}"
        return header.encode("ascii") + _CRLF + chunk + _CRLF


def rechunk(pieces: Iterable[bytes], chunk_size: int) -> Iterator[bytes]:
    """Regroups arbitrary byte pieces into chunks of exactly ``chunk_size``.

    Only the last chunk can be shorter.
    """
    buffer = bytearray()
    for piece in pieces:
        buffer.extend(piece)
        while len(buffer) >= chunk_size:
            yield bytes(buffer[:chunk_size])
            del buffer[:chunk_size]
    if buffer:
        yield bytes(buffer)


async def arechunk(
    pieces: AsyncIterable[bytes], chunk_size: int
) -> AsyncIterator[bytes]:
    buffer = bytearray()
    async for piece in pieces:
        buffer.extend(piece)
        while len(buffer) >= chunk_size:
            yield bytes(buffer[:chunk_size])
            del buffer[:chunk_size]
    if buffer:
        yield bytes(buffer)


def _read_source(stream: BodyStream, read_size: int) -> Iterator[bytes]:
    source = stream.source
    if hasattr(source, "read"):
        while True:
            piece = source.read(read_size)
            if not piece:
                break
            yield piece
    elif isinstance(source, AsyncIterable):
        raise SigV4Error("Async body streams must be consumed with 'async for'")
    else:
        yield from source


async def _aread_source(stream: BodyStream, read_size: int) -> AsyncIterator[bytes]:
    source = stream.source
    if hasattr(source, "read"):
        loop = asyncio.get_running_loop()
        while True:
            piece = await loop.run_in_executor(None, source.read, read_size)
            if not piece:
                break
            yield piece
    elif isinstance(source, AsyncIterable):
        async for piece in source:
            yield piece
    else:
        for piece in source:
            await asyncio.sleep(0)
            yield piece


class ChunkedBody:
    """Request body that signs and frames chunks as it is read.

    Iterate it once, with either ``for`` or ``async for``.
    """

    def __init__(self, stream: BodyStream, signer: ChunkSigner, chunk_size: int):
        self.stream = stream
        self.signer = signer
        self.chunk_size = chunk_size
        self._consumed = False

    @property
    def content_length(self) -> int | None:
        if self.stream.length is None:
            return None
        return encoded_content_length(self.stream.length, self.chunk_size)

    def _claim(self):
        if self._consumed:
            raise SigV4Error("Chunked body can only be consumed once")
        self._consumed = True

    def _check_length(self, sent: int):
        if self.stream.length is not None and sent != self.stream.length:
            raise SigV4Error(
                f"Body stream produced {sent} bytes, expected {self.stream.length}"
            )

    def __iter__(self) -> Iterator[bytes]:
        self._claim()
        return self._frames()

    def __aiter__(self) -> AsyncIterator[bytes]:
        self._claim()
        return self._aframes()

    def _frames(self) -> Iterator[bytes]:
        sent = 0
        pieces = _read_source(self.stream, self.chunk_size)
        for chunk in rechunk(pieces, self.chunk_size):
            sent += len(chunk)
            yield self.signer.frame(chunk)
        self._check_length(sent)
        yield self.signer.frame(b"")
        logger.debug("Signed %d chunks, %d bytes", self.signer.chunk_count, sent)

    async def _aframes(self) -> AsyncIterator[bytes]:
        sent = 0
        pieces = _aread_source(self.stream, self.chunk_size)
        async for chunk in arechunk(pieces, self.chunk_size):
            sent += len(chunk)
            yield self.signer.frame(chunk)
        self._check_length(sent)
        yield self.signer.frame(b"")
        logger.debug("Signed %d chunks, %d bytes", self.signer.chunk_count, sent)
