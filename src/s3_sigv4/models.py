from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Self

from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL


@dataclass(frozen=True)
class Account:
    access_key: str
    secret_key: str = field(repr=False)
    region: str = "us-east-1"
    service: str = "s3"
    session_token: str | None = field(default=None, repr=False)

    def scope(self, date_stamp: str) -> str:
        return f"{date_stamp}/{self.region}/{self.service}/aws4_request"

    def credential(self, date_stamp: str) -> str:
        return f"{self.access_key}/{self.scope(date_stamp)}"

    @classmethod
    def from_aws_config(cls, service: str = "s3", **kwargs: Any) -> Self:
        from .config import load_account

        return load_account(service, **kwargs)

    @classmethod
    def from_env(cls, service: str = "s3") -> Self:
        from .config import account_from_env

        return account_from_env(service)


@dataclass
class BodyStream:
    """Lazily produced request body.

    ``source`` is an iterable or async iterable of bytes, or a binary
    file-like object. ``length`` is the total number of bytes if known.
    """

    source: Iterable[bytes] | AsyncIterable[bytes] | BinaryIO
    length: int | None = None

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        return cls([data] if data else [], len(data))


@dataclass(frozen=True)
class SignableRequest:
    url: URL | str | None
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=CIMultiDict)
    body: bytes | BodyStream | None = None
    host: str | None = None

    def __post_init__(self):
        if isinstance(self.url, str):
            object.__setattr__(self, "url", URL(self.url))
        object.__setattr__(
            self, "headers", CIMultiDictProxy(CIMultiDict(self.headers))
        )

    @property
    def verb(self) -> str:
        return (self.method or "GET").upper()

    @property
    def authority(self) -> str | None:
        if self.host:
            return self.host
        if self.url is None:
            return None
        return self.url.host

    @property
    def path(self) -> str | None:
        """Percent-encoded path of the URL, or None when it can't be resolved."""
        if self.url is None:
            return None
        if not self.url.is_absolute() and not self.url.raw_path:
            return None
        return self.url.raw_path or "/"

    @property
    def is_streamed(self) -> bool:
        return isinstance(self.body, BodyStream)


@dataclass
class SignedRequest:
    method: str
    url: URL
    headers: CIMultiDict[str]
    body: Any
    signature: str
    signed_headers: str

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]
