class SigV4Error(Exception):
    pass


class MalformedRequestError(SigV4Error):
    def __init__(self, message: str = "Request has no resolvable URL path"):
        super().__init__(message)
        self.message = message


class UnsupportedChunkSizeError(SigV4Error):
    def __init__(self, chunk_size: int, minimum: int):
        super().__init__(
            f"Chunk size {chunk_size} is below the minimum of {minimum} bytes"
        )
        self.chunk_size = chunk_size
        self.minimum = minimum


class ResponseError(Exception):
    """An error response from the signed endpoint, whatever the service."""

    status: int | None = None
    code: str | None = None

    def __init__(
        self,
        message: str = "",
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code or self.status
        self.error_code = error_code or self.code

    def __str__(self) -> str:
        if self.status_code and self.error_code:
            return f"{self.error_code} ({self.status_code}): {self.message}"
        if self.status_code:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class ClientResponseError(ResponseError):
    pass


class ServerResponseError(ResponseError):
    pass


class NotFoundError(ClientResponseError):
    status = 404
    code = "NotFound"


class AccessDeniedError(ClientResponseError):
    status = 403
    code = "AccessDenied"


class InvalidRequestError(ClientResponseError):
    status = 400
    code = "InvalidRequest"


# S3 names its missing resources, the subclasses keep the S3 error code
class S3NotFoundError(NotFoundError):
    code = "NoSuchKey"


class S3BucketNotFoundError(S3NotFoundError):
    code = "NoSuchBucket"
