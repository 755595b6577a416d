# social_publisher/infrastructure/platforms/errors.py
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTH_EXPIRED = "AUTH_EXPIRED"
    RATE_LIMITED = "RATE_LIMITED"
    CONTENT_REJECTED = "CONTENT_REJECTED"
    CONFIGURATION = "CONFIGURATION"
    UNKNOWN = "UNKNOWN"


# Graph API (Facebook / Instagram) error codes
GRAPH_AUTH_CODES = {102, 190}
GRAPH_RATE_LIMIT_CODES = {4, 17, 32, 613}
INSTAGRAM_ASPECT_RATIO_CODE = 36003


class PlatformError(Exception):
    """Failure reported by, or on the way to, a social platform."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.platform = platform
        self.status_code = status_code
        self.code = code

    @property
    def needs_reconnection(self) -> bool:
        return self.kind is ErrorKind.AUTH_EXPIRED

    @property
    def is_aspect_ratio(self) -> bool:
        return self.code == INSTAGRAM_ASPECT_RATIO_CODE


def classify(status_code: Optional[int], code: Optional[int] = None) -> ErrorKind:
    if code is not None:
        if code in GRAPH_AUTH_CODES or code == 10 or 200 <= code <= 299:
            return ErrorKind.AUTH_EXPIRED
        if code in GRAPH_RATE_LIMIT_CODES:
            return ErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return ErrorKind.AUTH_EXPIRED
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code is not None and 400 <= status_code < 500:
        return ErrorKind.CONTENT_REJECTED
    return ErrorKind.UNKNOWN
