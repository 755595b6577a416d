# social_publisher/infrastructure/platforms/tokens.py
from dataclasses import dataclass
from typing import Optional

from .errors import ErrorKind, PlatformError


@dataclass
class TokenSet:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds


def token_set_from(platform: str, body: dict) -> TokenSet:
    access_token = body.get("access_token")
    if not access_token:
        raise PlatformError(ErrorKind.AUTH_EXPIRED, f"{platform} token refresh returned no access token", platform=platform)
    expires_in = body.get("expires_in")
    return TokenSet(
        access_token=access_token,
        refresh_token=body.get("refresh_token"),
        expires_in=int(expires_in) if expires_in else None,
    )
