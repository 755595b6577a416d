# social_publisher/infrastructure/platforms/http_client.py
import os
import random
from typing import Any, List, Optional

import httpx
import structlog

from .errors import ErrorKind, PlatformError, classify

logger = structlog.get_logger(__name__)

PLATFORM_HTTP_TIMEOUT = float(os.getenv("PLATFORM_HTTP_TIMEOUT", "60"))
PLATFORM_PROXIES = [p.strip() for p in os.getenv("PLATFORM_PROXIES", "").split(",") if p.strip()]

GRAPH_PLATFORMS = {"FACEBOOK", "INSTAGRAM"}


class ProxyManager:
    def __init__(self, proxies: Optional[List[str]] = None):
        self.proxies = proxies or []

    def pick(self) -> Optional[str]:
        if not self.proxies:
            return None
        return random.choice(self.proxies)


def _error_details(platform: str, response: httpx.Response):
    """Pull a readable message and, for Graph API platforms, the numeric error code."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None

    if not isinstance(body, dict):
        return str(body), None

    err = body.get("error")
    if isinstance(err, dict):
        code = err.get("code") if platform in GRAPH_PLATFORMS else None
        return err.get("message") or str(err), code if isinstance(code, int) else None
    if isinstance(err, str):
        return body.get("error_description") or err, None
    return body.get("detail") or body.get("message") or body.get("title") or response.text, None


class PlatformHTTPClient:
    """
    Thin httpx wrapper shared by all platform modules.
    Non-2xx responses and transport failures surface as PlatformError.
    """

    def __init__(
        self,
        proxy_manager: Optional[ProxyManager] = None,
        timeout: float = PLATFORM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.proxy_manager = proxy_manager
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict = {"timeout": self.timeout}
        proxy = self.proxy_manager.pick() if self.proxy_manager else None
        if proxy:
            kwargs["proxy"] = proxy
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def request(self, platform: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                r = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("platform_request_error", platform=platform, method=method, url=url, error=str(e))
            raise PlatformError(ErrorKind.UNKNOWN, f"{platform} request failed: {e}", platform=platform) from e

        if r.status_code >= 400:
            message, code = _error_details(platform, r)
            kind = classify(r.status_code, code)
            logger.warning(
                "platform_request_rejected",
                platform=platform, method=method, url=url,
                status_code=r.status_code, code=code, kind=kind.value,
            )
            raise PlatformError(
                kind,
                f"{platform} API error {r.status_code}: {message}",
                platform=platform,
                status_code=r.status_code,
                code=code,
            )
        return r

    async def get(self, platform: str, url: str, headers=None, params=None) -> dict:
        r = await self.request(platform, "GET", url, headers=headers, params=params)
        return r.json()

    async def post(self, platform: str, url: str, headers=None, params=None, data=None, json=None, content=None) -> dict:
        r = await self.request(platform, "POST", url, headers=headers, params=params, data=data, json=json, content=content)
        return r.json() if r.content else {}

    async def download(self, platform: str, url: str) -> bytes:
        r = await self.request(platform, "GET", url)
        return r.content


_client: Optional[PlatformHTTPClient] = None


def get_client() -> PlatformHTTPClient:
    global _client
    if _client is None:
        _client = PlatformHTTPClient(proxy_manager=ProxyManager(PLATFORM_PROXIES))
    return _client


def set_client(client: Optional[PlatformHTTPClient]) -> None:
    global _client
    _client = client
