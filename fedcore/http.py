# fedcore/http.py
"""
Outbound HTTP client for federation requests.

Thin async wrapper over httpx that returns status code and parsed JSON
body, and turns connection-level failures into TransportFailure.
Timeouts are the client's concern; nothing above this layer enforces one.

Usage:
    async with HttpClient(timeout=10) as http:
        response = await http.get("https://remote.example/users/alice",
                                  headers={"Accept": LD_JSON_MEDIA_TYPE})
        if response.ok:
            print(response.body["inbox"])
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import TransportFailure

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Status code and decoded body of a remote response."""
    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _decode_body(response: httpx.Response) -> Any:
    """Parse a JSON body; anything else decodes to None."""
    if not response.content:
        return None
    try:
        return json.loads(response.content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class HttpClient:
    """
    Async HTTP client.

    Args:
        timeout: Request timeout in seconds
        user_agent: User-Agent header sent with every request
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(self, timeout: float = 30.0, user_agent: str = "fedcore",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            transport=transport,
            follow_redirects=True,
        )

    async def _request(self, method: str, uri: str, headers: Dict[str, str],
                       content: Optional[bytes] = None) -> HttpResponse:
        try:
            response = await self._client.request(method, uri, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise TransportFailure(uri, str(e) or type(e).__name__) from e

        logger.debug(f"{method} {uri} -> {response.status_code}")
        return HttpResponse(status_code=response.status_code, body=_decode_body(response))

    async def get(self, uri: str, headers: Dict[str, str] = None) -> HttpResponse:
        return await self._request("GET", uri, headers or {})

    async def post(self, uri: str, headers: Dict[str, str] = None,
                   content: bytes = b"") -> HttpResponse:
        return await self._request("POST", uri, headers or {}, content)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
