# tests/conftest.py
"""Shared fixtures: a fake remote instance and pre-generated key material."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from fedcore.config import FederationConfig
from fedcore.http import HttpClient
from fedcore.keystore import Keypair, KeyStore, MemoryObjectStore, _generate_keypair

BASE_URL = "https://forum.example"


class FakeRemote:
    """
    Mock federation peers for httpx.MockTransport.

    Routes are matched on method plus scheme://host/path, so keyId
    fragments and query strings do not matter.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Tuple[int, Any, float]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, status: int = 200, json: Any = None,
            method: str = "GET", delay: float = 0.0):
        self.routes[(method, url)] = (status, json, delay)

    def requests_to(self, url: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if _route_url(r) == url and (method is None or r.method == method)
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, _route_url(request)))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})

        status, body, delay = route
        if delay:
            await asyncio.sleep(delay)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


@pytest.fixture(scope="session")
def keypair():
    """One RSA keypair generated for the whole session."""
    public_pem, private_pem = _generate_keypair()
    return Keypair(public_key=public_pem, private_key=private_pem)


@pytest.fixture(scope="session")
def other_keypair():
    """A second, unrelated keypair."""
    public_pem, private_pem = _generate_keypair()
    return Keypair(public_key=public_pem, private_key=private_pem)


@pytest.fixture
def config():
    return FederationConfig(base_url=BASE_URL)


@pytest.fixture
async def store(keypair):
    """Object store with keys already present for identities 0 and 42."""
    store = MemoryObjectStore()
    await store.set_object("uid:0:keys", keypair.to_dict())
    await store.set_object("uid:42:keys", keypair.to_dict())
    return store


@pytest.fixture
def keystore(store):
    return KeyStore(store)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
async def http(remote):
    client = HttpClient(transport=remote.transport())
    yield client
    await client.aclose()
