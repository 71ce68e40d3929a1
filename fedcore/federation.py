# fedcore/federation.py
"""
Federation facade.

Wires the keystore, signer, verifier, fetcher, inbox resolver and
dispatcher around a single config, cache and HTTP client. Callers that
only need one component can build it directly instead.

Usage:
    config = FederationConfig(base_url="https://forum.example")
    async with Federation(config, MemoryObjectStore(), actors) as fed:
        await fed.send(42, "https://remote.example/users/alice",
                       {"type": "Follow", "object": "https://remote.example/users/alice"})
"""

from typing import Any, Dict, Iterable, Optional, Set, Union

from .actors import ActorDirectory, RemoteActorDirectory
from .cache import ResponseCache
from .config import FederationConfig
from .dispatcher import Dispatcher
from .fetch import Fetcher
from .http import HttpClient
from .inbox import InboxResolver
from .keystore import KeyStore, ObjectStore
from .signatures import InboundRequest, SignatureHeader, Signer, Verifier


class Federation:
    """
    Server-to-server federation for one instance.

    Args:
        config: Instance configuration
        store: Where key material lives
        actors: Actor records; defaults to fetching remote actor documents
        http: Outbound HTTP client; one is created from config if omitted
    """

    def __init__(
        self,
        config: FederationConfig,
        store: ObjectStore,
        actors: Optional[ActorDirectory] = None,
        http: Optional[HttpClient] = None,
    ):
        self.config = config
        self._owns_http = http is None
        self.http = http or HttpClient(timeout=config.request_timeout, user_agent=config.user_agent)

        self.cache = ResponseCache(ttl=config.cache_ttl)
        self.keystore = KeyStore(store, key_size=config.key_size)
        self.signer = Signer(config, self.keystore)
        self.fetcher = Fetcher(config, self.http, self.signer, self.cache)
        self.verifier = Verifier(self.fetcher)
        self.actors = actors if actors is not None else RemoteActorDirectory(self.fetcher)
        self.inboxes = InboxResolver(self.actors)
        self.dispatcher = Dispatcher(config, self.signer, self.inboxes, self.http)

    async def get_public_key(self, identity: Any) -> str:
        return await self.keystore.get_public_key(identity)

    async def get_private_key(self, identity: Any) -> str:
        return await self.keystore.get_private_key(identity)

    async def public_key_document(self, identity: Any) -> Dict[str, str]:
        """The publicKey block a local actor document publishes."""
        return {
            "id": self.signer.key_id(identity),
            "owner": self.signer.actor_uri(identity),
            "publicKeyPem": await self.keystore.get_public_key(identity),
        }

    async def sign(self, identity: Any, url: str, payload: Any = None) -> SignatureHeader:
        return await self.signer.sign(identity, url, payload)

    async def verify(self, request: InboundRequest) -> bool:
        return await self.verifier.verify(request)

    async def fetch_public_key(self, key_id: str) -> str:
        return await self.fetcher.fetch_public_key(key_id)

    async def get(self, identity: Optional[int], uri: str) -> Any:
        return await self.fetcher.get(identity, uri)

    async def resolve_inboxes(self, ids: Iterable[Any]) -> Set[str]:
        return await self.inboxes.resolve_inboxes(ids)

    async def send(self, identity: Any, targets: Union[str, Iterable[str]],
                   payload: Dict[str, Any]) -> Set[str]:
        return await self.dispatcher.send(identity, targets, payload)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "Federation":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
