# fedcore/fetch.py
"""
Remote fetches: public key documents and authenticated GETs.

Key documents are fetched unsigned and, unless configured otherwise,
uncached, so a rotated remote key is seen on the next request. General
GETs are signed as the requesting identity and cached per
(identity, uri) for the configured ttl.
"""

import logging
import re
from typing import Any, Optional

from .cache import ResponseCache
from .config import FederationConfig
from .constants import LD_JSON_MEDIA_TYPE, SYSTEM_IDENTITY
from .errors import FetchFailedError, PublicKeyNotFoundError, TransportFailure
from .http import HttpClient
from .keystore import normalize_identity
from .signatures import Signer

logger = logging.getLogger(__name__)

_NEGATIVE = re.compile(r"^\s*-\d+\s*$")


def signing_identity(identity: Any) -> Optional[int]:
    """
    Identity a GET should be signed as, or None for an unsigned GET.

    None and negative identities, as ints or numeric strings, mean unsigned.
    Anything else must be a valid identity.
    """
    if identity is None:
        return None
    if isinstance(identity, int) and not isinstance(identity, bool) and identity < 0:
        return None
    if isinstance(identity, str) and _NEGATIVE.match(identity):
        return None
    return normalize_identity(identity)


def _extract_public_key(body: Any) -> Optional[str]:
    """PEM from an actor or key document, whichever shape it takes."""
    if not isinstance(body, dict) or "publicKey" not in body:
        return None
    public_key = body["publicKey"]
    if isinstance(public_key, dict):
        public_key = public_key.get("publicKeyPem")
    if isinstance(public_key, str) and public_key:
        return public_key
    return None


class Fetcher:
    """
    Fetches remote ActivityPub documents.

    Args:
        config: Instance configuration
        http: Outbound HTTP client
        signer: Signs GETs on behalf of local identities
        cache: Response cache shared by all fetches
    """

    def __init__(self, config: FederationConfig, http: HttpClient,
                 signer: Signer, cache: ResponseCache):
        self.config = config
        self.http = http
        self.signer = signer
        self.cache = cache

    async def fetch_public_key(self, key_id: str) -> str:
        """
        Fetch the PEM public key published at key_id.

        Raises:
            PublicKeyNotFoundError: non-2xx, unreachable, or no publicKey field
        """
        if self.config.cache_public_keys and self.cache.has(SYSTEM_IDENTITY, key_id):
            body = self.cache.get(SYSTEM_IDENTITY, key_id)
        else:
            try:
                response = await self.http.get(key_id, headers={"Accept": LD_JSON_MEDIA_TYPE})
            except TransportFailure as e:
                raise PublicKeyNotFoundError(key_id) from e

            if not response.ok:
                logger.debug(f"Key fetch {key_id} returned {response.status_code}")
                raise PublicKeyNotFoundError(key_id)
            body = response.body

            if self.config.cache_public_keys and _extract_public_key(body) is not None:
                self.cache.set(SYSTEM_IDENTITY, key_id, body)

        public_key = _extract_public_key(body)
        if public_key is None:
            raise PublicKeyNotFoundError(key_id)
        return public_key

    async def get(self, identity: Optional[int], uri: str) -> Any:
        """
        GET uri as identity, serving repeats from the cache.

        identity None (or negative) sends the request unsigned.

        Raises:
            FetchFailedError: remote returned non-2xx (never cached)
            TransportFailure: no response at all
            InvalidIdentityError: identity is neither unsigned nor valid
        """
        signer_identity = signing_identity(identity)

        if self.cache.has(identity, uri):
            return self.cache.get(identity, uri)

        headers = {}
        if signer_identity is not None:
            headers.update((await self.signer.sign(signer_identity, uri)).to_headers())
        headers["Accept"] = LD_JSON_MEDIA_TYPE

        logger.debug(f"[activitypub/get] {uri}")
        response = await self.http.get(uri, headers=headers)

        if not response.ok:
            logger.error(f"[activitypub/get] Received {response.status_code} when querying {uri}")
            if isinstance(response.body, dict) and "error" in response.body:
                logger.error(f"[activitypub/get] Error received: {response.body['error']}")
            raise FetchFailedError(uri, response.status_code)

        self.cache.set(identity, uri, response.body)
        return response.body
