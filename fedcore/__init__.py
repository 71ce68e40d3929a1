# fedcore - ActivityPub server-to-server federation core
#
# Signs outgoing requests, verifies incoming ones, resolves delivery
# targets and caches remote fetches. What activities mean is left to the
# caller; this package only provides the authenticated transport.
#
# Core concepts:
# - KeyStore: one lazily generated RSA keypair per local identity
# - Signer / Verifier: HTTP Signatures over (request-target), host, date, digest
# - Fetcher: public key lookups and cached authenticated GETs
# - InboxResolver: recipients -> deduplicated inbox URIs
# - Dispatcher: concurrent signed delivery to every inbox

from .actors import ActorDirectory, MemoryActorDirectory, RemoteActorDirectory
from .cache import CacheEntry, CacheStats, ResponseCache
from .config import FederationConfig
from .constants import AS_CONTEXT, LD_JSON_MEDIA_TYPE, PUBLIC_ADDRESS
from .dispatcher import Dispatcher
from .errors import (
    DeliveryError,
    FederationError,
    FetchFailedError,
    InvalidIdentityError,
    KeyStoreError,
    PublicKeyNotFoundError,
    SignatureParseError,
    TransportFailure,
)
from .federation import Federation
from .fetch import Fetcher
from .http import HttpClient, HttpResponse
from .inbox import InboxResolver
from .keystore import FileObjectStore, Keypair, KeyStore, MemoryObjectStore
from .signatures import (
    InboundRequest,
    ParsedSignature,
    SignatureHeader,
    Signer,
    Verifier,
    parse_signature_header,
)

__all__ = [
    # Facade
    "Federation",
    "FederationConfig",
    # Keys and signatures
    "KeyStore",
    "Keypair",
    "MemoryObjectStore",
    "FileObjectStore",
    "Signer",
    "SignatureHeader",
    "Verifier",
    "InboundRequest",
    "ParsedSignature",
    "parse_signature_header",
    # Fetching and delivery
    "HttpClient",
    "HttpResponse",
    "ResponseCache",
    "CacheEntry",
    "CacheStats",
    "Fetcher",
    "ActorDirectory",
    "MemoryActorDirectory",
    "RemoteActorDirectory",
    "InboxResolver",
    "Dispatcher",
    # Errors
    "FederationError",
    "InvalidIdentityError",
    "SignatureParseError",
    "KeyStoreError",
    "TransportFailure",
    "PublicKeyNotFoundError",
    "FetchFailedError",
    "DeliveryError",
    # Constants
    "AS_CONTEXT",
    "LD_JSON_MEDIA_TYPE",
    "PUBLIC_ADDRESS",
]

__version__ = "0.1.0"
