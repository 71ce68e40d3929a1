# fedcore/signatures.py
"""
HTTP Signatures for ActivityPub server-to-server requests.

Uses RSA-SHA256 (PKCS#1 v1.5) over a signing string built from the
request target, host, date and, for requests with a body, a SHA-256
digest of the body:

    (request-target): post /inbox
    host: remote.example
    date: Sat, 17 Oct 2026 10:00:00 GMT
    digest: sha-256=...

The Signature header carries keyId, the ordered headers list and the
base64 signature value. Signer and Verifier must agree on that order.
"""

import base64
import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from .config import FederationConfig
from .constants import SYSTEM_IDENTITY
from .errors import SignatureParseError
from .keystore import KeyStore, normalize_identity

logger = logging.getLogger(__name__)

SIGNED_HEADERS = "(request-target) host date"
SIGNED_HEADERS_WITH_DIGEST = "(request-target) host date digest"


def serialize_payload(payload: Any) -> bytes:
    """
    Serialize a payload to the exact bytes that are hashed and sent.

    Sorted keys, no whitespace.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def compute_digest(body: bytes) -> str:
    """Digest header value for a request body."""
    return "sha-256=" + base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")


def build_signing_string(method: str, path: str, host: str, date: str,
                         digest: Optional[str] = None) -> str:
    """Signing string for an outbound request, in signed-headers order."""
    lines = [
        f"(request-target): {method.lower()} {path}",
        f"host: {host}",
        f"date: {date}",
    ]
    if digest is not None:
        lines.append(f"digest: {digest}")
    return "\n".join(lines)


def rsa_sign(private_key_pem: str, message: str) -> str:
    """Sign message with RSA-SHA256, returning base64."""
    private_key = serialization.load_pem_private_key(
        private_key_pem.encode("utf-8"),
        password=None,
    )
    signature = private_key.sign(
        message.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return base64.b64encode(signature).decode("ascii")


def rsa_verify(public_key_pem: str, message: str, signature_b64: str) -> bool:
    """Check a base64 RSA-SHA256 signature. Never raises on bad input."""
    try:
        public_key = serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
        signature = base64.b64decode(signature_b64, validate=True)
        public_key.verify(
            signature,
            message.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True
    except (InvalidSignature, UnsupportedAlgorithm, ValueError, TypeError, AttributeError):
        return False


@dataclass(frozen=True)
class SignatureHeader:
    """
    Headers produced for one outbound request.

    Attributes:
        date: RFC-1123 timestamp that was signed
        digest: "sha-256=<base64>" for requests with a body, else None
        signature: Signature header value
    """
    date: str
    digest: Optional[str]
    signature: str

    def to_headers(self) -> Dict[str, str]:
        headers = {"Date": self.date, "Signature": self.signature}
        if self.digest is not None:
            headers["Digest"] = self.digest
        return headers


class Signer:
    """
    Signs outbound requests with a local identity's private key.

    Args:
        config: Instance configuration (base_url builds the keyId)
        keystore: Source of private keys
        clock: Returns the Date header value; defaults to the current time
    """

    def __init__(self, config: FederationConfig, keystore: KeyStore,
                 clock: Callable[[], str] = None):
        self.config = config
        self.keystore = keystore
        self.clock = clock or (lambda: formatdate(usegmt=True))

    def actor_uri(self, identity: Any) -> str:
        """Actor URI for a local identity. Identity 0 is the instance actor."""
        identity = normalize_identity(identity)
        if identity == SYSTEM_IDENTITY:
            return f"{self.config.base_url}/actor"
        return f"{self.config.base_url}/uid/{identity}"

    def key_id(self, identity: Any) -> str:
        """keyId advertised in signatures made by this identity."""
        return f"{self.actor_uri(identity)}#key"

    async def sign(self, identity: Any, url: str, payload: Any = None) -> SignatureHeader:
        """
        Build the Date/Digest/Signature headers for a request to url.

        A GET is signed when payload is None, otherwise a POST whose body
        is serialize_payload(payload).
        """
        identity = normalize_identity(identity)

        parts = urlsplit(url)
        host = parts.netloc
        path = parts.path or "/"
        date = self.clock()
        private_key = await self.keystore.get_private_key(identity)

        digest = None
        headers = SIGNED_HEADERS
        method = "get"
        if payload is not None:
            method = "post"
            digest = compute_digest(serialize_payload(payload))
            headers = SIGNED_HEADERS_WITH_DIGEST

        signing_string = build_signing_string(method, path, host, date, digest)
        signature = rsa_sign(private_key, signing_string)

        return SignatureHeader(
            date=date,
            digest=digest,
            signature=f'keyId="{self.key_id(identity)}",headers="{headers}",signature="{signature}"',
        )


# Signature header grammar: key="value" pairs separated by commas
_PARAM = re.compile(r'\s*([A-Za-z][A-Za-z0-9_-]*)="([^"]*)"\s*')


@dataclass(frozen=True)
class ParsedSignature:
    """Structured Signature header."""
    key_id: str
    headers: Tuple[str, ...]
    signature: str
    algorithm: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)


def parse_signature_header(value: str) -> ParsedSignature:
    """
    Parse a Signature header value.

    Raises SignatureParseError on anything that is not a comma separated
    list of key="value" pairs containing keyId, headers and signature.
    """
    if not isinstance(value, str) or not value.strip():
        raise SignatureParseError("Empty signature header")

    params: Dict[str, str] = {}
    pos = 0
    while True:
        match = _PARAM.match(value, pos)
        if match is None:
            raise SignatureParseError(f"Malformed signature parameter at offset {pos}")
        key, param_value = match.group(1), match.group(2)
        if key in params:
            raise SignatureParseError(f"Duplicate signature parameter: {key}")
        params[key] = param_value
        pos = match.end()
        if pos == len(value):
            break
        if value[pos] != ",":
            raise SignatureParseError(f"Expected ',' at offset {pos}")
        pos += 1

    missing = [k for k in ("keyId", "headers", "signature") if not params.get(k)]
    if missing:
        raise SignatureParseError(f"Missing signature parameters: {', '.join(missing)}")

    return ParsedSignature(
        key_id=params.pop("keyId"),
        headers=tuple(params.pop("headers").split(" ")),
        signature=params.pop("signature"),
        algorithm=params.pop("algorithm", None),
        extra=params,
    )


@dataclass
class InboundRequest:
    """
    The parts of an inbound HTTP request that verification needs.

    Attributes:
        method: HTTP method
        base_path: Mount point of the router handling the request
        path: Path below base_path
        headers: Request headers; names are matched case-insensitively
        body: Raw body, when available, for digest checking. Text bodies
            are stored UTF-8 encoded.
    """
    method: str
    base_path: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __post_init__(self):
        self.headers = {k.lower(): v for k, v in dict(self.headers).items()}
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


def reconstruct_signing_string(parsed: ParsedSignature, request: InboundRequest) -> str:
    """
    Rebuild the signing string from the request, in the order the signer listed.

    Headers the request does not carry are skipped.
    """
    lines = []
    for name in parsed.headers:
        if name == "(request-target)":
            lines.append(f"{name}: {str(request.method).lower()} {request.base_path}{request.path}")
        elif request.header(name) is not None:
            lines.append(f"{name}: {request.header(name)}")
    return "\n".join(lines)


class Verifier:
    """
    Authenticates inbound requests against the signer's published key.

    verify() is a predicate: every failure is reported as False.
    """

    def __init__(self, key_resolver):
        # anything with async fetch_public_key(key_id) -> PEM
        self.key_resolver = key_resolver

    async def verify(self, request: InboundRequest) -> bool:
        """Return True if the request carries a valid signature."""
        header = request.header("signature")
        if header is None:
            return False

        try:
            parsed = parse_signature_header(header)
        except SignatureParseError as e:
            logger.debug(f"Rejecting unparseable signature: {e}")
            return False

        if request.body is not None and request.header("digest") is not None:
            try:
                digest = compute_digest(request.body)
            except (TypeError, ValueError) as e:
                logger.debug(f"Cannot digest body signed by {parsed.key_id}: {e}")
                return False
            if digest != request.header("digest"):
                logger.debug(f"Digest mismatch for request signed by {parsed.key_id}")
                return False

        signing_string = reconstruct_signing_string(parsed, request)

        try:
            public_key_pem = await self.key_resolver.fetch_public_key(parsed.key_id)
        except Exception as e:
            logger.debug(f"Could not resolve key {parsed.key_id}: {e}")
            return False

        verified = rsa_verify(public_key_pem, signing_string, parsed.signature)
        if not verified:
            logger.debug(f"Signature check failed for {parsed.key_id}")
        return verified
