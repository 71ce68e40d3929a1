# fedcore/errors.py
"""
Exception hierarchy.

Verification failures are never raised; Verifier.verify() returns False.
Everything else surfaces as a FederationError subclass.
"""

from typing import Optional


class FederationError(Exception):
    """Base class for all fedcore errors."""


class InvalidIdentityError(FederationError, ValueError):
    """Identity is not a non-negative integer."""

    def __init__(self, identity):
        super().__init__(f"Invalid identity: {identity!r}")
        self.identity = identity


class SignatureParseError(FederationError, ValueError):
    """Signature header does not follow the key="value" grammar."""


class KeyStoreError(FederationError):
    """Key material storage is unreachable."""


class TransportFailure(FederationError):
    """The request never produced an HTTP response."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"Request to {uri} failed: {reason}")
        self.uri = uri
        self.reason = reason


class PublicKeyNotFoundError(FederationError):
    """Remote key document was unavailable or had no publicKey."""

    def __init__(self, key_id: str):
        super().__init__(f"Public key not found: {key_id}")
        self.key_id = key_id


class FetchFailedError(FederationError):
    """Remote peer answered an authenticated GET with a non-2xx status."""

    def __init__(self, uri: str, status_code: int):
        super().__init__(f"GET {uri} returned {status_code}")
        self.uri = uri
        self.status_code = status_code


class DeliveryError(FederationError):
    """Delivery to a single inbox failed."""

    def __init__(self, inbox: str, status_code: Optional[int] = None, reason: str = None):
        if status_code is not None:
            message = f"Delivery to {inbox} failed with {status_code}"
        else:
            message = f"Delivery to {inbox} failed: {reason or 'no response'}"
        super().__init__(message)
        self.inbox = inbox
        self.status_code = status_code
        self.reason = reason
