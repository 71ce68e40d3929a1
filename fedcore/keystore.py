# fedcore/keystore.py
"""
Per-identity RSA keypairs.

Each local identity owns exactly one keypair, stored under
``uid:<identity>:keys`` in an ObjectStore. Keys are generated lazily on
first access and never regenerated once stored; verification of old
signatures depends on that.

Structure of FileObjectStore:
    store_dir/
        uid_42_keys.json     # {"publicKey": ..., "privateKey": ...}
"""

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import InvalidIdentityError, KeyStoreError

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")


def normalize_identity(identity: Any) -> int:
    """
    Coerce an identity handle to a non-negative int.

    Accepts ints and decimal strings. Raises InvalidIdentityError otherwise.
    """
    if isinstance(identity, bool):
        raise InvalidIdentityError(identity)
    if isinstance(identity, int):
        value = identity
    elif isinstance(identity, float) and identity.is_integer():
        value = int(identity)
    elif isinstance(identity, str) and _DIGITS.match(identity.strip()):
        value = int(identity.strip())
    else:
        raise InvalidIdentityError(identity)
    if value < 0:
        raise InvalidIdentityError(identity)
    return value


def _keys_key(identity: int) -> str:
    return f"uid:{identity}:keys"


def _generate_keypair(key_size: int = 2048) -> tuple[str, str]:
    """Generate RSA key pair for signing. Returns (public_pem, private_pem)."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return public_pem.decode("utf-8"), private_pem.decode("utf-8")


@dataclass(frozen=True)
class Keypair:
    """A matched PEM-encoded RSA keypair."""
    public_key: str
    private_key: str

    def to_dict(self) -> Dict[str, str]:
        """Serialize for storage."""
        return {"publicKey": self.public_key, "privateKey": self.private_key}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Keypair"]:
        """Deserialize from storage. Incomplete records count as absent."""
        if not data or not data.get("publicKey") or not data.get("privateKey"):
            return None
        return cls(public_key=data["publicKey"], private_key=data["privateKey"])


class ObjectStore(Protocol):
    """Key/value store holding key material. Returns None for absent keys."""

    async def get_object(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set_object(self, key: str, value: Dict[str, Any]) -> None:
        ...


class MemoryObjectStore:
    """In-process ObjectStore."""

    def __init__(self):
        self._objects: Dict[str, Dict[str, Any]] = {}

    async def get_object(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._objects.get(key)
        return dict(value) if value is not None else None

    async def set_object(self, key: str, value: Dict[str, Any]) -> None:
        self._objects[key] = dict(value)

    def __contains__(self, key: str) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)


class FileObjectStore:
    """
    ObjectStore backed by one JSON file per key.

    Files are written owner read/write only since they hold private keys.
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.store_dir / f"{safe}.json"

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path) as f:
            return json.load(f)

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(value, f, indent=2)
        os.replace(tmp_path, path)

    async def get_object(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, key)

    async def set_object(self, key: str, value: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, key, value)


class KeyStore:
    """
    Lazily generated keypairs, one per identity.

    Concurrent first access for the same identity shares a single
    lookup-or-generate task, so two callers can never observe different
    keypairs.
    """

    def __init__(self, store: ObjectStore, key_size: int = 2048):
        self.store = store
        self.key_size = key_size
        self._pending: Dict[int, asyncio.Task] = {}

    async def get_or_create_keypair(self, identity: Any) -> Keypair:
        """Return the identity's keypair, generating and persisting it if absent."""
        identity = normalize_identity(identity)

        task = self._pending.get(identity)
        if task is None:
            task = asyncio.ensure_future(self._load_or_generate(identity))
            self._pending[identity] = task
            task.add_done_callback(lambda t: self._forget(identity, t))

        # shield so one cancelled caller does not cancel the shared task
        return await asyncio.shield(task)

    def _forget(self, identity: int, task: asyncio.Task) -> None:
        if self._pending.get(identity) is task:
            del self._pending[identity]

    async def get_public_key(self, identity: Any) -> str:
        return (await self.get_or_create_keypair(identity)).public_key

    async def get_private_key(self, identity: Any) -> str:
        return (await self.get_or_create_keypair(identity)).private_key

    async def _load_or_generate(self, identity: int) -> Keypair:
        key = _keys_key(identity)
        try:
            keypair = Keypair.from_dict(await self.store.get_object(key))
        except (OSError, ValueError) as e:
            raise KeyStoreError(f"Key storage unavailable for {key}: {e}") from e

        if keypair is not None:
            return keypair

        logger.info(f"Generating keypair for identity {identity}")
        public_pem, private_pem = await asyncio.to_thread(_generate_keypair, self.key_size)
        keypair = Keypair(public_key=public_pem, private_key=private_pem)

        try:
            await self.store.set_object(key, keypair.to_dict())
        except (OSError, ValueError) as e:
            raise KeyStoreError(f"Key storage unavailable for {key}: {e}") from e

        return keypair
