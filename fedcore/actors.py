# fedcore/actors.py
"""
Actor records as seen by the inbox resolver.

The resolver needs two things from whatever owns actor data: a way to
make sure a record exists for each identifier, and a way to read fields
off it. Two implementations are provided:

- MemoryActorDirectory: records held in a dict, stubs for unknown ids
- RemoteActorDirectory: fills records by fetching remote actor documents
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Protocol

from .constants import SYSTEM_IDENTITY
from .errors import FederationError

logger = logging.getLogger(__name__)


class ActorDirectory(Protocol):
    """Boundary to the actor subsystem."""

    async def assert_actors(self, ids: Iterable[Any]) -> None:
        """Ensure a record exists for every id. Idempotent."""
        ...

    async def get_fields(self, id: Any, fields: Iterable[str]) -> Dict[str, Any]:
        """Requested fields of a record; absent fields map to None."""
        ...


class MemoryActorDirectory:
    """
    In-process actor records.

    Usage:
        actors = MemoryActorDirectory()
        actors.add("https://remote.example/users/alice",
                   inbox="https://remote.example/users/alice/inbox",
                   sharedInbox="https://remote.example/inbox")
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def add(self, id: Any, **fields: Any) -> None:
        self._records.setdefault(str(id), {}).update(fields)

    async def assert_actors(self, ids: Iterable[Any]) -> None:
        for id in ids:
            self._records.setdefault(str(id), {})

    async def get_fields(self, id: Any, fields: Iterable[str]) -> Dict[str, Any]:
        record = self._records.get(str(id), {})
        return {name: record.get(name) for name in fields}

    def __contains__(self, id: Any) -> bool:
        return str(id) in self._records

    def __len__(self) -> int:
        return len(self._records)


def actor_record(document: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the fields the core reads out of an actor document."""
    endpoints = document.get("endpoints")
    shared_inbox = endpoints.get("sharedInbox") if isinstance(endpoints, dict) else None
    public_key = document.get("publicKey")
    if isinstance(public_key, dict):
        public_key = public_key.get("publicKeyPem")
    return {
        "inbox": document.get("inbox"),
        "sharedInbox": shared_inbox or document.get("sharedInbox"),
        "publicKey": public_key,
    }


class RemoteActorDirectory(MemoryActorDirectory):
    """
    Actor records filled from remote actor documents.

    Unknown ids are fetched as the instance actor. A failed fetch still
    leaves a stub, which resolves to no inbox.
    """

    def __init__(self, fetcher):
        super().__init__()
        self.fetcher = fetcher

    async def _assert_one(self, id: str) -> None:
        try:
            document = await self.fetcher.get(SYSTEM_IDENTITY, id)
        except FederationError as e:
            logger.warning(f"Could not fetch actor {id}: {e}")
            self._records.setdefault(id, {})
            return

        if not isinstance(document, dict):
            logger.warning(f"Actor {id} did not return a JSON object")
            self._records.setdefault(id, {})
            return

        self.add(id, **actor_record(document))

    async def assert_actors(self, ids: Iterable[Any]) -> None:
        missing: List[str] = []
        for id in ids:
            id = str(id)
            if id not in self._records and id not in missing:
                missing.append(id)
        if missing:
            await asyncio.gather(*(self._assert_one(id) for id in missing))
