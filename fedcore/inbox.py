# fedcore/inbox.py
"""
Delivery target resolution.

Turns a list of recipient actor ids into the set of inbox URIs to POST
to. A shared inbox is preferred over the per-actor inbox, so every
recipient on the same remote instance collapses to one delivery.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional, Set

from .actors import ActorDirectory

logger = logging.getLogger(__name__)


class InboxResolver:
    """Resolves recipient ids to a deduplicated set of inbox URIs."""

    def __init__(self, actors: ActorDirectory):
        self.actors = actors

    async def _inbox_for(self, id: Any) -> Optional[str]:
        fields = await self.actors.get_fields(id, ["inbox", "sharedInbox"])
        inbox = fields.get("sharedInbox") or fields.get("inbox")
        if not inbox:
            logger.debug(f"No inbox for {id}")
        return inbox or None

    async def resolve_inboxes(self, ids: Iterable[Any]) -> Set[str]:
        """
        Return the unique inbox URIs for ids.

        All records are asserted in one batch before any field is read.
        """
        ids = list(ids)
        if not ids:
            return set()

        await self.actors.assert_actors(ids)
        inboxes = await asyncio.gather(*(self._inbox_for(id) for id in ids))
        return {inbox for inbox in inboxes if inbox}
