# fedcore/dispatcher.py
"""
Outbound activity delivery.

send() wraps a payload in the ActivityStreams envelope, resolves the
recipients to inboxes, and POSTs a separately signed copy to each inbox
concurrently. Inbox resolution finishes before the first POST starts.

Failure semantics: the send fails with the first DeliveryError as soon
as any inbox rejects or is unreachable. Deliveries already in flight are
not cancelled; they run to completion in the background and their
outcomes are only logged. A single bad inbox therefore fails a send
that may have reached every other recipient.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Set, Union

from .config import FederationConfig
from .constants import AS_CONTEXT, LD_JSON_MEDIA_TYPE
from .errors import DeliveryError, TransportFailure
from .http import HttpClient
from .inbox import InboxResolver
from .signatures import Signer, serialize_payload

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Delivers activities to remote inboxes.

    Args:
        config: Instance configuration
        signer: Signs each POST as the sending identity
        inboxes: Resolves recipients to inbox URIs
        http: Outbound HTTP client
    """

    def __init__(self, config: FederationConfig, signer: Signer,
                 inboxes: InboxResolver, http: HttpClient):
        self.config = config
        self.signer = signer
        self.inboxes = inboxes
        self.http = http
        # deliveries still running after send() has already failed
        self._background: Set[asyncio.Task] = set()

    def build_envelope(self, identity: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add @context and actor to a payload.

        Fields already present in the payload win over the injected ones.
        """
        return {
            "@context": AS_CONTEXT,
            "actor": self.signer.actor_uri(identity),
            **payload,
        }

    async def _deliver(self, identity: Any, inbox: str, envelope: Dict[str, Any]) -> str:
        signature = await self.signer.sign(identity, inbox, envelope)
        headers = signature.to_headers()
        headers["Content-Type"] = LD_JSON_MEDIA_TYPE

        try:
            response = await self.http.post(inbox, headers=headers, content=serialize_payload(envelope))
        except TransportFailure as e:
            raise DeliveryError(inbox, reason=e.reason) from e

        if not response.ok:
            raise DeliveryError(inbox, status_code=response.status_code)

        logger.debug(f"Delivered to {inbox} ({response.status_code})")
        return inbox

    def _log_late_outcome(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Delivery failed after send was rejected: {error}")

    async def send(self, identity: Any, targets: Union[str, Iterable[str]],
                   payload: Dict[str, Any]) -> Set[str]:
        """
        Deliver payload from identity to targets.

        Args:
            identity: Sending local identity
            targets: One recipient id or a collection of them
            payload: Activity body; its fields override the envelope defaults

        Returns:
            The set of inboxes delivered to

        Raises:
            DeliveryError: the first inbox that failed
        """
        if isinstance(targets, str):
            targets = [targets]
        else:
            targets = list(targets)

        envelope = self.build_envelope(identity, payload)
        inboxes = await self.inboxes.resolve_inboxes(targets)

        if not inboxes:
            logger.debug(f"No inboxes to deliver to for {len(targets)} target(s)")
            return set()

        logger.debug(f"Delivering {envelope.get('type', 'activity')} to {len(inboxes)} inbox(es)")
        tasks = {
            asyncio.ensure_future(self._deliver(identity, inbox, envelope))
            for inbox in inboxes
        }

        pending = tasks
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            failed = [t for t in done if t.exception() is not None]
            if failed:
                for task in pending:
                    self._background.add(task)
                    task.add_done_callback(self._log_late_outcome)
                for task in failed[1:]:
                    logger.warning(f"{task.exception()}")
                error = failed[0].exception()
                logger.warning(f"{error}")
                raise error

        return {task.result() for task in tasks}
