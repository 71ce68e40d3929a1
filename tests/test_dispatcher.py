# tests/test_dispatcher.py
"""Tests for signed concurrent delivery."""

import asyncio
import json

import httpx
import pytest

from fedcore.actors import MemoryActorDirectory
from fedcore.constants import AS_CONTEXT, LD_JSON_MEDIA_TYPE
from fedcore.dispatcher import Dispatcher
from fedcore.errors import DeliveryError, InvalidIdentityError
from fedcore.http import HttpClient
from fedcore.inbox import InboxResolver
from fedcore.signatures import InboundRequest, Signer, Verifier

ALICE = "https://remote.example/users/alice"
BOB = "https://remote.example/users/bob"
CAROL = "https://other.example/users/carol"
DAVE = "https://third.example/users/dave"
SHARED = "https://remote.example/inbox"


class StaticKeyResolver:
    def __init__(self, public_key):
        self.public_key = public_key

    async def fetch_public_key(self, key_id):
        return self.public_key


@pytest.fixture
def actors():
    directory = MemoryActorDirectory()
    directory.add(ALICE, inbox=f"{ALICE}/inbox", sharedInbox=SHARED)
    directory.add(BOB, inbox=f"{BOB}/inbox", sharedInbox=SHARED)
    directory.add(CAROL, inbox=f"{CAROL}/inbox")
    directory.add(DAVE, inbox=f"{DAVE}/inbox")
    return directory


@pytest.fixture
def dispatcher(config, keystore, actors, http):
    return Dispatcher(config, Signer(config, keystore), InboxResolver(actors), http)


def inbound_from(request: httpx.Request) -> InboundRequest:
    return InboundRequest(
        method=request.method,
        base_path="",
        path=request.url.path,
        headers=dict(request.headers),
        body=request.content,
    )


class TestEnvelope:
    """Test envelope construction."""

    async def test_defaults(self, dispatcher):
        envelope = dispatcher.build_envelope(42, {"type": "Like"})
        assert envelope == {
            "@context": AS_CONTEXT,
            "actor": "https://forum.example/uid/42",
            "type": "Like",
        }

    async def test_payload_fields_win(self, dispatcher):
        """Explicit payload fields override the injected defaults."""
        envelope = dispatcher.build_envelope(42, {"actor": "X", "@context": ["custom"]})
        assert envelope["actor"] == "X"
        assert envelope["@context"] == ["custom"]


class TestSend:
    """Test Dispatcher.send()."""

    async def test_follow_scenario(self, dispatcher, remote, keypair):
        """Identity 42 follows alice: one signed POST to the shared inbox."""
        remote.add(SHARED, status=202, method="POST")
        payload = {"type": "Follow", "object": ALICE}

        delivered = await dispatcher.send(42, ALICE, payload)

        assert delivered == {SHARED}
        posts = remote.requests_to(SHARED, method="POST")
        assert len(posts) == 1

        post = posts[0]
        body = json.loads(post.content)
        assert body["actor"] == "https://forum.example/uid/42"
        assert body["@context"] == AS_CONTEXT
        assert body["type"] == "Follow"
        assert post.headers["content-type"] == LD_JSON_MEDIA_TYPE
        assert await Verifier(StaticKeyResolver(keypair.public_key)).verify(inbound_from(post))

    async def test_one_post_per_unique_inbox(self, dispatcher, remote):
        for inbox in (SHARED, f"{CAROL}/inbox", f"{DAVE}/inbox"):
            remote.add(inbox, status=200, method="POST")

        delivered = await dispatcher.send(42, [ALICE, BOB, CAROL, DAVE], {"type": "Create"})

        assert delivered == {SHARED, f"{CAROL}/inbox", f"{DAVE}/inbox"}
        assert len(remote.requests) == 3

    async def test_each_inbox_signed_for_its_own_target(self, dispatcher, remote, keypair):
        remote.add(SHARED, method="POST")
        remote.add(f"{CAROL}/inbox", method="POST")

        await dispatcher.send(42, [ALICE, CAROL], {"type": "Create"})

        verifier = Verifier(StaticKeyResolver(keypair.public_key))
        for request in remote.requests:
            assert await verifier.verify(inbound_from(request))

    async def test_no_inboxes(self, dispatcher, remote):
        assert await dispatcher.send(42, ["https://nowhere.example/u/x"], {"type": "Like"}) == set()
        assert remote.requests == []

    async def test_rejection_names_inbox(self, dispatcher, remote):
        remote.add(f"{CAROL}/inbox", status=401, method="POST")

        with pytest.raises(DeliveryError) as exc_info:
            await dispatcher.send(42, CAROL, {"type": "Like"})

        assert exc_info.value.inbox == f"{CAROL}/inbox"
        assert exc_info.value.status_code == 401
        assert f"{CAROL}/inbox" in str(exc_info.value)

    async def test_failure_does_not_abort_siblings(self, dispatcher, remote):
        """The send fails fast but slower deliveries still complete."""
        remote.add(f"{CAROL}/inbox", status=500, method="POST")
        remote.add(f"{DAVE}/inbox", status=202, method="POST", delay=0.05)

        with pytest.raises(DeliveryError) as exc_info:
            await dispatcher.send(42, [CAROL, DAVE], {"type": "Create"})
        assert exc_info.value.inbox == f"{CAROL}/inbox"

        await asyncio.gather(*list(dispatcher._background), return_exceptions=True)
        assert len(remote.requests_to(f"{DAVE}/inbox", method="POST")) == 1
        assert dispatcher._background == set()

    async def test_unreachable_inbox(self, config, keystore, actors):
        def refuse(request):
            raise httpx.ConnectError("connection refused")

        async with HttpClient(transport=httpx.MockTransport(refuse)) as http:
            dispatcher = Dispatcher(config, Signer(config, keystore), InboxResolver(actors), http)
            with pytest.raises(DeliveryError) as exc_info:
                await dispatcher.send(42, CAROL, {"type": "Like"})

        assert exc_info.value.status_code is None
        assert exc_info.value.inbox == f"{CAROL}/inbox"

    async def test_invalid_identity(self, dispatcher, remote):
        with pytest.raises(InvalidIdentityError):
            await dispatcher.send(-1, ALICE, {"type": "Like"})
        assert remote.requests == []
