# tests/test_federation.py
"""End-to-end tests through the Federation facade."""

import json

import pytest

from fedcore.actors import MemoryActorDirectory
from fedcore.federation import Federation
from fedcore.signatures import InboundRequest

ALICE = "https://remote.example/users/alice"
SHARED = "https://remote.example/inbox"


@pytest.fixture
def actors():
    directory = MemoryActorDirectory()
    directory.add(ALICE, inbox=f"{ALICE}/inbox", sharedInbox=SHARED)
    return directory


@pytest.fixture
async def fed(config, store, actors, http):
    async with Federation(config, store, actors=actors, http=http) as federation:
        yield federation


class TestFederation:
    """Test the wired-up components together."""

    async def test_public_key_document(self, fed, keypair):
        document = await fed.public_key_document(42)
        assert document == {
            "id": "https://forum.example/uid/42#key",
            "owner": "https://forum.example/uid/42",
            "publicKeyPem": keypair.public_key,
        }

    async def test_keys(self, fed, keypair):
        assert await fed.get_public_key(42) == keypair.public_key
        assert await fed.get_private_key("42") == keypair.private_key

    async def test_send_then_verify_as_receiver(self, fed, remote, keypair):
        """A delivered activity verifies when the receiver fetches our key."""
        remote.add(SHARED, status=202, method="POST")
        remote.add("https://forum.example/uid/42", json={
            "id": "https://forum.example/uid/42",
            "publicKey": await fed.public_key_document(42),
        })

        delivered = await fed.send(42, [ALICE], {"type": "Follow", "object": ALICE})
        assert delivered == {SHARED}

        post = remote.requests_to(SHARED, method="POST")[0]
        inbound = InboundRequest(
            method="POST",
            base_path="",
            path="/inbox",
            headers=dict(post.headers),
            body=post.content,
        )
        assert await fed.verify(inbound) is True

    async def test_verify_rejects_when_key_missing(self, fed, remote):
        """A 404 on the keyId makes verification fail quietly."""
        header = await fed.sign(42, "https://forum.example/inbox", {"type": "Like"})
        inbound = InboundRequest(
            method="POST",
            base_path="",
            path="/inbox",
            headers={"host": "forum.example", **header.to_headers()},
        )

        assert await fed.verify(inbound) is False
        assert len(remote.requests_to("https://forum.example/uid/42")) == 1

    async def test_get_uses_shared_cache(self, fed, remote):
        remote.add(ALICE, json={"id": ALICE})

        await fed.get(42, ALICE)
        await fed.get(42, ALICE)

        assert len(remote.requests_to(ALICE)) == 1
        assert fed.cache.has(42, ALICE)

    async def test_resolve_inboxes(self, fed):
        assert await fed.resolve_inboxes([ALICE, ALICE]) == {SHARED}

    async def test_envelope_is_sent_verbatim(self, fed, remote):
        remote.add(SHARED, method="POST")

        await fed.send(42, ALICE, {"type": "Note", "actor": "https://forum.example/uid/42"})

        body = json.loads(remote.requests_to(SHARED)[0].content)
        assert set(body) == {"@context", "actor", "type"}
