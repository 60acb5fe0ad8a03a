import pytest
from bson import ObjectId

from portal.repositories.message_repository import MessageRepository
from portal.routers.inbox import get_mention_service
from portal.services import mention_service as mention_module
from portal.services.mention_service import display_name, is_mention_of
from tests.conftest import ADMIN, MEMBER, OTHER, OUTSIDER, auth, make_channel


@pytest.fixture
async def general(client, workspace):
    return await make_channel(client, workspace["org_id"], workspace["category_id"], "general")


async def _post(client, channel_id, user_id, content, mentions=()):
    response = await client.post(
        f"/channels/{channel_id}/messages",
        json={"content": content, "mentions": list(mentions)},
        headers=auth(user_id),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_mention_detection():
    direct = {"user_id": ADMIN, "mentions": ["U1"]}
    everyone = {"user_id": ADMIN, "mentions": ["everyone"]}

    assert is_mention_of(direct, "U1")
    assert not is_mention_of(direct, "U2")
    assert is_mention_of(everyone, "U2")
    assert is_mention_of(everyone, ADMIN)


def test_display_name_falls_back_to_unknown():
    assert display_name({"first_name": "Ada", "last_name": "Lovelace"}) == "Ada Lovelace"
    assert display_name({"first_name": None, "last_name": None}) == "Unknown"
    assert display_name(None) == "Unknown"


async def test_recent_mentions_are_enriched(client, workspace, general):
    await client.put("/users/me", headers=auth(MEMBER, given_name="Mia", family_name="Member"))
    await _post(client, general["_id"], MEMBER, "hello @other", mentions=[OTHER])

    response = await client.get(f"/organizations/{workspace['org_id']}/inbox/recent", headers=auth(OTHER))

    [item] = response.json()["items"]
    assert item["content"] == "hello @other"
    assert item["channel_name"] == "general"
    assert item["category_name"] == "General"
    assert item["sender"] == {"first_name": "Mia", "last_name": "Member", "image_url": None}
    assert item["is_read"] is False
    assert item["everyone"] is False


async def test_everyone_mentions_every_member_including_the_author(client, workspace, general):
    await _post(client, general["_id"], ADMIN, "standup", mentions=["everyone"])
    org_id = workspace["org_id"]

    for user_id in (ADMIN, MEMBER, OTHER):
        counts = (await client.get(f"/organizations/{org_id}/inbox/unread-counts", headers=auth(user_id))).json()
        assert counts == {"mentions": 1, "direct_messages": 0}


async def test_mentions_of_non_members_are_dropped(client, general):
    message = await _post(client, general["_id"], ADMIN, "ping", mentions=[OUTSIDER, MEMBER, MEMBER])

    assert message["mentions"] == [MEMBER]


async def test_recent_mentions_are_limited_to_three_newest(client, workspace, general):
    for index in range(5):
        await _post(client, general["_id"], ADMIN, f"ping {index}", mentions=[MEMBER])

    items = (await client.get(f"/organizations/{workspace['org_id']}/inbox/recent", headers=auth(MEMBER))).json()["items"]

    assert [i["content"] for i in items] == ["ping 4", "ping 3", "ping 2"]


async def test_muted_channels_are_skipped(client, workspace, general):
    await _post(client, general["_id"], ADMIN, "ping", mentions=[MEMBER])
    await client.put(f"/channels/{general['_id']}/mute", headers=auth(MEMBER))

    items = (await client.get(f"/organizations/{workspace['org_id']}/inbox/mentions", headers=auth(MEMBER))).json()["items"]

    assert items == []


async def test_inaccessible_private_channels_are_skipped(client, db, workspace):
    secret = await make_channel(client, workspace["org_id"], workspace["category_id"], "secret", is_private=True)
    # written directly: the mention could only get there before access was revoked
    await MessageRepository(db).save_message(ADMIN, "psst", channel_id=ObjectId(secret["_id"]), mentions=[MEMBER])

    count = (await client.get(f"/organizations/{workspace['org_id']}/inbox/unread-mention-count", headers=auth(MEMBER))).json()

    assert count == {"count": 0}


async def test_non_members_get_empty_results(client, workspace, general):
    await _post(client, general["_id"], ADMIN, "ping", mentions=["everyone"])
    org_id = workspace["org_id"]

    assert (await client.get(f"/organizations/{org_id}/inbox/recent", headers=auth(OUTSIDER))).json() == {"items": []}
    assert (await client.get(f"/organizations/{org_id}/inbox/unread-counts")).json() == {"mentions": 0, "direct_messages": 0}
    assert (await client.post(f"/organizations/{org_id}/inbox/mark-all-read", headers=auth(OUTSIDER))).json() == {"marked": 0}
    assert (await client.get(f"/organizations/{org_id}/inbox/summary", headers=auth(OUTSIDER))).json() == {"summary": None}


async def test_mark_all_read_then_unread_only(client, workspace, general):
    org_id = workspace["org_id"]
    await _post(client, general["_id"], ADMIN, "first", mentions=[MEMBER])
    await _post(client, general["_id"], ADMIN, "second", mentions=[MEMBER])

    assert (await client.post(f"/organizations/{org_id}/inbox/mark-all-read", headers=auth(MEMBER))).json() == {"marked": 2}
    assert (await client.post(f"/organizations/{org_id}/inbox/mark-all-read", headers=auth(MEMBER))).json() == {"marked": 0}

    await _post(client, general["_id"], ADMIN, "third", mentions=[MEMBER])
    unread = (await client.get(f"/organizations/{org_id}/inbox/mentions", params={"unread_only": "true"}, headers=auth(MEMBER))).json()["items"]
    everything = (await client.get(f"/organizations/{org_id}/inbox/mentions", headers=auth(MEMBER))).json()["items"]

    assert [m["content"] for m in unread] == ["third"]
    assert [(m["content"], m["is_read"]) for m in everything] == [("third", False), ("second", True), ("first", True)]


async def test_mark_single_mention_read_is_idempotent(client, general):
    message = await _post(client, general["_id"], ADMIN, "ping", mentions=[MEMBER])

    first = await client.post(f"/mentions/{message['_id']}/read", headers=auth(MEMBER))
    second = await client.post(f"/mentions/{message['_id']}/read", headers=auth(MEMBER))

    assert first.json() == {"read": True, "already_read": False}
    assert second.json() == {"read": True, "already_read": True}
    assert (await client.post(f"/mentions/{ObjectId()}/read", headers=auth(MEMBER))).status_code == 404


async def test_clear_inbox_watermark_is_inclusive(db, workspace, general, monkeypatch):
    service = get_mention_service(db)
    repo = MessageRepository(db)
    channel_id = ObjectId(general["_id"])
    cleared_at = 1_700_000_000_000
    monkeypatch.setattr(mention_module, "now_ms", lambda: cleared_at)

    assert await service.clear_inbox(workspace["org_id"], MEMBER) == {"cleared_at": cleared_at}

    await repo.save_message(ADMIN, "before", channel_id=channel_id, mentions=[MEMBER], created_at=cleared_at - 1)
    await repo.save_message(ADMIN, "at", channel_id=channel_id, mentions=[MEMBER], created_at=cleared_at)
    await repo.save_message(ADMIN, "after", channel_id=channel_id, mentions=[MEMBER], created_at=cleared_at + 1)

    unread = await service.all_mentions(workspace["org_id"], MEMBER, unread_only=True)
    assert [m["content"] for m in unread] == ["after"]
    assert await service.unread_mention_count(workspace["org_id"], MEMBER) == 1


async def test_clear_inbox_for_non_member_is_a_no_op(db, workspace):
    service = get_mention_service(db)

    assert await service.clear_inbox(workspace["org_id"], OUTSIDER) == {"cleared_at": None}
    assert await db["inbox_cleared_at"].count_documents({}) == 0


async def test_inbox_summary_combines_mentions_and_dms(client, workspace, general):
    await client.put("/users/me", headers=auth(ADMIN, given_name="Ada", family_name="Admin"))
    await _post(client, general["_id"], ADMIN, "review please", mentions=[MEMBER])
    conversation = (await client.post("/conversations", json={"other_user_id": MEMBER}, headers=auth(ADMIN))).json()
    await client.post(f"/conversations/{conversation['_id']}/messages", json={"content": "got a minute?"}, headers=auth(ADMIN))

    summary = (await client.get(f"/organizations/{workspace['org_id']}/inbox/summary", headers=auth(MEMBER))).json()["summary"]

    assert summary["total_mentions"] == 1
    assert summary["total_dms"] == 1
    assert summary["mentions"][0] == {
        "type": "mention",
        "author": "Ada Admin",
        "content": "review please",
        "channel_name": "general",
        "created_at": summary["mentions"][0]["created_at"],
    }
    assert summary["dms"][0]["author"] == "Ada Admin"
    assert summary["dms"][0]["unread_count"] == 1


async def test_mentions_outside_the_recent_window(db, workspace, general):
    service = get_mention_service(db)
    repo = MessageRepository(db)
    channel_id = ObjectId(general["_id"])
    org_id = workspace["org_id"]
    base = 1_700_000_000_000
    await repo.save_message(ADMIN, "old ping", channel_id=channel_id, mentions=[MEMBER], created_at=base)
    for index in range(50):
        await repo.save_message(ADMIN, f"chatter {index}", channel_id=channel_id, created_at=base + 1 + index)

    assert await service.unread_mention_count(org_id, MEMBER) == 0
    assert [m["content"] for m in await service.all_mentions(org_id, MEMBER)] == ["old ping"]
    assert await service.mark_all_mentions_read(org_id, MEMBER) == {"marked": 0}
    [still_unread] = await service.all_mentions(org_id, MEMBER, unread_only=True)
    assert still_unread["is_read"] is False


async def test_deleting_a_message_drops_its_read_receipts(client, db, general):
    message = await _post(client, general["_id"], ADMIN, "ping", mentions=[MEMBER])
    await client.post(f"/mentions/{message['_id']}/read", headers=auth(MEMBER))
    assert await db["mention_read_status"].count_documents({}) == 1

    response = await client.delete(f"/messages/{message['_id']}", headers=auth(ADMIN))

    assert response.status_code == 200
    assert await db["mention_read_status"].count_documents({}) == 0
