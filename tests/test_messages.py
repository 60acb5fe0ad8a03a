from portal.services import message_service as message_module
from portal.utils.clock import now_ms
from tests.conftest import ADMIN, MEMBER, OTHER, OUTSIDER, auth, make_channel


async def test_send_and_page_messages(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    for index in range(5):
        await client.post(f"/channels/{channel['_id']}/messages", json={"content": f"m{index}"}, headers=auth(MEMBER))

    first = (await client.get(f"/channels/{channel['_id']}/messages", params={"limit": 3}, headers=auth(OTHER))).json()
    assert [m["content"] for m in first["items"]] == ["m2", "m3", "m4"]
    assert first["next_cursor"]

    second = (await client.get(f"/channels/{channel['_id']}/messages", params={"limit": 3, "cursor": first["next_cursor"]}, headers=auth(OTHER))).json()
    assert [m["content"] for m in second["items"]] == ["m0", "m1"]
    assert second["next_cursor"] is None


async def test_reading_inaccessible_channel_is_quiet(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "secret", is_private=True)
    await client.post(f"/channels/{channel['_id']}/messages", json={"content": "classified"}, headers=auth(ADMIN))

    for user_id in (OTHER, OUTSIDER):
        response = await client.get(f"/channels/{channel['_id']}/messages", headers=auth(user_id))
        assert response.json() == {"items": [], "next_cursor": None}


async def test_posting_rules(client, workspace):
    org_id = workspace["org_id"]
    news = await make_channel(client, org_id, workspace["category_id"], "news", permissions="readOnly")
    secret = await make_channel(client, org_id, workspace["category_id"], "secret", is_private=True)

    response = await client.post(f"/channels/{news['_id']}/messages", json={"content": "hi"}, headers=auth(MEMBER))
    assert response.status_code == 403
    response = await client.post(f"/channels/{news['_id']}/messages", json={"content": "hi"}, headers=auth(ADMIN))
    assert response.status_code == 201

    response = await client.post(f"/channels/{secret['_id']}/messages", json={"content": "hi"}, headers=auth(MEMBER))
    assert response.status_code == 403
    response = await client.post(f"/channels/{news['_id']}/messages", json={"content": "   "}, headers=auth(ADMIN))
    assert response.status_code == 400
    response = await client.post(f"/channels/{news['_id']}/messages", json={"content": "hi"}, headers=auth(OUTSIDER))
    assert response.json()["detail"] == "Not a member of this organization"


async def test_only_owner_or_admin_can_edit_and_delete(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    message = (await client.post(f"/channels/{channel['_id']}/messages", json={"content": "draft"}, headers=auth(MEMBER))).json()

    response = await client.patch(f"/messages/{message['_id']}", json={"content": "hijacked"}, headers=auth(OTHER))
    assert response.status_code == 403

    response = await client.patch(f"/messages/{message['_id']}", json={"content": "final"}, headers=auth(MEMBER))
    assert response.json() == {"_id": message["_id"], "content": "final"}

    response = await client.delete(f"/messages/{message['_id']}", headers=auth(ADMIN))
    assert response.json() == {"success": True}
    assert (await client.get(f"/channels/{channel['_id']}/messages", headers=auth(MEMBER))).json()["items"] == []


async def test_typing_indicators_expire(client, workspace, monkeypatch):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    url = f"/channels/{channel['_id']}/typing"

    await client.put(url, headers=auth(MEMBER))
    await client.put(url, headers=auth(OTHER))
    assert (await client.get(url, headers=auth(MEMBER))).json() == {"user_ids": [OTHER]}

    later = now_ms() + message_module.TYPING_EXPIRY_MS + 1
    monkeypatch.setattr(message_module, "now_ms", lambda: later)
    assert (await client.get(url, headers=auth(MEMBER))).json() == {"user_ids": []}


async def test_sending_clears_typing(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    url = f"/channels/{channel['_id']}/typing"

    await client.put(url, headers=auth(MEMBER))
    await client.post(f"/channels/{channel['_id']}/messages", json={"content": "done"}, headers=auth(MEMBER))

    assert (await client.get(url, headers=auth(OTHER))).json() == {"user_ids": []}
