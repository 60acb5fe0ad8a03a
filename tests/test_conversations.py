from tests.conftest import ADMIN, MEMBER, OTHER, auth


async def _open(client, user_id, other_user_id):
    response = await client.post("/conversations", json={"other_user_id": other_user_id}, headers=auth(user_id))
    assert response.status_code == 200, response.text
    return response.json()


async def test_conversation_is_shared_by_both_participants(client):
    first = await _open(client, ADMIN, MEMBER)
    second = await _open(client, MEMBER, ADMIN)

    assert first["_id"] == second["_id"]
    assert (first["participant_1_id"], first["participant_2_id"]) == (ADMIN, MEMBER)


async def test_cannot_talk_to_yourself(client):
    response = await client.post("/conversations", json={"other_user_id": ADMIN}, headers=auth(ADMIN))

    assert response.status_code == 400


async def test_unread_dm_count_follows_read_markers(client):
    conversation = await _open(client, ADMIN, MEMBER)
    await _open(client, OTHER, MEMBER)

    assert (await client.get("/inbox/unread-dm-count", headers=auth(MEMBER))).json() == {"count": 0}

    await client.post(f"/conversations/{conversation['_id']}/messages", json={"content": "hi"}, headers=auth(ADMIN))
    assert (await client.get("/inbox/unread-dm-count", headers=auth(MEMBER))).json() == {"count": 1}
    assert (await client.get("/inbox/unread-dm-count", headers=auth(ADMIN))).json() == {"count": 0}

    await client.post(f"/conversations/{conversation['_id']}/read", headers=auth(MEMBER))
    assert (await client.get("/inbox/unread-dm-count", headers=auth(MEMBER))).json() == {"count": 0}


async def test_list_conversations(client):
    conversation = await _open(client, ADMIN, MEMBER)
    await client.put("/users/me", headers=auth(ADMIN, given_name="Ada"))
    await client.post(f"/conversations/{conversation['_id']}/messages", json={"content": "hello there"}, headers=auth(ADMIN))

    [item] = (await client.get("/conversations", headers=auth(MEMBER))).json()["items"]

    assert item["other_user_id"] == ADMIN
    assert item["other_user"]["first_name"] == "Ada"
    assert item["last_message_preview"] == "hello there"
    assert item["has_unread"] is True
    assert (await client.get("/conversations")).json() == {"items": []}


async def test_only_participants_can_send_or_read(client):
    conversation = await _open(client, ADMIN, MEMBER)
    await client.post(f"/conversations/{conversation['_id']}/messages", json={"content": "private"}, headers=auth(ADMIN))

    response = await client.post(f"/conversations/{conversation['_id']}/messages", json={"content": "me too"}, headers=auth(OTHER))
    assert response.status_code == 403

    history = (await client.get(f"/conversations/{conversation['_id']}/messages", headers=auth(OTHER))).json()
    assert history == {"items": [], "next_cursor": None}
    history = (await client.get(f"/conversations/{conversation['_id']}/messages", headers=auth(MEMBER))).json()
    assert [m["content"] for m in history["items"]] == ["private"]
