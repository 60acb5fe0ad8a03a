from tests.conftest import ADMIN, MEMBER, OTHER, auth, make_channel


async def test_mute_twice_keeps_one_row(client, db, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")

    first = await client.put(f"/channels/{channel['_id']}/mute", headers=auth(MEMBER))
    second = await client.put(f"/channels/{channel['_id']}/mute", headers=auth(MEMBER))

    assert first.json() == {"muted": True, "already_muted": False}
    assert second.json() == {"muted": True, "already_muted": True}
    assert await db["muted_channels"].count_documents({"user_id": MEMBER}) == 1


async def test_toggle_twice_restores_state(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    url = f"/channels/{channel['_id']}/mute"

    assert (await client.post(f"{url}/toggle", headers=auth(MEMBER))).json() == {"muted": True}
    assert (await client.get(url, headers=auth(MEMBER))).json() == {"muted": True}
    assert (await client.post(f"{url}/toggle", headers=auth(MEMBER))).json() == {"muted": False}
    assert (await client.get(url, headers=auth(MEMBER))).json() == {"muted": False}


async def test_unmute_reports_previous_state(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")
    url = f"/channels/{channel['_id']}/mute"

    assert (await client.delete(url, headers=auth(MEMBER))).json() == {"muted": False, "was_muted": False}
    await client.put(url, headers=auth(MEMBER))
    assert (await client.delete(url, headers=auth(MEMBER))).json() == {"muted": False, "was_muted": True}


async def test_cannot_mute_inaccessible_private_channel(client, workspace):
    channel = await make_channel(client, workspace["org_id"], workspace["category_id"], "secret", is_private=True, member_ids=[MEMBER])

    response = await client.put(f"/channels/{channel['_id']}/mute", headers=auth(OTHER))

    assert response.status_code == 403
    assert (await client.put(f"/channels/{channel['_id']}/mute", headers=auth(MEMBER))).status_code == 200
    assert (await client.put(f"/channels/{channel['_id']}/mute", headers=auth(ADMIN))).status_code == 200


async def test_list_muted_channels_is_scoped_to_workspace(client, workspace):
    org_id = workspace["org_id"]
    general = await make_channel(client, org_id, workspace["category_id"], "general")
    await make_channel(client, org_id, workspace["category_id"], "random")
    await client.put(f"/channels/{general['_id']}/mute", headers=auth(MEMBER))

    response = await client.get(f"/organizations/{org_id}/muted-channels", headers=auth(MEMBER))

    assert response.json() == {"channel_ids": [general["_id"]]}
    assert (await client.get(f"/organizations/{org_id}/muted-channels")).json() == {"channel_ids": []}
