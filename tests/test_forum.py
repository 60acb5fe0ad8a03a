import pytest
from bson import ObjectId

from tests.conftest import ADMIN, MEMBER, OTHER, OUTSIDER, auth, make_channel


@pytest.fixture
async def forum(client, workspace):
    return await make_channel(client, workspace["org_id"], workspace["category_id"], "questions", channel_type="forum")


async def _create_post(client, channel_id, user_id, title, content=""):
    response = await client.post(f"/channels/{channel_id}/posts", json={"title": title, "content": content}, headers=auth(user_id))
    assert response.status_code == 201, response.text
    return response.json()


async def _comment(client, post_id, user_id, content):
    response = await client.post(f"/posts/{post_id}/comments", json={"content": content}, headers=auth(user_id))
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_post_and_read_it_back(client, forum):
    await client.put("/users/me", headers=auth(MEMBER, given_name="Mia", family_name="Member"))

    post = await _create_post(client, forum["_id"], MEMBER, "  How do I deploy? ", "details")

    assert post["title"] == "How do I deploy?"
    assert (post["status"], post["comment_count"], post["is_pinned"]) == ("open", 0, False)

    body = (await client.get(f"/posts/{post['_id']}", headers=auth(MEMBER))).json()["post"]
    assert body["author_name"] == "Mia Member"
    assert body["is_own"] is True
    assert body["is_admin"] is False


async def test_posts_require_a_forum_channel(client, workspace):
    chat = await make_channel(client, workspace["org_id"], workspace["category_id"], "general")

    response = await client.post(f"/channels/{chat['_id']}/posts", json={"title": "Nope"}, headers=auth(MEMBER))

    assert response.status_code == 400
    assert response.json()["detail"] == "Channel is not a forum"


async def test_read_only_forum_accepts_only_admins(client, workspace):
    announcements = await make_channel(
        client, workspace["org_id"], workspace["category_id"], "announcements", channel_type="forum", permissions="readOnly"
    )

    response = await client.post(f"/channels/{announcements['_id']}/posts", json={"title": "Hi"}, headers=auth(MEMBER))
    assert response.status_code == 403
    assert response.json()["detail"] == "This channel is read-only"
    await _create_post(client, announcements["_id"], ADMIN, "Release notes")


async def test_private_forum_is_quiet_for_outsiders(client, workspace):
    secret = await make_channel(
        client, workspace["org_id"], workspace["category_id"], "staff", channel_type="forum", is_private=True
    )
    post = await _create_post(client, secret["_id"], ADMIN, "Budget")

    assert (await client.get(f"/channels/{secret['_id']}/posts", headers=auth(OTHER))).json() == {"items": []}
    assert (await client.get(f"/posts/{post['_id']}", headers=auth(OUTSIDER))).json() == {"post": None}
    assert (await client.get(f"/posts/{post['_id']}/comments", headers=auth(OTHER))).json() == {"items": [], "next_cursor": None}
    response = await client.post(f"/posts/{post['_id']}/comments", json={"content": "me too"}, headers=auth(OTHER))
    assert response.status_code == 403


async def test_pinned_posts_come_first_and_status_filters(client, forum):
    first = await _create_post(client, forum["_id"], MEMBER, "first")
    await _create_post(client, forum["_id"], MEMBER, "second")

    response = await client.post(f"/posts/{first['_id']}/pin/toggle", headers=auth(MEMBER))
    assert response.status_code == 403
    assert (await client.post(f"/posts/{first['_id']}/pin/toggle", headers=auth(ADMIN))).json() == {"is_pinned": True}

    items = (await client.get(f"/channels/{forum['_id']}/posts", headers=auth(OTHER))).json()["items"]
    assert [p["title"] for p in items] == ["first", "second"]

    await client.put(f"/posts/{first['_id']}/status", json={"status": "closed"}, headers=auth(MEMBER))
    closed = (await client.get(f"/channels/{forum['_id']}/posts", params={"status": "closed"}, headers=auth(OTHER))).json()["items"]
    assert [p["title"] for p in closed] == ["first"]


async def test_only_author_or_admin_can_edit(client, forum):
    post = await _create_post(client, forum["_id"], MEMBER, "draft")

    response = await client.patch(f"/posts/{post['_id']}", json={"title": "hijacked"}, headers=auth(OTHER))
    assert response.status_code == 403
    assert response.json()["detail"] == "Not authorized to edit this post"

    edited = (await client.patch(f"/posts/{post['_id']}", json={"content": "final"}, headers=auth(MEMBER))).json()
    assert (edited["title"], edited["content"]) == ("draft", "final")
    assert (await client.patch(f"/posts/{post['_id']}", json={"title": "by admin"}, headers=auth(ADMIN))).status_code == 200


async def test_comments_bump_activity_and_stay_out_of_the_channel_timeline(client, forum):
    post = await _create_post(client, forum["_id"], MEMBER, "question")
    first = await _comment(client, post["_id"], OTHER, "try this")
    await _comment(client, post["_id"], ADMIN, "or that")

    comments = (await client.get(f"/posts/{post['_id']}/comments", headers=auth(MEMBER))).json()["items"]
    assert [c["content"] for c in comments] == ["try this", "or that"]

    body = (await client.get(f"/posts/{post['_id']}", headers=auth(MEMBER))).json()["post"]
    assert body["comment_count"] == 2
    assert body["last_activity_at"] >= first["created_at"]
    assert (await client.get(f"/channels/{forum['_id']}/messages", headers=auth(MEMBER))).json()["items"] == []


async def test_mark_solved_toggles_and_status_change_clears_answer(client, forum):
    post = await _create_post(client, forum["_id"], MEMBER, "question")
    answer = await _comment(client, post["_id"], OTHER, "answer")
    other_post = await _create_post(client, forum["_id"], MEMBER, "unrelated")
    stray = await _comment(client, other_post["_id"], OTHER, "stray")

    solved = (await client.post(f"/posts/{post['_id']}/solved", json={"comment_id": answer["_id"]}, headers=auth(MEMBER))).json()
    assert (solved["status"], solved["solved_comment_id"]) == ("solved", answer["_id"])

    unsolved = (await client.post(f"/posts/{post['_id']}/solved", json={"comment_id": answer["_id"]}, headers=auth(MEMBER))).json()
    assert (unsolved["status"], unsolved["solved_comment_id"]) == ("open", None)

    response = await client.post(f"/posts/{post['_id']}/solved", json={"comment_id": stray["_id"]}, headers=auth(MEMBER))
    assert response.status_code == 404
    assert response.json()["detail"] == "Comment not found on this post"

    await client.post(f"/posts/{post['_id']}/solved", json={"comment_id": answer["_id"]}, headers=auth(ADMIN))
    reopened = (await client.put(f"/posts/{post['_id']}/status", json={"status": "closed"}, headers=auth(MEMBER))).json()
    assert (reopened["status"], reopened["solved_comment_id"]) == ("closed", None)


async def test_delete_post_removes_comments_and_their_bookmarks(client, db, forum):
    post = await _create_post(client, forum["_id"], MEMBER, "temporary")
    comment = await _comment(client, post["_id"], OTHER, "noted")
    await client.put(f"/messages/{comment['_id']}/save", headers=auth(OTHER))

    assert (await client.delete(f"/posts/{post['_id']}", headers=auth(OTHER))).status_code == 403
    response = await client.delete(f"/posts/{post['_id']}", headers=auth(MEMBER))

    assert response.json() == {"success": True, "comments_removed": 1}
    assert await db["messages"].count_documents({"forum_post_id": ObjectId(post["_id"])}) == 0
    assert await db["saved_messages"].count_documents({}) == 0
    assert (await client.get(f"/posts/{post['_id']}", headers=auth(MEMBER))).json() == {"post": None}


async def test_deleting_a_forum_channel_cascades_posts_and_comments(client, db, forum):
    post = await _create_post(client, forum["_id"], MEMBER, "soon gone")
    await _comment(client, post["_id"], OTHER, "bye")

    response = await client.delete(f"/channels/{forum['_id']}", headers=auth(ADMIN))

    removed = response.json()["removed"]
    assert removed["forum_posts"] == 1
    assert removed["forum_comments"] == 1
    assert await db["messages"].count_documents({}) == 0
