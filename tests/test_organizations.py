from tests.conftest import ADMIN, MEMBER, OUTSIDER, auth


async def test_create_workspace_makes_creator_admin(client):
    await client.put("/users/me", headers=auth(ADMIN, email="ada@example.com"))

    response = await client.post("/organizations", json={"name": "Acme", "slug": "acme"}, headers=auth(ADMIN))
    org_id = response.json()["_id"]

    workspace = (await client.get("/organizations/by-slug/acme", headers=auth(ADMIN))).json()["workspace"]
    assert workspace["role"] == "admin"
    me = (await client.get("/users/me", headers=auth(ADMIN))).json()["user"]
    assert me["primary_workspace_id"] == org_id
    assert me["email"] == "ada@example.com"


async def test_slug_must_be_unique(client):
    await client.post("/organizations", json={"name": "Acme", "slug": "acme"}, headers=auth(ADMIN))

    response = await client.post("/organizations", json={"name": "Acme 2", "slug": "acme"}, headers=auth(MEMBER))

    assert response.status_code == 409
    assert response.json()["detail"] == "Slug already taken"
    assert (await client.get("/organizations/slug-availability/acme")).json() == {"available": False}
    assert (await client.get("/organizations/slug-availability/other")).json() == {"available": True}


async def test_join_public_workspace(client):
    private = (await client.post("/organizations", json={"name": "Closed", "slug": "closed"}, headers=auth(ADMIN))).json()
    public = (await client.post("/organizations", json={"name": "Open", "slug": "open", "is_public": True}, headers=auth(ADMIN))).json()

    response = await client.post(f"/organizations/{private['_id']}/join", headers=auth(MEMBER))
    assert response.status_code == 400
    assert response.json()["detail"] == "Workspace is not public"

    response = await client.post(f"/organizations/{public['_id']}/join", headers=auth(MEMBER))
    assert response.json()["role"] == "member"
    response = await client.post(f"/organizations/{public['_id']}/join", headers=auth(MEMBER))
    assert response.status_code == 409

    listed = (await client.get("/organizations/public", headers=auth(OUTSIDER))).json()["items"]
    assert [(w["slug"], w["member_count"]) for w in listed] == [("open", 2)]


async def test_workspace_reads_are_quiet_for_non_members(client):
    org = (await client.post("/organizations", json={"name": "Acme", "slug": "acme"}, headers=auth(ADMIN))).json()

    assert (await client.get("/organizations/by-slug/acme", headers=auth(OUTSIDER))).json() == {"workspace": None}
    assert (await client.get(f"/organizations/{org['_id']}/members", headers=auth(OUTSIDER))).json() == {"items": []}
    assert (await client.get("/organizations/memberships")).json() == {"items": []}


async def test_admin_manages_roles(client, workspace):
    org_id = workspace["org_id"]

    response = await client.patch(f"/organizations/{org_id}/members/{MEMBER}", json={"role": "admin"}, headers=auth(MEMBER))
    assert response.status_code == 403

    await client.patch(f"/organizations/{org_id}/members/{MEMBER}", json={"role": "admin"}, headers=auth(ADMIN))
    response = await client.post(f"/organizations/{org_id}/categories", json={"name": "Ops"}, headers=auth(MEMBER))
    assert response.status_code == 201

    response = await client.patch(f"/organizations/{org_id}/members/{OUTSIDER}", json={"role": "admin"}, headers=auth(ADMIN))
    assert response.status_code == 404


async def test_primary_workspace_requires_membership(client, workspace):
    response = await client.put("/users/me/primary-workspace", json={"organization_id": workspace["org_id"]}, headers=auth(OUTSIDER))

    assert response.status_code == 403
