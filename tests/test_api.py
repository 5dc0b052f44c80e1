import pytest
from fastapi.testclient import TestClient

import main
from stores import MemoryStorage
from view_cache import SnapshotCache
from resolution import load_snapshot
from conftest import OWNER_ID

OWNER = {"X-Account-Id": OWNER_ID}


@pytest.fixture
def api_storage():
    return MemoryStorage()


@pytest.fixture
def client(api_storage):
    cache = SnapshotCache(lambda owner_id: load_snapshot(api_storage, owner_id), ttl_seconds=0)
    main.app.dependency_overrides[main.get_storage] = lambda: api_storage
    main.app.dependency_overrides[main.get_snapshot_cache] = lambda: cache
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def account(client):
    res = client.post("/api/account", headers=OWNER)
    assert res.status_code == 200
    client.patch("/api/card/fields", headers=OWNER, json={"changes": {
        "personal.name": "Christine Nguyen",
        "personal.title": "Interior Designer",
        "contact.phone": "+84 123 456 789",
        "contact.email": "christine@example.com",
    }})
    return {g["id"]: g for g in res.json()["groups"]}


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    health = client.get("/health").json()
    assert health["backend"] == "running"


def test_catalog(client):
    data = client.get("/api/catalog").json()
    assert data["version"] == 3
    assert len(data["fields"]) == 28
    assert data["controllable"] == ["personal.title", "personal.businessName"]
    assert "contact.phone" in data["defaultVisible"]


def test_account_requires_header(client):
    assert client.post("/api/account").status_code == 401
    assert client.get("/api/groups").status_code == 401


def test_account_provisions_default_groups(account):
    assert set(account) == {"public", "private", "business", "personal"}
    public = account["public"]
    assert public["isDefault"] is True
    assert public["sharePath"] == f"/{OWNER_ID}/{public['shareCode']}"


def test_public_and_private_views(client, account):
    client.put("/api/groups/public/fields", headers=OWNER,
               json={"fields": ["personal.name", "personal.title"]})
    client.put("/api/groups/private/fields", headers=OWNER,
               json={"fields": ["personal.name", "personal.title", "contact.phone", "contact.email"]})

    public = client.get(f"/api/p/{OWNER_ID}").json()
    assert public["groupId"] == "public"
    assert public["visibleFields"] == ["personal.name", "personal.title"]
    assert public["card"]["contact"]["phone"] == ""

    code = account["private"]["shareCode"]
    private = client.get(f"/api/p/{OWNER_ID}/{code}").json()
    assert private["groupId"] == "private"
    assert private["card"]["contact"]["phone"] == "+84 123 456 789"

    garbage = client.get(f"/api/p/{OWNER_ID}/NOTACODE").json()
    assert garbage == public


def test_owner_preview_bypasses_redaction(client, account):
    client.put("/api/groups/public/fields", headers=OWNER, json={"fields": []})
    data = client.get("/api/card/view", headers=OWNER).json()
    assert data["isOwnerView"] is True
    assert data["card"]["contact"]["email"] == "christine@example.com"


def test_owner_preview_as_group(client, account):
    client.put("/api/groups/private/fields", headers=OWNER, json={"fields": ["personal.name"]})
    data = client.get("/api/card/view", headers=OWNER, params={"group": "private"}).json()
    assert data["isOwnerView"] is False
    assert data["groupId"] == "private"
    assert data["card"]["contact"]["email"] == ""
    assert client.get("/api/card/view").status_code == 401


@pytest.mark.parametrize("url", [
    f"/api/p/{OWNER_ID}",
    f"/api/p/{OWNER_ID}/public",
    f"/api/view?path=/{OWNER_ID}",
])
def test_identity_header_ignored_on_public_routes(client, account, url):
    client.put("/api/groups/public/fields", headers=OWNER, json={"fields": ["personal.name"]})
    anonymous = client.get(url).json()
    claimed = client.get(url, headers=OWNER).json()
    assert claimed == anonymous
    assert claimed["isOwnerView"] is False
    assert claimed["card"]["contact"]["email"] == ""


def test_unknown_owner_is_404(client):
    res = client.get("/api/p/nobody")
    assert res.status_code == 404
    assert "nobody" in res.json()["detail"]


def test_view_by_path(client, account):
    code = account["business"]["shareCode"]
    data = client.get("/api/view", params={"path": f"/{OWNER_ID}/{code}/contact"}).json()
    assert data["groupId"] == "business"
    assert data["screen"] == "contact"

    legacy = client.get("/api/view", params={"path": f"/{OWNER_ID}/biz"}).json()
    assert legacy["groupId"] == "business"

    assert client.get("/api/view", params={"path": "/"}).status_code == 404


def test_group_lifecycle(client, account):
    created = client.post("/api/groups", headers=OWNER, json={"label": "Clients", "shareCode": "CLIENT"})
    assert created.status_code == 200
    group = created.json()
    assert group["shareCode"] == "CLIENT"

    updated = client.put(f"/api/groups/{group['id']}", headers=OWNER, json={"label": "VIP"})
    assert updated.json()["label"] == "VIP"

    client.put(f"/api/groups/{group['id']}/fields", headers=OWNER, json={"fields": ["personal.name"]})
    listed = {g["id"]: g for g in client.get("/api/groups", headers=OWNER).json()}
    assert listed[group["id"]]["visibleFields"] == ["personal.name"]
    assert listed["public"]["visibleFields"] == [
        "personal.name", "personal.title", "personal.businessName",
        "personal.profileImage", "contact.phone", "contact.email",
    ]

    assert client.delete(f"/api/groups/{group['id']}", headers=OWNER).status_code == 200
    assert client.get(f"/api/groups/{group['id']}/fields", headers=OWNER).status_code == 404


def test_group_validation_errors(client, account):
    assert client.post("/api/groups", headers=OWNER,
                       json={"label": "Bad", "shareCode": "bad"}).status_code == 400
    taken = account["private"]["shareCode"]
    assert client.post("/api/groups", headers=OWNER,
                       json={"label": "Dup", "shareCode": taken}).status_code == 400
    assert client.put("/api/groups/public", headers=OWNER, json={"isDefault": False}).status_code == 400
    assert client.delete("/api/groups/public", headers=OWNER).status_code == 400
    assert client.delete("/api/groups/custom-missing", headers=OWNER).status_code == 404


def test_visible_fields_validation(client, account):
    res = client.put("/api/groups/private/fields", headers=OWNER, json={"fields": ["personal.shoeSize"]})
    assert res.status_code == 400
    res = client.put("/api/groups/custom-missing/fields", headers=OWNER, json={"fields": []})
    assert res.status_code == 404


def test_toggle_field(client, account):
    res = client.post("/api/groups/private/fields/toggle", headers=OWNER, json={"field": "contact.phone"})
    assert "contact.phone" not in res.json()["visibleFields"]


def test_contact_link_attribution(client, account):
    res = client.post("/api/contacts", headers=OWNER, json={"group": "private", "name": "Alice"})
    contact = res.json()
    code = account["private"]["shareCode"]
    assert contact["sharePath"] == f"/{OWNER_ID}/{code}/{contact['contactCode']}"

    data = client.get(f"/api/p/{OWNER_ID}/{code}/{contact['contactCode']}").json()
    assert data["contactId"] == contact["id"]
    assert data["groupId"] == "private"

    listed = client.get("/api/contacts", headers=OWNER, params={"group": "private"}).json()
    assert [c["id"] for c in listed] == [contact["id"]]

    groups = {g["id"]: g for g in client.get("/api/groups", headers=OWNER).json()}
    assert groups["private"]["contactCount"] == 1
    assert groups["public"]["contactCount"] == 0

    moved = client.put(f"/api/contacts/{contact['id']}", headers=OWNER, json={"group": "business"})
    assert moved.json()["group"] == "business"

    assert client.delete(f"/api/contacts/{contact['id']}", headers=OWNER).status_code == 200
    assert client.delete(f"/api/contacts/{contact['id']}", headers=OWNER).status_code == 404


def test_contact_in_unknown_group(client, account):
    res = client.post("/api/contacts", headers=OWNER, json={"group": "custom-missing", "name": "x"})
    assert res.status_code == 404


def test_delegate_permissions_flow(client, account):
    rep = {"X-Account-Id": "rep-1"}
    client.post("/api/account", headers=rep)
    client.patch("/api/card/fields", headers=rep, json={"changes": {"personal.title": "Rep"}})
    client.post("/api/delegates", headers=OWNER,
                json={"delegateId": "rep-1", "name": "An", "role": "Sales Manager"})

    res = client.put("/api/delegates/permissions", headers=OWNER, json={
        "delegateIds": ["rep-1"],
        "permissions": {"personal.title": "readonly"},
    })
    assert res.status_code == 200
    assert res.json()["repopulation"][0]["success"] is True

    card = client.get("/api/card", headers=rep).json()
    assert card["card"]["personal"]["title"] == "Sales Manager"
    assert card["editable"]["personal.title"] is False

    res = client.patch("/api/card/fields", headers=rep, json={"changes": {"personal.title": "CEO"}})
    assert res.status_code == 403


def test_permissions_validation(client, account):
    client.post("/api/delegates", headers=OWNER, json={"delegateId": "rep-1"})
    res = client.put("/api/delegates/permissions", headers=OWNER, json={
        "applyTo": "all",
        "permissions": {"contact.phone": "readonly"},
    })
    assert res.status_code == 400
    res = client.put("/api/delegates/permissions", headers=OWNER, json={
        "applyTo": "everyone",
        "permissions": {"personal.title": "readonly"},
    })
    assert res.status_code == 400
    res = client.put("/api/delegates/permissions", headers=OWNER, json={
        "delegateIds": ["ghost"],
        "permissions": {"personal.title": "readonly"},
    })
    assert res.status_code == 404


def test_permissions_report_missing_profile(client, account):
    client.post("/api/delegates", headers=OWNER, json={"delegateId": "rep-9", "role": "Agent"})
    res = client.put("/api/delegates/permissions", headers=OWNER, json={
        "applyTo": "all",
        "permissions": {"personal.title": "readonly"},
    })
    assert res.status_code == 200
    assert res.json()["repopulation"] == [
        {"delegateId": "rep-9", "fields": ["personal.title"], "success": False, "error": "profile not found"},
    ]


def test_delegate_crud(client, account):
    client.post("/api/delegates", headers=OWNER, json={"delegateId": "rep-1", "name": "An"})
    updated = client.put("/api/delegates/rep-1", headers=OWNER, json={"department": "Sales"})
    assert updated.json()["department"] == "Sales"
    assert [d["delegateId"] for d in client.get("/api/delegates", headers=OWNER, params={"q": "sales"}).json()] == ["rep-1"]
    assert client.delete("/api/delegates/rep-1", headers=OWNER).status_code == 200
    assert client.delete("/api/delegates/rep-1", headers=OWNER).status_code == 404


def test_public_view_cached_until_edit(api_storage):
    cache = SnapshotCache(lambda owner_id: load_snapshot(api_storage, owner_id), ttl_seconds=300)
    main.app.dependency_overrides[main.get_storage] = lambda: api_storage
    main.app.dependency_overrides[main.get_snapshot_cache] = lambda: cache
    try:
        with TestClient(main.app) as c:
            c.post("/api/account", headers=OWNER)
            c.put("/api/groups/public/fields", headers=OWNER, json={"fields": ["personal.name"]})
            assert c.get(f"/api/p/{OWNER_ID}").json()["visibleFields"] == ["personal.name"]

            # a write that bypasses the API is not seen until the entry is invalidated
            api_storage.set_visible_fields(OWNER_ID, "public", ["personal.bio"])
            assert c.get(f"/api/p/{OWNER_ID}").json()["visibleFields"] == ["personal.name"]

            c.put("/api/groups/public/fields", headers=OWNER, json={"fields": ["personal.title"]})
            assert c.get(f"/api/p/{OWNER_ID}").json()["visibleFields"] == ["personal.title"]
    finally:
        main.app.dependency_overrides.clear()


def test_delegate_of_another_owner_rejected(client, account):
    rep = {"X-Account-Id": "rep-1"}
    other = {"X-Account-Id": "other-owner"}
    client.post("/api/account", headers=rep)
    client.post("/api/account", headers=other)
    client.patch("/api/card/fields", headers=rep, json={"changes": {"personal.title": "Rep"}})

    assert client.post("/api/delegates", headers=OWNER,
                       json={"delegateId": "rep-1", "role": "Sales Manager"}).status_code == 200
    res = client.post("/api/delegates", headers=other, json={"delegateId": "rep-1"})
    assert res.status_code == 400
    assert client.get("/api/delegates", headers=other).json() == []

    client.put("/api/delegates/permissions", headers=OWNER, json={
        "delegateIds": ["rep-1"],
        "permissions": {"personal.title": "readonly"},
    })
    res = client.patch("/api/card/fields", headers=rep, json={"changes": {"personal.title": "CEO"}})
    assert res.status_code == 403
    assert client.get("/api/card", headers=rep).json()["card"]["personal"]["title"] == "Sales Manager"
