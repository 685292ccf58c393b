import pytest

from conftest import bearer, login, make_account


@pytest.fixture
def world(client, runtime, admin_token, staff_token):
    store = runtime.store
    origin = store.create_branch("North Hub", "1 North Rd")
    dest = store.create_branch("South Hub", "9 South St")
    owner = make_account(store, "owner@example.com")
    make_account(store, "other@example.com")
    resp = client.post(
        "/api/shipments",
        json={
            "client_id": owner.id,
            "origin_branch_id": origin.id,
            "destination_branch_id": dest.id,
            "service_type": "standard",
            "weight_kg": 1.0,
            "sender_name": "Acme",
            "receiver_name": "Bob",
        },
        headers=bearer(staff_token),
    )
    assert resp.status_code == 201
    return {
        "shipment": resp.json(),
        "owner_token": login(client, "owner@example.com"),
        "other_token": login(client, "other@example.com"),
        "admin_token": admin_token,
        "staff_token": staff_token,
    }


def test_new_shipment_has_tracking_number_and_history(client, world):
    shipment = world["shipment"]
    assert shipment["tracking_number"].startswith("TK")
    assert len(shipment["tracking_number"]) == 12
    assert shipment["status"] == "pending"
    assert shipment["origin_branch_name"] == "North Hub"

    resp = client.get(f"/api/shipments/track/{shipment['tracking_number']}")
    assert resp.status_code == 200
    history = resp.json()["history"]
    assert [h["location"] for h in history] == ["1 North Rd"]


def test_public_tracking_unknown(client):
    assert client.get("/api/shipments/track/TK0000000000").status_code == 404
    assert client.get("/api/updates/TK0000000000").status_code == 404


def test_owner_only_access(client, world):
    sid = world["shipment"]["id"]
    assert client.get(f"/api/shipments/{sid}", headers=bearer(world["owner_token"])).status_code == 200
    assert client.get(f"/api/shipments/{sid}", headers=bearer(world["other_token"])).status_code == 403
    assert client.get(f"/api/shipments/{sid}", headers=bearer(world["staff_token"])).status_code == 200

    mine = client.get("/api/shipments/my-shipments", headers=bearer(world["owner_token"])).json()
    assert [s["id"] for s in mine] == [sid]
    assert client.get("/api/shipments/my-shipments", headers=bearer(world["other_token"])).json() == []


def test_role_guards(client, world):
    assert client.get("/api/shipments", headers=bearer(world["owner_token"])).status_code == 403
    assert client.get("/api/users", headers=bearer(world["staff_token"])).status_code == 403
    resp = client.post(
        "/api/updates",
        json={"shipment_id": world["shipment"]["id"], "status_update": "Lost?"},
        headers=bearer(world["owner_token"]),
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "PERMISSION_DENIED"


def test_status_update_history_order(client, world):
    shipment = world["shipment"]
    for status in ("Picked up", "In transit"):
        resp = client.post(
            "/api/updates",
            json={"shipment_id": shipment["id"], "location": "Road", "status_update": status},
            headers=bearer(world["staff_token"]),
        )
        assert resp.status_code == 201

    history = client.get(f"/api/updates/{shipment['tracking_number']}").json()
    assert [h["status_update"] for h in history] == [
        "Shipment created and pending pickup.",
        "Picked up",
        "In transit",
    ]
    tracked = client.get(f"/api/shipments/track/{shipment['tracking_number']}").json()
    assert tracked["shipment"]["status"] == "In transit"
    assert tracked["history"][0]["status_update"] == "In transit"


def test_update_unknown_shipment(client, world):
    resp = client.post(
        "/api/updates",
        json={"shipment_id": 9999, "status_update": "In transit"},
        headers=bearer(world["staff_token"]),
    )
    assert resp.status_code == 404
    resp = client.put("/api/shipments/9999", json={"status": "x"}, headers=bearer(world["staff_token"]))
    assert resp.status_code == 404


def test_delete_requires_admin(client, world):
    sid = world["shipment"]["id"]
    assert client.delete(f"/api/shipments/{sid}", headers=bearer(world["staff_token"])).status_code == 403
    assert client.delete(f"/api/shipments/{sid}", headers=bearer(world["admin_token"])).status_code == 200
    assert client.get(f"/api/shipments/{sid}", headers=bearer(world["admin_token"])).status_code == 404


def test_admin_cannot_demote_self(client, runtime, world):
    me = client.get("/api/auth/me", headers=bearer(world["admin_token"])).json()
    resp = client.put(f"/api/users/{me['id']}/role", json={"role": "client"}, headers=bearer(world["admin_token"]))
    assert resp.status_code == 403
    clients = client.get("/api/users/clients", headers=bearer(world["staff_token"])).json()
    assert {c["email"] for c in clients} == {"owner@example.com", "other@example.com"}


def test_unknown_client_on_create(client, runtime, world):
    branch_ids = [world["shipment"]["origin_branch_id"], world["shipment"]["destination_branch_id"]]
    resp = client.post(
        "/api/shipments",
        json={
            "client_id": 9999,
            "origin_branch_id": branch_ids[0],
            "destination_branch_id": branch_ids[1],
            "service_type": "express",
            "weight_kg": 1.0,
            "sender_name": "Acme",
            "receiver_name": "Bob",
        },
        headers=bearer(world["staff_token"]),
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"
    assert len(runtime.store.list_shipments()) == 1


def test_edit_with_dangling_reference_or_cleared_field(client, runtime, world):
    sid = world["shipment"]["id"]
    resp = client.put(f"/api/shipments/{sid}", json={"client_id": 9999}, headers=bearer(world["staff_token"]))
    assert resp.status_code == 404

    resp = client.put(f"/api/shipments/{sid}", json={"sender_name": None}, headers=bearer(world["staff_token"]))
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_REQUEST"
    assert runtime.store.get_shipment(sid).sender_name == "Acme"


def test_unknown_branch_on_role_change(client, runtime, world):
    owner = runtime.store.find_account_by_email("owner@example.com")
    resp = client.put(
        f"/api/users/{owner.id}/role",
        json={"role": "staff", "branch_id": 777},
        headers=bearer(world["admin_token"]),
    )
    assert resp.status_code == 404
    assert runtime.store.get_account(owner.id).role == "client"

    resp = client.put("/api/users/9999/role", json={"role": "staff"}, headers=bearer(world["admin_token"]))
    assert resp.status_code == 404


def test_register_staff_with_unknown_branch(client, runtime, world):
    resp = client.post(
        "/api/auth/register",
        json={"full_name": "Sam", "email": "sam@example.com", "password": "correct-horse", "role": "staff", "branch_id": 777},
        headers=bearer(world["admin_token"]),
    )
    assert resp.status_code == 404
    assert runtime.store.find_account_by_email("sam@example.com") is None
