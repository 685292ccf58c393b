import pytest

from conftest import make_account


def test_dangling_references_raise_key_error(store):
    with pytest.raises(KeyError):
        store.create_account(full_name="Sam", email="sam@example.com", password_hash="x", role="staff", branch_id=5)
    account = make_account(store, "sam@example.com")
    with pytest.raises(KeyError):
        store.update_role(account.id, "staff", 5)
    with pytest.raises(KeyError):
        store.create_shipment(
            {"client_id": 9999, "service_type": "standard", "weight_kg": 1.0, "sender_name": "A", "receiver_name": "B"},
            initial_location="Depot",
        )
    assert store.list_shipments() == []


def test_duplicate_email_and_cleared_column_raise_value_error(store):
    account = make_account(store, "sam@example.com")
    with pytest.raises(ValueError):
        make_account(store, "sam@example.com")

    shipment = store.create_shipment(
        {"client_id": account.id, "service_type": "standard", "weight_kg": 1.0, "sender_name": "A", "receiver_name": "B"},
        initial_location="Depot",
    )
    with pytest.raises(ValueError):
        store.update_shipment(shipment.id, {"weight_kg": None})
    assert store.get_shipment(shipment.id).weight_kg == 1.0


def test_swap_active_session_returns_previous(store):
    account = make_account(store, "sam@example.com")
    assert store.swap_active_session_id(account.id, "s1") is None
    assert store.swap_active_session_id(account.id, "s2") == "s1"
    assert store.get_active_session_id(account.id) == "s2"
    with pytest.raises(KeyError):
        store.swap_active_session_id(9999, "s3")
