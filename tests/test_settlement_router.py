from unittest.mock import MagicMock, patch

import pytest

from rewear.services import ledger_service, razorpay_service
from rewear.services.event_bus import bus


@pytest.fixture
def razorpay_client():
    client = MagicMock()
    client.order.create.return_value = {"id": "order_R1", "amount": 5000, "currency": "INR"}
    with patch.object(razorpay_service, "get_client", return_value=client):
        yield client


def _verify_body(transaction_id, order_id="order_R1", payment_id="pay_R1", signature=None):
    if signature is None:
        signature = razorpay_service.compute_signature(order_id, payment_id)
    return {
        "external_order_id": order_id,
        "external_payment_id": payment_id,
        "signature": signature,
        "transaction_id": transaction_id,
    }


class TestPaymentEndpoints:
    def test_purchase_flow(self, client, db, make_user, auth_headers, razorpay_client):
        user = make_user("buyer")
        headers = auth_headers(user)

        order = client.post("/settlement/payment/order", json={"points": 50}, headers=headers)
        assert order.status_code == 200
        order_data = order.json()
        assert order_data["order_id"] == "order_R1"
        assert order_data["amount_paise"] == 5000
        assert order_data["key_id"] == "rzp_test_key"

        body = _verify_body(order_data["transaction_id"])
        first = client.post("/settlement/payment/verify", json=body, headers=headers)
        second = client.post("/settlement/payment/verify", json=body, headers=headers)

        assert first.status_code == 200
        assert first.json()["already_processed"] is False
        assert first.json()["points_credited"] == 50
        assert first.json()["new_balance"] == 50
        assert second.status_code == 200
        assert second.json()["already_processed"] is True
        assert second.json()["points_credited"] == 0
        assert ledger_service.get_balance(db, user.id) == 50

    def test_invalid_signature(self, client, db, make_user, auth_headers, razorpay_client):
        user = make_user("buyer")
        headers = auth_headers(user)
        order = client.post("/settlement/payment/order", json={"points": 50}, headers=headers).json()

        body = _verify_body(order["transaction_id"], signature="forged")
        response = client.post("/settlement/payment/verify", json=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_signature"
        assert ledger_service.get_balance(db, user.id) == 0

    def test_unknown_transaction(self, client, make_user, auth_headers):
        import uuid

        body = _verify_body(str(uuid.uuid4()))
        response = client.post("/settlement/payment/verify", json=body, headers=auth_headers(make_user()))

        assert response.status_code == 404
        assert response.json()["code"] == "transaction_not_found"

    def test_late_confirmation_after_abandoned_checkout(self, client, db, make_user, auth_headers, razorpay_client):
        user = make_user("buyer")
        headers = auth_headers(user)
        order = client.post("/settlement/payment/order", json={"points": 50}, headers=headers).json()

        failed = client.post(
            "/settlement/payment/fail",
            json={"transaction_id": order["transaction_id"], "reason": "closed"},
            headers=headers,
        )
        body = _verify_body(order["transaction_id"])
        late = client.post("/settlement/payment/verify", json=body, headers=headers)
        again = client.post("/settlement/payment/verify", json=body, headers=headers)

        assert failed.status_code == 200
        assert failed.json()["transaction"]["status"] == "failed"
        assert late.status_code == 200
        assert late.json()["already_processed"] is False
        assert late.json()["new_balance"] == 50
        assert again.json()["already_processed"] is True
        assert ledger_service.get_balance(db, user.id) == 50

    def test_points_must_be_positive(self, client, make_user, auth_headers):
        response = client.post(
            "/settlement/payment/order", json={"points": 0}, headers=auth_headers(make_user())
        )
        assert response.status_code == 422


class TestSwapEndpoints:
    def test_swap_flow(self, client, db, make_user, make_item, auth_headers):
        owner = make_user("owner")
        requester = make_user("requester", balance=100)
        item = make_item(owner, points_price=40)
        events = []
        bus.subscribe(lambda event, payload: events.append(event))

        created = client.post(
            "/settlement/swap", json={"item_id": str(item.id)}, headers=auth_headers(requester)
        )
        assert created.status_code == 201
        swap_id = created.json()["swap"]["id"]

        incoming = client.get("/settlement/swap/incoming", headers=auth_headers(owner))
        assert [s["id"] for s in incoming.json()["swaps"]] == [swap_id]

        approved = client.post(f"/settlement/swap/{swap_id}/approve", headers=auth_headers(owner))
        assert approved.status_code == 200
        assert approved.json()["requester_balance"] == 60
        assert approved.json()["owner_balance"] == 40
        assert approved.json()["swap"]["status"] == "approved"

        again = client.post(f"/settlement/swap/{swap_id}/approve", headers=auth_headers(owner))
        assert again.status_code == 409
        assert again.json()["code"] == "invalid_state"

        assert "swap:created" in events
        assert "swap:approved" in events
        assert ledger_service.get_balance(db, requester.id) == 60

    def test_insufficient_points(self, client, make_user, make_item, auth_headers):
        owner = make_user("owner")
        requester = make_user("requester", balance=5)
        item = make_item(owner, points_price=40)
        swap_id = client.post(
            "/settlement/swap", json={"item_id": str(item.id)}, headers=auth_headers(requester)
        ).json()["swap"]["id"]

        response = client.post(f"/settlement/swap/{swap_id}/approve", headers=auth_headers(owner))

        assert response.status_code == 402
        assert response.json()["code"] == "insufficient_balance"

    def test_self_swap(self, client, make_user, make_item, auth_headers):
        owner = make_user("owner")
        item = make_item(owner)

        response = client.post(
            "/settlement/swap", json={"item_id": str(item.id)}, headers=auth_headers(owner)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "self_swap_forbidden"

    def test_failing_listener_does_not_fail_settlement(self, client, db, make_user, make_item, auth_headers):
        owner = make_user("owner")
        requester = make_user("requester", balance=100)
        item = make_item(owner, points_price=40)

        def broken(event, payload):
            raise RuntimeError("notification service down")

        bus.subscribe(broken)
        swap_id = client.post(
            "/settlement/swap", json={"item_id": str(item.id)}, headers=auth_headers(requester)
        ).json()["swap"]["id"]
        response = client.post(f"/settlement/swap/{swap_id}/approve", headers=auth_headers(owner))

        assert response.status_code == 200
        assert ledger_service.get_balance(db, owner.id) == 40

    def test_reject(self, client, make_user, make_item, auth_headers):
        owner = make_user("owner")
        requester = make_user("requester", balance=100)
        item = make_item(owner)
        swap_id = client.post(
            "/settlement/swap", json={"item_id": str(item.id)}, headers=auth_headers(requester)
        ).json()["swap"]["id"]

        response = client.post(f"/settlement/swap/{swap_id}/reject", headers=auth_headers(owner))
        outgoing = client.get(
            "/settlement/swap/outgoing", params={"status": "rejected"}, headers=auth_headers(requester)
        )

        assert response.status_code == 200
        assert response.json()["swap"]["status"] == "rejected"
        assert [s["id"] for s in outgoing.json()["swaps"]] == [swap_id]
