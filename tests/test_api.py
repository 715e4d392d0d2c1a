"""Items, wallet, admin and health endpoints."""
import uuid

from rewear.config import settings
from rewear.core.security import create_access_token
from rewear.models.audit_log import AuditLog


class TestHealthAndAuth:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_payment_health_reports_configuration(self, client):
        data = client.get("/health/payment").json()
        assert data["razorpay_configured"] is True
        assert "rzp_test_secret" not in str(data)

    def test_payment_health_degraded_without_credentials(self, client, monkeypatch):
        monkeypatch.setattr(settings, "razorpay_key_secret", "")
        data = client.get("/health/payment").json()
        assert data == {"status": "degraded", "razorpay_configured": False}

    def test_missing_token(self, client):
        response = client.get("/wallet")
        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/wallet", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    def test_token_for_unknown_user(self, client, db):
        token = create_access_token(str(uuid.uuid4()))
        response = client.get("/wallet", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_inactive_user(self, client, make_user, auth_headers):
        user = make_user(is_active=False)
        response = client.get("/wallet", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["code"] == "inactive_account"

    def test_me(self, client, make_user, auth_headers):
        user = make_user("Asha", balance=12)
        data = client.get("/users/me", headers=auth_headers(user)).json()
        assert data["id"] == str(user.id)
        assert data["points_balance"] == 12


class TestWallet:
    def test_balance_and_history(self, client, db, make_user, auth_headers):
        from rewear.services import ledger_service

        user = make_user(balance=0)
        for _ in range(3):
            ledger_service.credit_bonus(db, user.id, 10, reason="Streak")

        balance = client.get("/wallet", headers=auth_headers(user)).json()
        history = client.get(
            "/wallet/transactions", params={"limit": 2}, headers=auth_headers(user)
        ).json()

        assert balance["points_balance"] == 30
        assert len(history["transactions"]) == 2
        assert history["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_transactions": 3,
            "has_next_page": True,
            "has_prev_page": False,
            "limit": 2,
        }

    def test_limit_is_capped(self, client, make_user, auth_headers):
        response = client.get(
            "/wallet/transactions", params={"limit": 500}, headers=auth_headers(make_user())
        )
        assert response.status_code == 422


class TestItems:
    def test_submit_then_browse_after_approval(self, client, make_user, auth_headers):
        owner = make_user("owner")
        admin = make_user("admin", is_admin=True)

        created = client.post(
            "/items",
            json={"title": "Wool coat", "points_price": 60, "size": "L"},
            headers=auth_headers(owner),
        )
        assert created.status_code == 201
        item_id = created.json()["item"]["id"]
        assert created.json()["item"]["status"] == "pending"

        assert client.get(f"/items/{item_id}").status_code == 404
        assert client.get("/items").json()["total"] == 0

        approved = client.put(f"/admin/items/{item_id}/approve", headers=auth_headers(admin))
        assert approved.status_code == 200

        assert client.get(f"/items/{item_id}").json()["title"] == "Wool coat"
        assert client.get("/items").json()["total"] == 1
        mine = client.get("/items/mine", headers=auth_headers(owner)).json()
        assert [i["id"] for i in mine] == [item_id]

    def test_delete_cascades_to_swaps(self, client, make_user, make_item, make_swap, auth_headers):
        owner = make_user("owner")
        item = make_item(owner)
        swap = make_swap(item, make_user("a"))

        response = client.delete(f"/items/{item.id}", headers=auth_headers(owner))
        approve = client.post(f"/settlement/swap/{swap.id}/approve", headers=auth_headers(owner))

        assert response.status_code == 200
        assert response.json()["swap_requests_deleted"] == 1
        assert approve.status_code == 404

    def test_delete_by_stranger(self, client, make_user, make_item, auth_headers):
        item = make_item(make_user("owner"))
        response = client.delete(f"/items/{item.id}", headers=auth_headers(make_user("stranger")))
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


class TestAdmin:
    def test_requires_admin(self, client, make_user, auth_headers):
        response = client.get("/admin/stats", headers=auth_headers(make_user()))
        assert response.status_code == 403

    def test_reject_item_is_audited(self, client, db, make_user, make_item, make_swap, auth_headers):
        admin = make_user("admin", is_admin=True)
        item = make_item(make_user("owner"))
        make_swap(item, make_user("a"))

        response = client.put(f"/admin/items/{item.id}/reject", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["swaps_rejected"] == 1
        log = db.query(AuditLog).one()
        assert log.action == "REJECT_ITEM"
        assert log.admin_id == admin.id
        assert log.target_id == str(item.id)
        assert log.details["swaps_affected"] == 1

        logs = client.get(
            "/admin/audit-logs", params={"action": "reject_item"}, headers=auth_headers(admin)
        ).json()
        assert logs["total"] == 1

    def test_list_items_by_status(self, client, make_user, make_item, auth_headers):
        admin = make_user("admin", is_admin=True)
        owner = make_user("owner")
        make_item(owner, status="pending")
        make_item(owner, status="approved")

        pending = client.get(
            "/admin/items", params={"status": "pending"}, headers=auth_headers(admin)
        ).json()
        bad = client.get("/admin/items", params={"status": "lost"}, headers=auth_headers(admin))

        assert pending["total"] == 1
        assert bad.status_code == 400
        assert bad.json()["code"] == "validation_error"

    def test_bonus_and_stats(self, client, make_user, auth_headers):
        admin = make_user("admin", is_admin=True)
        user = make_user("member", balance=5)

        bonus = client.post(
            "/admin/wallet/bonus",
            json={"user_id": str(user.id), "points": 20, "reason": "Welcome"},
            headers=auth_headers(admin),
        )
        stats = client.get("/admin/stats", headers=auth_headers(admin)).json()

        assert bonus.status_code == 200
        assert bonus.json()["new_balance"] == 25
        assert stats["total_users"] == 1
        assert stats["total_points_in_circulation"] == 25
        assert stats["total_transactions"] == 1

    def test_bonus_for_unknown_user(self, client, make_user, auth_headers):
        admin = make_user("admin", is_admin=True)
        response = client.post(
            "/admin/wallet/bonus",
            json={"user_id": str(uuid.uuid4()), "points": 20, "reason": "Welcome"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404

    def test_admin_delete_records_swap_count(self, client, db, make_user, make_item, make_swap, auth_headers):
        admin = make_user("admin", is_admin=True)
        item = make_item(make_user("owner"))
        make_swap(item, make_user("a"))
        make_swap(item, make_user("b"))

        response = client.delete(f"/admin/items/{item.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        log = db.query(AuditLog).one()
        assert log.action == "DELETE_ITEM"
        assert log.target_type == "item"
        assert log.details == {"swaps_affected": 2}
