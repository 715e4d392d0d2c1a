from unittest.mock import MagicMock, patch

import pytest

from rewear.config import settings
from rewear.core.exceptions import (
    AlreadyProcessedException,
    ForbiddenException,
    InvalidSignatureException,
    PaymentMismatchException,
    PaymentUnavailableException,
    ValidationException,
)
from rewear.models.transaction import Transaction
from rewear.services import ledger_service, payment_service, razorpay_service


def _order(order_id="order_A", amount_paise=10000):
    return {"id": order_id, "amount": amount_paise, "currency": "INR", "status": "created"}


@pytest.fixture
def razorpay_client():
    client = MagicMock()
    client.order.create.return_value = _order()
    with patch.object(razorpay_service, "get_client", return_value=client):
        yield client


@pytest.fixture
def pending_purchase(db, make_user):
    user = make_user("buyer")
    txn = ledger_service.create_pending_transaction(
        db, user_id=user.id, points_amount=100, monetary_amount=100, external_ref="order_A"
    )
    return user, txn


def _settle(db, txn, user, order_id="order_A", payment_id="pay_A", signature=None):
    if signature is None:
        signature = razorpay_service.compute_signature(order_id, payment_id)
    return payment_service.settle_payment(
        db,
        external_order_id=order_id,
        external_payment_id=payment_id,
        provided_signature=signature,
        transaction_id=txn.id,
        acting_user_id=user.id,
    )


class TestSignature:
    def test_valid_signature(self):
        sig = razorpay_service.compute_signature("order_A", "pay_A")
        assert razorpay_service.verify_payment_signature("order_A", "pay_A", sig)

    def test_signature_is_bound_to_order_and_payment(self):
        sig = razorpay_service.compute_signature("order_A", "pay_A")
        assert not razorpay_service.verify_payment_signature("order_A", "pay_B", sig)
        assert not razorpay_service.verify_payment_signature("order_B", "pay_A", sig)

    def test_empty_signature_is_invalid(self):
        assert not razorpay_service.verify_payment_signature("order_A", "pay_A", "")

    def test_nothing_verifies_without_a_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "razorpay_key_secret", "")
        sig = razorpay_service.compute_signature("order_A", "pay_A")
        assert not razorpay_service.verify_payment_signature("order_A", "pay_A", sig)


class TestInitiatePurchase:
    def test_creates_order_and_pending_transaction(self, db, make_user, razorpay_client):
        user = make_user()

        result = payment_service.initiate_purchase(db, user.id, points=100)

        data = razorpay_client.order.create.call_args.kwargs["data"]
        assert data["amount"] == 100 * settings.point_price_inr * 100
        assert data["currency"] == "INR"
        txn = result["transaction"]
        assert txn.status == "pending"
        assert txn.external_order_id == "order_A"
        assert txn.points_amount == 100
        assert txn.payment_method == "razorpay"
        assert result["upi_link"] is None
        assert ledger_service.get_balance(db, user.id) == 0

    def test_upi_app_gets_deep_link(self, db, make_user, razorpay_client, monkeypatch):
        monkeypatch.setattr(settings, "merchant_upi_id", "rewear@upi")
        user = make_user()

        result = payment_service.initiate_purchase(db, user.id, points=100, payment_method="gpay")

        assert result["transaction"].payment_method == "upi"
        assert result["upi_link"].startswith("upi://pay?")
        assert "pa=rewear%40upi" in result["upi_link"]
        assert "tr=order_A" in result["upi_link"]
        assert "am=100.00" in result["upi_link"]

    def test_purchase_over_limit_never_reaches_gateway(self, db, make_user, razorpay_client):
        user = make_user()

        with pytest.raises(ValidationException):
            payment_service.initiate_purchase(db, user.id, points=settings.max_points_per_purchase + 1)

        razorpay_client.order.create.assert_not_called()

    def test_unconfigured_gateway_refuses_purchases(self, db, make_user, razorpay_client, monkeypatch):
        monkeypatch.setattr(settings, "razorpay_key_id", "")
        user = make_user()

        with pytest.raises(PaymentUnavailableException):
            payment_service.initiate_purchase(db, user.id, points=100)

        razorpay_client.order.create.assert_not_called()
        assert db.query(Transaction).count() == 0


class TestSettlePayment:
    def test_verified_payment_is_credited_once(self, db, pending_purchase):
        user, txn = pending_purchase

        first = _settle(db, txn, user)
        second = _settle(db, txn, user)

        assert first["already_processed"] is False
        assert first["new_balance"] == 100
        assert second["already_processed"] is True
        assert second["new_balance"] == 100
        assert ledger_service.get_balance(db, user.id) == 100

    def test_invalid_signature_credits_nothing(self, db, pending_purchase):
        user, txn = pending_purchase

        with pytest.raises(InvalidSignatureException):
            _settle(db, txn, user, signature="0" * 64)

        assert ledger_service.get_balance(db, user.id) == 0
        db.expire_all()
        assert ledger_service.get_transaction(db, txn.id).status == "pending"

    def test_signed_payment_for_another_order(self, db, pending_purchase):
        user, txn = pending_purchase

        with pytest.raises(PaymentMismatchException):
            _settle(db, txn, user, order_id="order_B")

        assert ledger_service.get_balance(db, user.id) == 0

    def test_transaction_of_another_user(self, db, pending_purchase, make_user):
        _, txn = pending_purchase
        intruder = make_user("intruder")

        with pytest.raises(ForbiddenException):
            _settle(db, txn, intruder)

    def test_concurrent_duplicate_reports_already_processed(self, db, pending_purchase):
        user, txn = pending_purchase
        real_complete = ledger_service.complete_transaction

        def complete_then_lose(db_, transaction_id, external_payment_ref=None):
            # The other request wins the CAS; this one observes the lost race.
            real_complete(db_, transaction_id, external_payment_ref=external_payment_ref)
            raise AlreadyProcessedException()

        with patch.object(ledger_service, "complete_transaction", side_effect=complete_then_lose):
            result = _settle(db, txn, user)

        assert result["already_processed"] is True
        assert result["new_balance"] == 100

    def test_fail_payment(self, db, pending_purchase):
        user, txn = pending_purchase

        failed = payment_service.fail_payment(db, txn.id, user.id, reason="checkout closed")

        assert failed.status == "failed"
        with pytest.raises(ForbiddenException):
            payment_service.fail_payment(db, txn.id, acting_user_id=None)
