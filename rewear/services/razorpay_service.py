"""
Razorpay payment service — the payment-gateway collaborator.

Flow:
  1. Frontend calls POST /settlement/payment/order → backend creates Razorpay order
     and a pending ledger transaction keyed by the order id
  2. Backend returns {order_id, amount, key_id, transaction_id} to frontend
  3. Frontend opens Razorpay JS checkout modal — user pays
  4. Razorpay returns {payment_id, order_id, signature} to frontend
  5. Frontend POSTs all three (plus transaction_id) to POST /settlement/payment/verify
  6. Backend verifies HMAC-SHA256 signature (CRITICAL security step)
  7. If valid, the ledger completes the transaction and credits points once

WITHOUT step 6, anyone could fake a successful payment by sending any strings.
The signature is an HMAC of "{order_id}|{payment_id}" using your Razorpay secret.
"""
import hmac
import hashlib
import time
from functools import lru_cache

from rewear.config import settings


@lru_cache()
def get_client():
    """
    Razorpay client, built on first use so the app (and its tests) can start
    without importing the SDK or holding live credentials.
    """
    import razorpay

    return razorpay.Client(
        auth=(settings.razorpay_key_id, settings.razorpay_key_secret)
    )


def create_order(amount_inr: int, points: int, notes: dict = None) -> dict:
    """
    Create a Razorpay order.

    Args:
        amount_inr: amount in INR rupees (e.g., 100 for ₹100)
        points: how many points this purchase is for (stored in receipt for reference)
        notes: free-form key/values shown in the Razorpay dashboard

    Returns:
        Razorpay order dict containing 'id', 'amount', 'currency', etc.

    Note: Razorpay amounts are in PAISE (1 rupee = 100 paise).
    """
    data = {
        "amount": int(amount_inr * 100),   # convert to paise
        "currency": "INR",
        "receipt": f"pts_{points}_{int(time.time())}",
        "payment_capture": 1,               # auto-capture payment on success
        "notes": notes or {"pts": str(points)},
    }
    return get_client().order.create(data=data)


def compute_signature(razorpay_order_id: str, razorpay_payment_id: str) -> str:
    """HMAC-SHA256(key=razorpay_secret, msg="{order_id}|{payment_id}"), hex encoded."""
    message = f"{razorpay_order_id}|{razorpay_payment_id}"
    return hmac.new(
        settings.razorpay_key_secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_payment_signature(
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
) -> bool:
    """
    Verify Razorpay payment signature using HMAC-SHA256.

    Returns True if valid, False if tampered or invalid.
    Uses hmac.compare_digest for timing-safe comparison (prevents timing attacks).
    """
    # An empty secret would make every signature forgeable
    if not razorpay_signature or not settings.razorpay_key_secret:
        return False
    expected_signature = compute_signature(razorpay_order_id, razorpay_payment_id)
    return hmac.compare_digest(expected_signature, razorpay_signature)
