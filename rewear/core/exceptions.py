"""
Centralised custom exceptions.
Having them in one place means consistent error messages across the entire app
and easy global changes (e.g., changing status codes or adding logging).

Every settlement failure is a SettlementError carrying a stable `code` (the
error kind). Services raise them; the handler registered in main.py renders
them as {"detail": ..., "code": ...}. The class decides the HTTP status, so a
service never has to know it is running behind HTTP.
"""
from fastapi import HTTPException, status


class SettlementError(HTTPException):
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, headers: dict = None):
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)


# ── Credentials / authorization ───────────────────────────────────────────────

class CredentialsException(SettlementError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class InactiveUserException(SettlementError):
    code = "inactive_account"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self):
        super().__init__("Account not verified. Please verify your email first.")


class ForbiddenException(SettlementError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail)


class SelfSwapForbiddenException(SettlementError):
    code = "self_swap_forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self):
        super().__init__("You cannot request a swap for your own item")


# ── Validation ────────────────────────────────────────────────────────────────

class ValidationException(SettlementError):
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


# ── Not found ─────────────────────────────────────────────────────────────────

class NotFoundException(SettlementError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class TransactionNotFoundException(NotFoundException):
    code = "transaction_not_found"

    def __init__(self):
        super().__init__("Transaction")


# ── Conflict / state ──────────────────────────────────────────────────────────

class InvalidStateException(SettlementError):
    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class DuplicatePendingException(SettlementError):
    code = "duplicate_pending"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self):
        super().__init__("You already have a pending swap request for this item")


class DuplicateReferenceException(SettlementError):
    code = "duplicate_reference"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reference: str):
        super().__init__(f"A transaction already exists for payment reference '{reference}'")


class AlreadyProcessedException(SettlementError):
    code = "already_processed"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Payment already processed"):
        super().__init__(detail)


class ItemNotAvailableException(SettlementError):
    code = "item_not_available"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Item is not available for swap"):
        super().__init__(detail)


class InsufficientBalanceException(SettlementError):
    code = "insufficient_balance"
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Insufficient points. Available: {available}, Required: {required}")


class PaymentUnavailableException(SettlementError):
    code = "payment_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self):
        super().__init__("Payments are not configured on this server")


# ── Integrity (potential security events) ─────────────────────────────────────

class InvalidSignatureException(SettlementError):
    code = "invalid_signature"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self):
        super().__init__("Payment verification failed. Invalid signature.")


class PaymentMismatchException(SettlementError):
    code = "payment_mismatch"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self):
        super().__init__("Payment does not belong to this transaction")


# Kinds that describe expected business outcomes rather than system faults.
CONFLICT_CODES = {
    InvalidStateException.code,
    DuplicatePendingException.code,
    DuplicateReferenceException.code,
    AlreadyProcessedException.code,
    ItemNotAvailableException.code,
    InsufficientBalanceException.code,
}

INTEGRITY_CODES = {
    InvalidSignatureException.code,
    PaymentMismatchException.code,
}
