# Every table is imported here so a single `import rewear.models` registers
# the whole schema on Base.metadata (alembic/env.py and the test fixtures rely
# on it) and string targets in relationship() can be resolved.

from rewear.models.user import User
from rewear.models.transaction import Transaction
from rewear.models.item import Item, SwapRequest
from rewear.models.audit_log import AuditLog

__all__ = [
    "User",
    "Transaction",
    "Item",
    "SwapRequest",
    "AuditLog",
]
