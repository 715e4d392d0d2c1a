"""
Admin audit trail writer. Not an HTTP middleware: admin handlers call
log_admin_action explicitly once their change has committed, because only the
handler knows which item or wallet it touched and how many swap requests went
with it.

    log_admin_action(db, admin_id=admin.id, action="REJECT_ITEM",
                     target_type="item", target_id=item.id,
                     swaps_affected=len(rejected))
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from rewear.core.exceptions import ValidationException
from rewear.models.audit_log import AuditLog

logger = logging.getLogger("rewear.audit")

AUDIT_TARGETS = ("item", "wallet", "user")


def log_admin_action(
    db: Session,
    admin_id,
    action: str,
    target_type: Optional[str] = None,
    target_id=None,
    details: Optional[dict] = None,
    swaps_affected: Optional[int] = None,
) -> AuditLog:
    """
    Insert an audit record. Records are never updated afterwards.

    swaps_affected counts the swap requests an item action rejected or
    deleted along with the item; it is stored in details under that key.
    """
    if target_type is not None and target_type not in AUDIT_TARGETS:
        raise ValidationException(f"target_type must be one of: {', '.join(AUDIT_TARGETS)}")

    record = dict(details or {})
    if swaps_affected is not None:
        record["swaps_affected"] = swaps_affected

    entry = AuditLog(
        admin_id=admin_id,
        action=action.upper(),
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=record or None,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Admin %s: %s on %s %s", admin_id, entry.action, target_type, entry.target_id)
    return entry
