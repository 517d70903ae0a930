"""
Audit log writer.

Writes are fire-and-forget: a failure is rolled back and logged, never
raised to the operation that triggered it.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtracker.db.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any,
    diff: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Append an audit entry and commit it.

    Returns:
        True if the entry was stored, False if the write failed
    """
    try:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            diff_json=diff,
        )
        db.add(entry)
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Audit log write failed: action={action}, entity={entity_type}:{entity_id}, error={e}")
        return False
