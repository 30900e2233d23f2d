import logging
import uuid
from typing import Optional, Union

from sqlmodel import Session

from models.audit_log import AuditAction, AuditLog
from utils.clock import utcnow

logger = logging.getLogger(__name__)


def log_action(
    session: Session,
    performed_by: uuid.UUID,
    action: Union[AuditAction, str],
    details: Optional[str] = None,
):
    """
    Save an action in the audit log.

    Args:
        session: Database session
        performed_by: Id of the user doing the action
        action: AuditAction (or a free-form action string)
        details: Optional details about the action
    """
    action = action.value if isinstance(action, AuditAction) else action
    logger.info("audit: user=%s action=%s details=%s", performed_by, action, details)
    audit = AuditLog(
        action=action,
        details=details,
        user_id=performed_by,
        created_at=utcnow(),
    )
    session.add(audit)
    session.commit()
