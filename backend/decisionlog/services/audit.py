import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("decisionlog.audit")


def audit_event(
    action: str,
    user_id: Optional[str],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Optional[int]:
    """
    Persist an audit event; if the DB write fails, fall back to the application log.

    When no session is given a short-lived one is opened and closed here. Returns the
    created audit log id when available.
    """
    event = {
        "action": action,
        "user_id": user_id,
        "payload": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    created_session = False
    session: Session | None = db
    try:
        from decisionlog.models import AuditLog

        if session is None:
            from decisionlog.database import SessionLocal

            session = SessionLocal()
            created_session = True

        log = AuditLog(
            action=action,
            user_id=user_id,
            payload_json=json.dumps(payload or {}, default=str),
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
        )
        session.add(log)
        session.commit()
        return log.id
    except SQLAlchemyError:
        logger.warning("audit_write_failed", extra={"audit_event": event}, exc_info=True)
        if session is not None:
            session.rollback()
        return None
    finally:
        if created_session and session is not None:
            session.close()
