from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.services import exports_state
from decisionlog.services.audit import audit_event

logger = logging.getLogger("decisionlog.exports")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def reap_stale_exports(
    db: Session,
    *,
    stale_after: timedelta,
    now: datetime | None = None,
) -> list[str]:
    """Fail processing jobs that made no progress for longer than stale_after.

    Jobs are left in processing when the process dies mid-pipeline. Returns the
    export ids that were failed.
    """

    now = _as_utc(now or datetime.now(timezone.utc))
    cutoff = now - stale_after

    candidates = db.scalars(
        select(models.DecisionExport)
        .where(models.DecisionExport.status == models.ExportStatus.processing.value)
        .order_by(models.DecisionExport.created_at.asc(), models.DecisionExport.id.asc())
    ).all()

    reaped: list[str] = []
    for job in candidates:
        last_touch = _as_utc(job.updated_at or job.created_at)
        if last_touch > cutoff:
            continue
        if exports_state.is_terminal(job):
            continue

        stage = job.stage
        minutes = int(stale_after.total_seconds() // 60)
        exports_state.fail(db, job, f"Export timed out (no progress for {minutes} minutes)")
        reaped.append(job.id)
        audit_event(
            "exports.job.reaped",
            None,
            {"export_id": job.id, "stage": stage, "last_update": last_touch.isoformat()},
            db=db,
        )

    if reaped:
        logger.info("export_reaper_run", extra={"reaped": len(reaped)})
    return reaped
