from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.core.errors import InvalidRequest, NotFound
from decisionlog.schemas.exports import ExportLogRead, ExportStatusRead

STATUS_LOG_LIMIT = 10


def get_export_status(db: Session, export_id: Optional[str]) -> ExportStatusRead:
    """Read-only projection of a job plus its newest log lines."""

    if not export_id:
        raise InvalidRequest("exportId required")

    job = db.get(models.DecisionExport, export_id)
    if job is None:
        raise NotFound("Export not found")

    logs = db.scalars(
        select(models.ExportLog)
        .where(models.ExportLog.export_id == job.id)
        .order_by(models.ExportLog.timestamp.desc(), models.ExportLog.id.desc())
        .limit(STATUS_LOG_LIMIT)
    ).all()

    return ExportStatusRead(
        export_id=job.id,
        status=job.status,
        stage=job.stage,
        progress=job.progress,
        artifact_url=job.artifact_url,
        artifact_size=job.artifact_size,
        error_message=job.error_message,
        created_at=job.created_at,
        completed_at=job.completed_at,
        logs=[ExportLogRead.model_validate(row) for row in logs],
    )
