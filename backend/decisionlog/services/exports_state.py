"""Export job state machine.

pending -> aggregating -> building -> [converting] -> uploading -> completed
Any non-terminal stage may move to failed. completed and failed are absorbing.

Every transition persists stage/status/progress on the job, appends one
ExportLog row and commits, so a polling client always sees the latest stage.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from decisionlog import models

logger = logging.getLogger("decisionlog.exports")


class ExportStage(str, Enum):
    pending = "pending"
    aggregating = "aggregating"
    building = "building"
    built = "built"
    converting = "converting"
    uploading = "uploading"
    completed = "completed"
    failed = "failed"


STAGE_PROGRESS: dict[ExportStage, int] = {
    ExportStage.pending: 0,
    ExportStage.aggregating: 10,
    ExportStage.building: 30,
    ExportStage.built: 60,
    ExportStage.converting: 60,
    ExportStage.uploading: 85,
    ExportStage.completed: 100,
}

TERMINAL_STAGES = frozenset({ExportStage.completed, ExportStage.failed})

_ALLOWED: dict[ExportStage, frozenset[ExportStage]] = {
    ExportStage.pending: frozenset({ExportStage.aggregating, ExportStage.failed}),
    ExportStage.aggregating: frozenset({ExportStage.building, ExportStage.failed}),
    ExportStage.building: frozenset({ExportStage.built, ExportStage.failed}),
    ExportStage.built: frozenset(
        {ExportStage.converting, ExportStage.uploading, ExportStage.failed}
    ),
    ExportStage.converting: frozenset({ExportStage.uploading, ExportStage.failed}),
    ExportStage.uploading: frozenset({ExportStage.completed, ExportStage.failed}),
    ExportStage.completed: frozenset(),
    ExportStage.failed: frozenset(),
}

_STAGE_MESSAGES = {
    ExportStage.aggregating: "Aggregating decision data",
    ExportStage.building: "Building export artifact",
    ExportStage.built: "Export artifact built",
    ExportStage.converting: "Converting HTML to PDF",
    ExportStage.uploading: "Uploading artifact to storage",
    ExportStage.completed: "Export completed",
}


class InvalidStageTransition(Exception):
    def __init__(self, from_stage: str, to_stage: str) -> None:
        super().__init__(f"Invalid export stage transition: {from_stage} -> {to_stage}")
        self.from_stage = from_stage
        self.to_stage = to_stage


def can_transition(from_stage: ExportStage, to_stage: ExportStage) -> bool:
    return to_stage in _ALLOWED[from_stage]


def next_progress(current: int, stage: ExportStage) -> int:
    """Progress never decreases; failed keeps whatever was reached."""
    target = STAGE_PROGRESS.get(stage)
    if target is None:
        return int(current or 0)
    return max(int(current or 0), target)


def add_export_log(
    db: Session,
    job: models.DecisionExport,
    message: str,
    level: models.ExportLogLevel = models.ExportLogLevel.info,
) -> models.ExportLog:
    entry = models.ExportLog(export_id=job.id, level=level.value, message=message)
    db.add(entry)
    return entry


def _transition(
    db: Session,
    job: models.DecisionExport,
    to_stage: ExportStage,
    *,
    message: str,
    level: models.ExportLogLevel = models.ExportLogLevel.info,
) -> models.DecisionExport:
    from_stage = ExportStage(job.stage)
    if not can_transition(from_stage, to_stage):
        raise InvalidStageTransition(from_stage.value, to_stage.value)

    job.stage = to_stage.value
    job.progress = next_progress(job.progress, to_stage)
    if to_stage == ExportStage.completed:
        job.status = models.ExportStatus.completed.value
    elif to_stage == ExportStage.failed:
        job.status = models.ExportStatus.failed.value
    else:
        job.status = models.ExportStatus.processing.value
    job.updated_at = datetime.now(timezone.utc)

    add_export_log(db, job, message, level)
    db.commit()

    logger.info(
        "export_stage_transition",
        extra={
            "export_id": job.id,
            "from_stage": from_stage.value,
            "to_stage": to_stage.value,
            "progress": job.progress,
        },
    )
    return job


def advance(
    db: Session,
    job: models.DecisionExport,
    stage: ExportStage,
    message: Optional[str] = None,
) -> models.DecisionExport:
    if stage in TERMINAL_STAGES:
        raise InvalidStageTransition(job.stage, stage.value)
    return _transition(db, job, stage, message=message or _STAGE_MESSAGES[stage])


def complete(
    db: Session,
    job: models.DecisionExport,
    *,
    artifact_url: str,
    artifact_size: int,
    content_type: str,
    storage_key: str,
) -> models.DecisionExport:
    if not can_transition(ExportStage(job.stage), ExportStage.completed):
        raise InvalidStageTransition(job.stage, ExportStage.completed.value)

    job.artifact_url = artifact_url
    job.artifact_size = artifact_size
    job.artifact_content_type = content_type
    job.storage_key = storage_key
    job.error_message = None
    job.completed_at = datetime.now(timezone.utc)
    return _transition(db, job, ExportStage.completed, message=_STAGE_MESSAGES[ExportStage.completed])


def fail(db: Session, job: models.DecisionExport, error_message: str) -> models.DecisionExport:
    if not can_transition(ExportStage(job.stage), ExportStage.failed):
        raise InvalidStageTransition(job.stage, ExportStage.failed.value)

    job.error_message = error_message or "Export failed"
    job.artifact_url = None
    job.artifact_size = None
    job.storage_key = None
    return _transition(
        db,
        job,
        ExportStage.failed,
        message=f"Export failed: {job.error_message}",
        level=models.ExportLogLevel.error,
    )


def is_terminal(job: models.DecisionExport) -> bool:
    return ExportStage(job.stage) in TERMINAL_STAGES
