from __future__ import annotations

from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.schemas.dataset import (
    ExportApproval,
    ExportAttachment,
    ExportComment,
    ExportDataset,
    ExportDecision,
    ExportMetadata,
    ExportOption,
)


def resolve_target_decision_ids(
    db: Session,
    *,
    project_id: str,
    scope: str,
    decision_ids: Sequence[str] | None = None,
) -> list[str]:
    """Return the live decision ids of the project the export should cover.

    scope=decision keeps only requested ids that belong to the project and are not
    soft-deleted; scope=project takes all of them. Order follows (created_at, id).
    """

    stmt = (
        select(models.Decision.id)
        .where(models.Decision.project_id == project_id)
        .where(models.Decision.deleted_at.is_(None))
        .order_by(models.Decision.created_at.asc(), models.Decision.id.asc())
    )

    if scope == models.ExportScope.decision.value:
        requested = {str(i) for i in (decision_ids or []) if i}
        if not requested:
            return []
        stmt = stmt.where(models.Decision.id.in_(requested))

    return list(db.scalars(stmt).all())


def _user_names(db: Session, user_ids: Iterable[Optional[str]]) -> dict[str, Optional[str]]:
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    rows = db.execute(
        select(models.User.id, models.User.full_name).where(models.User.id.in_(ids))
    ).all()
    return {row.id: row.full_name for row in rows}


def aggregate_export_dataset(
    db: Session,
    *,
    decision_ids: Sequence[str],
    include_attachments: bool,
    metadata: ExportMetadata,
) -> ExportDataset:
    """Fetch decisions and their related rows with one IN query per entity kind."""

    if not decision_ids:
        return ExportDataset(metadata=metadata)

    decisions = db.scalars(
        select(models.Decision)
        .where(models.Decision.id.in_(list(decision_ids)))
        .where(models.Decision.deleted_at.is_(None))
        .order_by(models.Decision.created_at.asc(), models.Decision.id.asc())
    ).all()

    # Children hang off the decisions actually fetched, never the raw request.
    fetched_ids = [d.id for d in decisions]
    if not fetched_ids:
        return ExportDataset(metadata=metadata)

    options = db.scalars(
        select(models.DecisionOption)
        .where(models.DecisionOption.decision_id.in_(fetched_ids))
        .order_by(models.DecisionOption.position.asc(), models.DecisionOption.id.asc())
    ).all()

    comments = db.scalars(
        select(models.DecisionComment)
        .where(models.DecisionComment.decision_id.in_(fetched_ids))
        .order_by(models.DecisionComment.created_at.asc(), models.DecisionComment.id.asc())
    ).all()

    approvals = db.scalars(
        select(models.DecisionApproval)
        .where(models.DecisionApproval.decision_id.in_(fetched_ids))
        .order_by(models.DecisionApproval.timestamp.asc(), models.DecisionApproval.id.asc())
    ).all()

    attachments: Sequence[models.DecisionAttachment] = []
    if include_attachments:
        attachments = db.scalars(
            select(models.DecisionAttachment)
            .where(models.DecisionAttachment.decision_id.in_(fetched_ids))
            .order_by(
                models.DecisionAttachment.filename.asc(),
                models.DecisionAttachment.version.asc(),
                models.DecisionAttachment.id.asc(),
            )
        ).all()

    names = _user_names(db, [c.user_id for c in comments] + [a.user_id for a in approvals])

    return ExportDataset(
        decisions=[ExportDecision.model_validate(d) for d in decisions],
        options=[ExportOption.model_validate(o) for o in options],
        comments=[
            ExportComment(
                id=c.id,
                decision_id=c.decision_id,
                author_name=names.get(c.user_id) if c.user_id else None,
                text=c.text,
                created_at=c.created_at,
                edited_at=c.edited_at,
            )
            for c in comments
        ],
        approvals=[
            ExportApproval(
                id=a.id,
                decision_id=a.decision_id,
                approver_name=names.get(a.user_id) if a.user_id else None,
                role=a.role,
                status=a.status,
                timestamp=a.timestamp,
                comments=a.comments,
            )
            for a in approvals
        ],
        attachments=[ExportAttachment.model_validate(a) for a in attachments],
        metadata=metadata,
    )
