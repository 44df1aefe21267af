from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.core.errors import Forbidden, NotFound


def get_project(db: Session, project_id: str) -> models.Project:
    project = db.get(models.Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


def is_active_member(db: Session, *, workspace_id: str, user_id: str) -> bool:
    member_id = db.scalar(
        select(models.WorkspaceMember.id)
        .where(models.WorkspaceMember.workspace_id == workspace_id)
        .where(models.WorkspaceMember.user_id == user_id)
        .where(models.WorkspaceMember.status == models.MembershipStatus.active.value)
    )
    return member_id is not None


def require_project_access(db: Session, project_id: str, user: models.User) -> models.Project:
    """Return the project when the user is an active member of its workspace."""

    project = get_project(db, project_id)
    if not is_active_member(db, workspace_id=project.workspace_id, user_id=user.id):
        raise Forbidden("Not authorized for this project")
    return project
