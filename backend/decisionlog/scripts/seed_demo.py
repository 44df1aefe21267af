"""Seed a demo workspace for local export testing.

Creates a user, a workspace membership, a project with a couple of decisions and
prints a bearer token for that user.
Run with: python -m decisionlog.scripts.seed_demo --email you@example.com
"""

from __future__ import annotations

import argparse

from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.core.security import create_access_token_for_subject
from decisionlog.database import SessionLocal


def ensure_user(db: Session, *, email: str, full_name: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        user = models.User(email=email, full_name=full_name, active=True)
        db.add(user)
    else:
        user.full_name = full_name
        user.active = True
    db.flush()
    return user


def seed_demo_project(db: Session, user: models.User) -> models.Project:
    workspace = models.Workspace(name="Demo workspace")
    db.add(workspace)
    db.flush()
    db.add(models.WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role="owner"))

    project = models.Project(workspace_id=workspace.id, name="Demo project")
    db.add(project)
    db.flush()

    worktop = models.Decision(
        project_id=project.id,
        title="Kitchen worktop",
        description="Choose the worktop material",
        status="pending",
    )
    door = models.Decision(project_id=project.id, title="Front door colour", status="draft")
    db.add_all([worktop, door])
    db.flush()

    db.add_all(
        [
            models.DecisionOption(decision_id=worktop.id, title="Oak", position=1),
            models.DecisionOption(
                decision_id=worktop.id, title="Quartz", position=2, is_recommended=True
            ),
            models.DecisionComment(decision_id=worktop.id, user_id=user.id, text="Quartz?"),
            models.DecisionApproval(decision_id=worktop.id, user_id=user.id, status="pending"),
        ]
    )
    return project


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo project for exports")
    parser.add_argument("--email", default="demo@decisionlog.local")
    parser.add_argument("--name", default="Demo User")
    args = parser.parse_args()

    with SessionLocal() as db:
        user = ensure_user(db, email=args.email, full_name=args.name)
        project = seed_demo_project(db, user)
        db.commit()

        print(f"user_id={user.id}")
        print(f"project_id={project.id}")
        print(f"token={create_access_token_for_subject(user.id, expires_minutes=24 * 60)}")


if __name__ == "__main__":
    main()
