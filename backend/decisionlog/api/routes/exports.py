from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.api.deps import get_current_user, request_audit_context
from decisionlog.database import get_db
from decisionlog.schemas.exports import (
    ExportCreate,
    ExportCreateResponse,
    ExportDownloadRead,
    ExportRead,
    ExportStatusRead,
)
from decisionlog.services import exports_job_service
from decisionlog.services.exports_status import get_export_status

router = APIRouter(prefix="/exports", tags=["exports"])


def _create_response(job: models.DecisionExport) -> ExportCreateResponse:
    return ExportCreateResponse(
        export_id=job.id,
        status=job.status,
        progress=job.progress,
        artifact_url=job.artifact_url,
        retried_from_id=job.retried_from_id,
    )


@router.post("", response_model=ExportCreateResponse)
def create_export(
    payload: ExportCreate,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    current_user: models.User = Depends(get_current_user),  # noqa: B008
):
    job = exports_job_service.create_export(
        db,
        payload,
        current_user,
        audit_context=request_audit_context(request),
    )
    return _create_response(job)


# Declared before /{export_id} so "status" is never captured as an id.
@router.get("/status", response_model=ExportStatusRead)
def export_status(
    export_id: Optional[str] = Query(None, alias="exportId"),  # noqa: B008
    db: Session = Depends(get_db),  # noqa: B008
    current_user: models.User = Depends(get_current_user),  # noqa: B008
):
    return get_export_status(db, export_id)


@router.get("/{export_id}", response_model=ExportRead)
def get_export(
    export_id: str,
    db: Session = Depends(get_db),  # noqa: B008
    current_user: models.User = Depends(get_current_user),  # noqa: B008
):
    job = exports_job_service.get_export_for_user(db, export_id, current_user)
    return ExportRead.model_validate(job)


@router.get("/{export_id}/download", response_model=ExportDownloadRead)
def download_export(
    export_id: str,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    current_user: models.User = Depends(get_current_user),  # noqa: B008
):
    return exports_job_service.get_export_download(
        db,
        export_id,
        current_user,
        audit_context=request_audit_context(request),
    )


@router.post("/{export_id}/retry", response_model=ExportCreateResponse)
def retry_export(
    export_id: str,
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    current_user: models.User = Depends(get_current_user),  # noqa: B008
):
    job = exports_job_service.retry_export(
        db,
        export_id,
        current_user,
        audit_context=request_audit_context(request),
    )
    return _create_response(job)
