from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from decisionlog import models
from decisionlog.config import settings
from decisionlog.core.errors import (
    BuildFailure,
    ExportError,
    InvalidRequest,
    NotFound,
    UploadFailure,
)
from decisionlog.schemas.dataset import ExportBranding, ExportDataset, ExportMetadata
from decisionlog.schemas.exports import ExportCreate, ExportDownloadRead
from decisionlog.services import exports_state
from decisionlog.services.audit import audit_event
from decisionlog.services.exports_aggregator import (
    aggregate_export_dataset,
    resolve_target_decision_ids,
)
from decisionlog.services.exports_csv import build_decision_log_csv_bytes
from decisionlog.services.exports_html import build_decision_log_html_bytes
from decisionlog.services.exports_json import build_decision_log_json_bytes
from decisionlog.services.exports_pdf import (
    BuiltArtifact,
    HtmlToPdfRenderer,
    convert_html_artifact,
    get_pdf_renderer,
)
from decisionlog.services.exports_state import ExportStage
from decisionlog.services.exports_storage import (
    ObjectStorage,
    export_artifact_key,
    get_object_storage,
)
from decisionlog.services.project_access import require_project_access

logger = logging.getLogger("decisionlog.exports")

_FORMATS = {f.value for f in models.ExportFormat}
_SCOPES = {s.value for s in models.ExportScope}


def validate_export_request(payload: ExportCreate) -> None:
    if not payload.project_id or not payload.format:
        raise InvalidRequest("Missing projectId or format")
    if payload.format not in _FORMATS:
        raise InvalidRequest("Invalid format")
    if payload.scope not in _SCOPES:
        raise InvalidRequest("Invalid scope")


def resolve_branding_profile_id(
    db: Session, project: models.Project, profile_id: Optional[str]
) -> Optional[str]:
    """Return the profile id when it exists in the project's workspace, else None."""
    if not profile_id:
        return None
    profile = db.get(models.BrandingProfile, profile_id)
    if profile is None or profile.workspace_id != project.workspace_id:
        return None
    return profile.id


def _load_branding(db: Session, job: models.DecisionExport) -> Optional[ExportBranding]:
    if not job.branding_profile_id:
        return None
    profile = db.get(models.BrandingProfile, job.branding_profile_id)
    if profile is None:
        return None
    return ExportBranding(logo_url=profile.logo_url, primary_color=profile.primary_color)


def build_export_artifact(
    export_format: str,
    dataset: ExportDataset,
    branding: Optional[ExportBranding] = None,
) -> BuiltArtifact:
    if export_format == models.ExportFormat.CSV.value:
        return BuiltArtifact(build_decision_log_csv_bytes(dataset), "text/csv", "csv")
    if export_format == models.ExportFormat.JSON.value:
        return BuiltArtifact(build_decision_log_json_bytes(dataset), "application/json", "json")
    if export_format == models.ExportFormat.PDF.value:
        return BuiltArtifact(build_decision_log_html_bytes(dataset, branding), "text/html", "html")
    raise InvalidRequest("Invalid format")


def run_export_pipeline(
    db: Session,
    job: models.DecisionExport,
    *,
    storage: Optional[ObjectStorage],
    renderer: Optional[HtmlToPdfRenderer],
) -> models.DecisionExport:
    """Drive a pending job through every stage up to completed.

    Raises on any failure; the caller owns failure reconciliation.
    """

    exports_state.advance(db, job, ExportStage.aggregating)
    metadata = ExportMetadata(
        project_id=job.project_id,
        export_id=job.id,
        export_timestamp=datetime.now(timezone.utc),
        export_version=settings.export_format_version,
    )
    dataset = aggregate_export_dataset(
        db,
        decision_ids=job.decision_ids,
        include_attachments=job.include_attachments,
        metadata=metadata,
    )

    exports_state.advance(db, job, ExportStage.building)
    branding = None
    if job.format == models.ExportFormat.PDF.value:
        branding = _load_branding(db, job)
    artifact = build_export_artifact(job.format, dataset, branding)
    exports_state.advance(db, job, ExportStage.built)

    if job.format == models.ExportFormat.PDF.value:
        exports_state.advance(db, job, ExportStage.converting)
        result = convert_html_artifact(artifact, renderer, name=f"decision-log-{job.id}.pdf")
        artifact = result.artifact
        if not result.converted:
            logger.warning(
                "export_pdf_fallback", extra={"export_id": job.id, "reason": result.warning}
            )
            exports_state.add_export_log(
                db, job, result.warning or "Delivering HTML", models.ExportLogLevel.warning
            )

    exports_state.advance(db, job, ExportStage.uploading)
    bucket = settings.exports_bucket
    key = export_artifact_key(job.project_id, job.id, artifact.extension)
    try:
        storage = storage or get_object_storage()
        storage.ensure_bucket(bucket)
        storage.upload(bucket, key, artifact.content, artifact.content_type)
        signed_url = storage.create_signed_url(bucket, key, settings.signed_url_ttl_seconds)
    except Exception as exc:
        raise UploadFailure(f"Upload failed: {exc}", export_id=job.id) from exc

    return exports_state.complete(
        db,
        job,
        artifact_url=signed_url,
        artifact_size=len(artifact.content),
        content_type=artifact.content_type,
        storage_key=key,
    )


def _reconcile_failure(db: Session, export_id: str, exc: Exception) -> ExportError:
    db.rollback()
    error_message = (exc.message if isinstance(exc, ExportError) else str(exc)) or type(exc).__name__

    job = db.get(models.DecisionExport, export_id)
    if job is not None and not exports_state.is_terminal(job):
        exports_state.fail(db, job, error_message[:2000])

    logger.error(
        "export_failed",
        extra={"export_id": export_id, "error": error_message[:500]},
        exc_info=not isinstance(exc, ExportError),
    )

    if isinstance(exc, UploadFailure):
        return UploadFailure(exc.message, export_id=export_id)
    return BuildFailure(f"Export failed: {error_message}", export_id=export_id)


def _create_and_run(
    db: Session,
    payload: ExportCreate,
    user: models.User,
    *,
    retried_from_id: Optional[str],
    storage: Optional[ObjectStorage],
    audit_context: Optional[dict[str, Any]],
    frozen_decision_ids: Optional[list[str]] = None,
) -> models.DecisionExport:
    validate_export_request(payload)
    project = require_project_access(db, payload.project_id, user)

    # A retry re-exports the failed job's own ids, minus any deleted since.
    if frozen_decision_ids is not None:
        target_ids = resolve_target_decision_ids(
            db,
            project_id=project.id,
            scope=models.ExportScope.decision.value,
            decision_ids=frozen_decision_ids,
        )
    else:
        target_ids = resolve_target_decision_ids(
            db,
            project_id=project.id,
            scope=payload.scope,
            decision_ids=payload.decision_ids,
        )
    if not target_ids:
        raise InvalidRequest("No decisions to export")

    job = models.DecisionExport(
        project_id=project.id,
        scope=payload.scope,
        decision_ids=target_ids,
        format=payload.format,
        branding_profile_id=resolve_branding_profile_id(db, project, payload.branding_profile_id),
        include_attachments=payload.include_attachments,
        created_by=user.id,
        status=models.ExportStatus.processing.value,
        stage=ExportStage.pending.value,
        progress=0,
        request_payload=payload.model_dump(mode="json", by_alias=True),
        retried_from_id=retried_from_id,
    )
    db.add(job)
    db.flush()
    exports_state.add_export_log(db, job, f"Export requested ({payload.format})")
    db.commit()
    export_id = job.id

    ctx = audit_context or {}
    audit_event(
        "exports.job.requested",
        user.id,
        {
            "export_id": export_id,
            "project_id": project.id,
            "format": job.format,
            "scope": job.scope,
            "decision_count": len(target_ids),
            "retried_from_id": retried_from_id,
        },
        db=db,
        **ctx,
    )

    try:
        run_export_pipeline(
            db,
            job,
            storage=storage,
            renderer=get_pdf_renderer(),
        )
    except Exception as exc:
        error = _reconcile_failure(db, export_id, exc)
        audit_event(
            "exports.job.failed",
            user.id,
            {"export_id": export_id, "error": error.message[:500]},
            db=db,
            **ctx,
        )
        raise error from exc

    audit_event(
        "exports.job.completed",
        user.id,
        {
            "export_id": export_id,
            "artifact_size": job.artifact_size,
            "content_type": job.artifact_content_type,
            "storage_key": job.storage_key,
        },
        db=db,
        **ctx,
    )
    return job


def create_export(
    db: Session,
    payload: ExportCreate,
    user: models.User,
    *,
    storage: Optional[ObjectStorage] = None,
    audit_context: Optional[dict[str, Any]] = None,
) -> models.DecisionExport:
    """Validate, authorize, create one job and run it synchronously to a terminal state."""

    return _create_and_run(
        db,
        payload,
        user,
        retried_from_id=None,
        storage=storage,
        audit_context=audit_context,
    )


def get_export_for_user(db: Session, export_id: str, user: models.User) -> models.DecisionExport:
    job = db.get(models.DecisionExport, export_id) if export_id else None
    if job is None:
        raise NotFound("Export not found")
    require_project_access(db, job.project_id, user)
    return job


def retry_export(
    db: Session,
    export_id: str,
    user: models.User,
    *,
    storage: Optional[ObjectStorage] = None,
    audit_context: Optional[dict[str, Any]] = None,
) -> models.DecisionExport:
    """Re-run a failed export as a new job; the failed job is left untouched."""

    original = get_export_for_user(db, export_id, user)
    if original.status != models.ExportStatus.failed.value:
        raise InvalidRequest("Only failed exports can be retried")

    raw = original.request_payload or {
        "projectId": original.project_id,
        "scope": original.scope,
        "decisionIds": original.decision_ids,
        "format": original.format,
        "brandingProfileId": original.branding_profile_id,
        "includeAttachments": original.include_attachments,
    }
    payload = ExportCreate.model_validate(raw)

    audit_event(
        "exports.job.retried",
        user.id,
        {"export_id": original.id, "project_id": original.project_id},
        db=db,
        **(audit_context or {}),
    )

    return _create_and_run(
        db,
        payload,
        user,
        retried_from_id=original.id,
        storage=storage,
        audit_context=audit_context,
        frozen_decision_ids=list(original.decision_ids or []),
    )


def get_export_download(
    db: Session,
    export_id: str,
    user: models.User,
    *,
    storage: Optional[ObjectStorage] = None,
    audit_context: Optional[dict[str, Any]] = None,
) -> ExportDownloadRead:
    job = get_export_for_user(db, export_id, user)
    if job.status != models.ExportStatus.completed.value or not job.storage_key:
        raise InvalidRequest("Export not ready for download", export_id=job.id)

    ttl = settings.signed_url_ttl_seconds
    try:
        url = (storage or get_object_storage()).create_signed_url(
            settings.exports_bucket, job.storage_key, ttl
        )
    except Exception as exc:
        raise UploadFailure(f"Could not create download link: {exc}", export_id=job.id) from exc

    audit_event(
        "exports.job.download_requested",
        user.id,
        {"export_id": job.id, "storage_key": job.storage_key},
        db=db,
        **(audit_context or {}),
    )
    return ExportDownloadRead(download_url=url, expires_in=ttl)
