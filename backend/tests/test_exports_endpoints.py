import csv
import io
import json
from urllib.parse import urlparse

from decisionlog import models
from decisionlog.services import exports_job_service
from decisionlog.services.exports_storage import StorageError


def _create(client, headers, **body):
    payload = {"format": "CSV", "scope": "project"}
    payload.update(body)
    return client.post("/api/exports", json=payload, headers=headers)


def _export_count(db) -> int:
    return db.query(models.DecisionExport).count()


def _audit_actions(db) -> list[str]:
    return [row[0] for row in db.query(models.AuditLog.action).order_by(models.AuditLog.id).all()]


class _BrokenStorage:
    def ensure_bucket(self, bucket):
        return None

    def upload(self, bucket, key, content, content_type):
        raise OSError("disk full")

    def create_signed_url(self, bucket, key, expires_in_seconds):
        raise AssertionError("not reached")


def test_create_csv_export_completes_and_serves_artifact(client, db_session, seeded, auth_headers):
    headers = auth_headers(seeded.owner_id)

    r = _create(client, headers, projectId=seeded.project_id)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["artifactUrl"]
    export_id = body["exportId"]

    job = db_session.get(models.DecisionExport, export_id)
    assert job.status == "completed"
    assert job.stage == "completed"
    assert job.decision_ids == [seeded.d1_id, seeded.d2_id]
    assert job.storage_key == f"exports/{seeded.project_id}/{export_id}.csv"
    assert job.artifact_content_type == "text/csv"
    assert job.request_payload["projectId"] == seeded.project_id

    parsed = urlparse(body["artifactUrl"])
    download = client.get(f"{parsed.path}?{parsed.query}")
    assert download.status_code == 200
    assert job.artifact_size == len(download.content)
    rows = list(csv.reader(io.StringIO(download.text)))
    # d1: max(2 options, 1 comment, 1 approval, 3 attachments) = 3 rows; d2: 1 row
    assert len(rows) == 1 + 3 + 1

    actions = _audit_actions(db_session)
    assert "exports.job.requested" in actions
    assert "exports.job.completed" in actions


def test_create_json_export_excluding_attachments(client, db_session, seeded, auth_headers):
    r = _create(
        client,
        auth_headers(seeded.owner_id),
        projectId=seeded.project_id,
        format="JSON",
        scope="decision",
        decisionIds=[seeded.d1_id],
        includeAttachments=False,
    )

    assert r.status_code == 200
    parsed = urlparse(r.json()["artifactUrl"])
    doc = json.loads(client.get(f"{parsed.path}?{parsed.query}").content)
    assert [d["id"] for d in doc["decisions"]] == [seeded.d1_id]
    assert doc["decisions"][0]["attachments"] == []
    assert len(doc["decisions"][0]["options"]) == 2
    assert doc["metadata"]["export_id"] == r.json()["exportId"]


def test_non_member_is_forbidden_and_no_job_is_created(client, db_session, seeded, auth_headers):
    r = _create(client, auth_headers(seeded.outsider_id), projectId=seeded.project_id)

    assert r.status_code == 403
    assert r.json() == {
        "success": False,
        "message": "Not authorized for this project",
        "code": "FORBIDDEN",
    }
    assert _export_count(db_session) == 0


def test_suspended_member_is_forbidden(client, db_session, seeded, auth_headers):
    membership = db_session.query(models.WorkspaceMember).one()
    membership.status = "suspended"
    db_session.commit()

    r = _create(client, auth_headers(seeded.owner_id), projectId=seeded.project_id)
    assert r.status_code == 403


def test_decision_scope_with_no_live_decisions_is_rejected(
    client, db_session, seeded, auth_headers
):
    headers = auth_headers(seeded.owner_id)

    r = _create(
        client, headers, projectId=seeded.project_id, scope="decision", decisionIds=[]
    )
    assert r.status_code == 400
    assert r.json()["message"] == "No decisions to export"

    r = _create(
        client,
        headers,
        projectId=seeded.project_id,
        scope="decision",
        decisionIds=[seeded.d3_id],
    )
    assert r.status_code == 400
    assert _export_count(db_session) == 0


def test_request_validation_order(client, db_session, seeded, auth_headers):
    headers = auth_headers(seeded.owner_id)

    r = client.post("/api/exports", json={"scope": "project"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Missing projectId or format"

    r = _create(client, headers, projectId=seeded.project_id, format="XLSX")
    assert r.json()["message"] == "Invalid format"

    r = _create(client, headers, projectId=seeded.project_id, scope="workspace")
    assert r.json()["message"] == "Invalid scope"

    r = _create(client, headers, projectId="missing-project")
    assert r.status_code == 404
    assert r.json()["message"] == "Project not found"

    r = client.post(
        "/api/exports",
        json={"projectId": seeded.project_id, "format": "CSV", "decisionIds": "nope"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["success"] is False

    assert _export_count(db_session) == 0


def test_requests_without_valid_token_are_unauthenticated(client, seeded):
    r = _create(client, {}, projectId=seeded.project_id)
    assert r.status_code == 401
    assert r.json()["success"] is False

    r = client.get("/api/exports/status?exportId=x", headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401


def test_wrong_verb_is_rejected(client, seeded, auth_headers):
    r = client.put("/api/exports", json={}, headers=auth_headers(seeded.owner_id))
    assert r.status_code == 405


def test_pdf_without_renderer_delivers_html(client, db_session, seeded, auth_headers, monkeypatch):
    monkeypatch.setattr(exports_job_service, "get_pdf_renderer", lambda: None)

    r = _create(client, auth_headers(seeded.owner_id), projectId=seeded.project_id, format="PDF")

    assert r.status_code == 200
    export_id = r.json()["exportId"]
    job = db_session.get(models.DecisionExport, export_id)
    assert job.status == "completed"
    assert job.artifact_content_type == "text/html"
    assert job.storage_key.endswith(".html")

    levels = [
        row.level
        for row in db_session.query(models.ExportLog).filter(
            models.ExportLog.export_id == export_id
        )
    ]
    assert "warning" in levels


def test_pdf_with_renderer_uses_branding(client, db_session, seeded, auth_headers, monkeypatch):
    profile = models.BrandingProfile(
        workspace_id=seeded.workspace_id, logo_url="https://cdn.test/logo.png", primary_color="#123456"
    )
    db_session.add(profile)
    db_session.commit()

    rendered = []

    def renderer(html, name):
        rendered.append(html)
        return b"%PDF-1.4 test"

    monkeypatch.setattr(exports_job_service, "get_pdf_renderer", lambda: renderer)

    r = _create(
        client,
        auth_headers(seeded.owner_id),
        projectId=seeded.project_id,
        format="PDF",
        brandingProfileId=profile.id,
    )

    assert r.status_code == 200
    job = db_session.get(models.DecisionExport, r.json()["exportId"])
    assert job.artifact_content_type == "application/pdf"
    assert job.storage_key.endswith(".pdf")
    assert job.artifact_size == len(b"%PDF-1.4 test")
    assert "https://cdn.test/logo.png" in rendered[0]
    assert "color:#123456" in rendered[0]


def test_upload_failure_marks_job_failed(client, db_session, seeded, auth_headers, monkeypatch):
    monkeypatch.setattr(exports_job_service, "get_object_storage", lambda: _BrokenStorage())

    r = _create(client, auth_headers(seeded.owner_id), projectId=seeded.project_id)

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "UPLOAD_FAILURE"
    assert body["message"].startswith("Upload failed")

    job = db_session.get(models.DecisionExport, body["exportId"])
    assert job.status == "failed"
    assert job.stage == "failed"
    assert job.progress == 85
    assert job.artifact_url is None
    assert "disk full" in job.error_message
    assert "exports.job.failed" in _audit_actions(db_session)


def test_status_reports_progress_and_newest_logs(client, db_session, seeded, auth_headers):
    headers = auth_headers(seeded.owner_id)
    export_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]

    r = client.get(f"/api/exports/status?exportId={export_id}", headers=headers)

    assert r.status_code == 200
    body = r.json()
    assert body["exportId"] == export_id
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["artifactUrl"]
    assert body["errorMessage"] is None
    assert 0 < len(body["logs"]) <= 10
    assert body["logs"][0]["message"] == "Export completed"
    assert set(body["logs"][0]) == {"message", "level", "timestamp"}


def test_status_caps_logs_at_ten(client, db_session, seeded, auth_headers):
    headers = auth_headers(seeded.owner_id)
    export_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]
    for i in range(15):
        db_session.add(models.ExportLog(export_id=export_id, message=f"extra {i}"))
    db_session.commit()

    body = client.get(f"/api/exports/status?exportId={export_id}", headers=headers).json()
    assert len(body["logs"]) == 10


def test_status_errors(client, seeded, auth_headers):
    headers = auth_headers(seeded.owner_id)

    r = client.get("/api/exports/status", headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "exportId required"

    r = client.get("/api/exports/status?exportId=unknown", headers=headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Export not found"


def test_get_export_detail_is_membership_checked(client, seeded, auth_headers):
    export_id = _create(
        client, auth_headers(seeded.owner_id), projectId=seeded.project_id
    ).json()["exportId"]

    r = client.get(f"/api/exports/{export_id}", headers=auth_headers(seeded.owner_id))
    assert r.status_code == 200
    assert r.json()["id"] == export_id
    assert r.json()["projectId"] == seeded.project_id
    assert r.json()["decisionIds"] == [seeded.d1_id, seeded.d2_id]

    r = client.get(f"/api/exports/{export_id}", headers=auth_headers(seeded.outsider_id))
    assert r.status_code == 403


def test_download_re_mints_link_only_for_completed_exports(
    client, db_session, seeded, auth_headers, monkeypatch
):
    headers = auth_headers(seeded.owner_id)
    export_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]

    r = client.get(f"/api/exports/{export_id}/download", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["expiresIn"] == 3600
    parsed = urlparse(body["downloadUrl"])
    assert client.get(f"{parsed.path}?{parsed.query}").status_code == 200
    assert "exports.job.download_requested" in _audit_actions(db_session)

    monkeypatch.setattr(exports_job_service, "get_object_storage", lambda: _BrokenStorage())
    failed_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]
    r = client.get(f"/api/exports/{failed_id}/download", headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Export not ready for download"


def test_retry_creates_new_job_and_keeps_failed_one(
    client, db_session, seeded, auth_headers, monkeypatch
):
    headers = auth_headers(seeded.owner_id)

    with monkeypatch.context() as m:
        m.setattr(exports_job_service, "get_object_storage", lambda: _BrokenStorage())
        failed_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]

    r = client.post(f"/api/exports/{failed_id}/retry", headers=headers)

    assert r.status_code == 200
    body = r.json()
    assert body["exportId"] != failed_id
    assert body["retriedFromId"] == failed_id
    assert body["status"] == "completed"

    db_session.expire_all()
    original = db_session.get(models.DecisionExport, failed_id)
    assert original.status == "failed"
    assert original.artifact_url is None
    assert _export_count(db_session) == 2
    assert "exports.job.retried" in _audit_actions(db_session)

    r = client.post(f"/api/exports/{body['exportId']}/retry", headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Only failed exports can be retried"


def test_unknown_branding_profile_is_ignored(
    sqlite_foreign_keys, client, db_session, seeded, auth_headers, monkeypatch
):
    other = models.Workspace(name="Other studio")
    db_session.add(other)
    db_session.flush()
    foreign = models.BrandingProfile(workspace_id=other.id, primary_color="#654321")
    db_session.add(foreign)
    db_session.commit()

    rendered = []

    def renderer(html, name):
        rendered.append(html)
        return b"%PDF-1.4 test"

    monkeypatch.setattr(exports_job_service, "get_pdf_renderer", lambda: renderer)
    headers = auth_headers(seeded.owner_id)

    for profile_id in ("no-such-profile", foreign.id):
        r = _create(
            client, headers, projectId=seeded.project_id, format="PDF", brandingProfileId=profile_id
        )

        assert r.status_code == 200
        job = db_session.get(models.DecisionExport, r.json()["exportId"])
        assert job.status == "completed"
        assert job.branding_profile_id is None

    assert all("#654321" not in html for html in rendered)
    assert _export_count(db_session) == 2


def test_every_format_records_the_built_checkpoint(client, db_session, seeded, auth_headers):
    r = _create(client, auth_headers(seeded.owner_id), projectId=seeded.project_id, format="JSON")
    export_id = r.json()["exportId"]

    messages = [
        row.message
        for row in db_session.query(models.ExportLog)
        .filter(models.ExportLog.export_id == export_id)
        .order_by(models.ExportLog.id.asc())
    ]
    assert messages == [
        "Export requested (JSON)",
        "Aggregating decision data",
        "Building export artifact",
        "Export artifact built",
        "Uploading artifact to storage",
        "Export completed",
    ]


def test_storage_misconfiguration_is_an_upload_failure(
    client, db_session, seeded, auth_headers, monkeypatch
):
    def unconfigured():
        raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")

    monkeypatch.setattr(exports_job_service, "get_object_storage", unconfigured)

    r = _create(client, auth_headers(seeded.owner_id), projectId=seeded.project_id)

    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "UPLOAD_FAILURE"
    assert body["message"].startswith("Upload failed: SUPABASE_URL")
    job = db_session.get(models.DecisionExport, body["exportId"])
    assert job.status == "failed"
    assert job.progress == 85


def test_retry_re_exports_the_failed_jobs_decisions(
    client, db_session, seeded, auth_headers, monkeypatch
):
    headers = auth_headers(seeded.owner_id)

    with monkeypatch.context() as m:
        m.setattr(exports_job_service, "get_object_storage", lambda: _BrokenStorage())
        failed_id = _create(client, headers, projectId=seeded.project_id).json()["exportId"]

    db_session.add(models.Decision(project_id=seeded.project_id, title="Late addition"))
    db_session.commit()

    r = client.post(f"/api/exports/{failed_id}/retry", headers=headers)

    assert r.status_code == 200
    retried = db_session.get(models.DecisionExport, r.json()["exportId"])
    assert retried.decision_ids == [seeded.d1_id, seeded.d2_id]
    assert retried.scope == "project"
