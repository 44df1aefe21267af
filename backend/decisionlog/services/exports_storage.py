from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any, Optional, Protocol

from decisionlog.config import settings
from decisionlog.core.security import create_artifact_token


class StorageError(Exception):
    pass


class ObjectStorage(Protocol):
    def ensure_bucket(self, bucket: str) -> None: ...

    def upload(self, bucket: str, key: str, content: bytes, content_type: str) -> None: ...

    def create_signed_url(self, bucket: str, key: str, expires_in_seconds: int) -> str: ...


def storage_root() -> Path:
    """Return the absolute storage root for this backend instance."""

    root = Path(settings.storage_dir)
    if root.is_absolute():
        return root

    # backend/decisionlog/services/... -> backend/
    backend_root = Path(__file__).resolve().parents[2]
    return (backend_root / root).resolve()


def export_artifact_key(project_id: str, export_id: str, extension: str) -> str:
    return f"exports/{project_id}/{export_id}.{extension}"


def _safe_path(base: Path, *parts: str) -> Path:
    target = base.joinpath(*parts).resolve()
    if not target.is_relative_to(base.resolve()):
        raise StorageError("Invalid storage path")
    return target


class LocalObjectStorage:
    """Buckets are directories under the storage root; links are signed JWTs."""

    def __init__(self, root: Optional[Path] = None, *, public_base_url: Optional[str] = None) -> None:
        self.root = (root or storage_root()).resolve()
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def bucket_path(self, bucket: str) -> Path:
        return _safe_path(self.root, bucket)

    def object_path(self, bucket: str, key: str) -> Path:
        return _safe_path(self.bucket_path(bucket), key)

    def ensure_bucket(self, bucket: str) -> None:
        self.bucket_path(bucket).mkdir(parents=True, exist_ok=True)

    def upload(self, bucket: str, key: str, content: bytes, content_type: str) -> None:
        target_path = self.object_path(bucket, key)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = target_path.with_suffix(target_path.suffix + ".tmp")
        try:
            tmp_path.write_bytes(content)
            tmp_path.replace(target_path)
        except OSError as exc:
            raise StorageError(f"Could not write {bucket}/{key}: {exc}") from exc

    def create_signed_url(self, bucket: str, key: str, expires_in_seconds: int) -> str:
        if not self.object_path(bucket, key).is_file():
            raise StorageError(f"Object not found: {bucket}/{key}")
        token = create_artifact_token(
            bucket=bucket,
            key=key,
            content_type=_guess_content_type(key),
            expires_in_seconds=expires_in_seconds,
        )
        prefix = settings.api_prefix or ""
        quoted_key = urllib.parse.quote(key)
        return f"{self.public_base_url}{prefix}/storage/{bucket}/{quoted_key}?token={token}"


_CONTENT_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "html": "text/html",
    "pdf": "application/pdf",
}


def _guess_content_type(key: str) -> str:
    ext = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    return _CONTENT_TYPES.get(ext, "application/octet-stream")


class SupabaseObjectStorage:
    """Supabase Storage REST API (service role credentials)."""

    def __init__(self, url: str, service_role_key: str, *, timeout_seconds: float = 30.0) -> None:
        self.base_url = url.rstrip("/") + "/storage/v1"
        self.service_role_key = service_role_key
        self.timeout_seconds = timeout_seconds

    def _request(
        self,
        method: str,
        path: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        req = urllib.request.Request(
            self.base_url + path,
            data=data,
            method=method,
            headers={
                "Authorization": f"Bearer {self.service_role_key}",
                "apikey": self.service_role_key,
                **(headers or {}),
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", "ignore")[:300]
            raise StorageError(f"Storage {method} {path} failed: HTTP {exc.code} {detail}") from exc
        except urllib.error.URLError as exc:
            raise StorageError(f"Storage unreachable: {exc.reason}") from exc

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError:
            return None

    def ensure_bucket(self, bucket: str) -> None:
        buckets = self._request("GET", "/bucket") or []
        if any(b.get("name") == bucket or b.get("id") == bucket for b in buckets):
            return
        body = json.dumps({"id": bucket, "name": bucket, "public": False}).encode("utf-8")
        self._request(
            "POST", "/bucket", data=body, headers={"Content-Type": "application/json"}
        )

    def upload(self, bucket: str, key: str, content: bytes, content_type: str) -> None:
        self._request(
            "POST",
            f"/object/{bucket}/{urllib.parse.quote(key)}",
            data=content,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )

    def create_signed_url(self, bucket: str, key: str, expires_in_seconds: int) -> str:
        body = json.dumps({"expiresIn": int(expires_in_seconds)}).encode("utf-8")
        payload = self._request(
            "POST",
            f"/object/sign/{bucket}/{urllib.parse.quote(key)}",
            data=body,
            headers={"Content-Type": "application/json"},
        )
        signed = (payload or {}).get("signedURL") or (payload or {}).get("signedUrl")
        if not signed:
            raise StorageError("Storage did not return a signed URL")
        return self.base_url + signed


def get_object_storage() -> ObjectStorage:
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        return SupabaseObjectStorage(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout_seconds=settings.storage_timeout_seconds,
        )
    return LocalObjectStorage()
