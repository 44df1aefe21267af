"""Export error taxonomy.

Services raise these; the API layer renders them as the failure envelope
``{"success": false, "message": ...}`` with the matching HTTP status.
"""

from __future__ import annotations

from typing import Optional


class ExportError(Exception):
    status_code = 500
    code = "EXPORT_ERROR"

    def __init__(self, message: str, *, export_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.export_id = export_id


class InvalidRequest(ExportError):
    status_code = 400
    code = "INVALID_REQUEST"


class Unauthenticated(ExportError):
    status_code = 401
    code = "UNAUTHENTICATED"


class Forbidden(ExportError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(ExportError):
    status_code = 404
    code = "NOT_FOUND"


class UploadFailure(ExportError):
    status_code = 500
    code = "UPLOAD_FAILURE"


class BuildFailure(ExportError):
    status_code = 500
    code = "BUILD_FAILURE"
