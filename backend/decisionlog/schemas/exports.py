from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Export clients speak camelCase; snake_case is accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExportCreate(_CamelModel):
    # project_id/format are validated by the service so that missing values map to
    # InvalidRequest instead of a schema error.
    project_id: Optional[str] = None
    scope: str = "project"
    decision_ids: list[str] = Field(default_factory=list)
    format: Optional[str] = None
    branding_profile_id: Optional[str] = None
    include_signatures: bool = False
    include_attachments: bool = True


class ExportCreateResponse(_CamelModel):
    success: bool = True
    export_id: str
    status: str
    progress: int
    artifact_url: Optional[str] = None
    retried_from_id: Optional[str] = None


class ExportLogRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    message: str
    level: str
    timestamp: datetime


class ExportStatusRead(_CamelModel):
    export_id: str
    status: str
    stage: str
    progress: int
    artifact_url: Optional[str] = None
    artifact_size: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    logs: list[ExportLogRead] = Field(default_factory=list)


class ExportRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    project_id: str
    scope: str
    decision_ids: list[str]
    format: str
    branding_profile_id: Optional[str] = None
    include_attachments: bool
    created_by: Optional[str] = None

    status: str
    stage: str
    progress: int
    artifact_url: Optional[str] = None
    artifact_size: Optional[int] = None
    artifact_content_type: Optional[str] = None
    error_message: Optional[str] = None
    request_payload: Optional[dict[str, Any]] = None
    retried_from_id: Optional[str] = None

    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class ExportDownloadRead(_CamelModel):
    success: bool = True
    download_url: str
    expires_in: int
