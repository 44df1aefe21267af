"""Typed records for the in-memory export dataset.

Rows are validated from ORM objects at the data-access boundary so builders
never handle untyped mappings.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class ExportDecision(_Record):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    due_date: Optional[date] = None
    project_id: str


class ExportOption(_Record):
    id: str
    decision_id: str
    title: str
    description: Optional[str] = None
    position: int = 0
    is_recommended: bool = False


class ExportComment(_Record):
    id: str
    decision_id: str
    author_name: Optional[str] = None
    text: str
    created_at: datetime
    edited_at: Optional[datetime] = None


class ExportApproval(_Record):
    id: str
    decision_id: str
    approver_name: Optional[str] = None
    role: str = "approver"
    status: str
    timestamp: datetime
    comments: Optional[str] = None


class ExportAttachment(_Record):
    id: str
    decision_id: str
    filename: str
    url: str
    mime_type: Optional[str] = None
    version: int = 1


class ExportMetadata(_Record):
    project_id: str
    export_id: str
    export_timestamp: datetime
    export_version: str


class ExportBranding(_Record):
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None


class ExportDataset(BaseModel):
    decisions: list[ExportDecision] = Field(default_factory=list)
    options: list[ExportOption] = Field(default_factory=list)
    comments: list[ExportComment] = Field(default_factory=list)
    approvals: list[ExportApproval] = Field(default_factory=list)
    attachments: list[ExportAttachment] = Field(default_factory=list)
    metadata: ExportMetadata

    def options_for(self, decision_id: str) -> list[ExportOption]:
        return [o for o in self.options if o.decision_id == decision_id]

    def comments_for(self, decision_id: str) -> list[ExportComment]:
        return [c for c in self.comments if c.decision_id == decision_id]

    def approvals_for(self, decision_id: str) -> list[ExportApproval]:
        return [a for a in self.approvals if a.decision_id == decision_id]

    def attachments_for(self, decision_id: str) -> list[ExportAttachment]:
        return [a for a in self.attachments if a.decision_id == decision_id]
