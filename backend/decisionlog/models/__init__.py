from decisionlog.models.domain import (  # noqa: F401
    AuditLog,
    BrandingProfile,
    Decision,
    DecisionApproval,
    DecisionAttachment,
    DecisionComment,
    DecisionExport,
    DecisionOption,
    ExportFormat,
    ExportLog,
    ExportLogLevel,
    ExportScope,
    ExportStatus,
    MembershipStatus,
    Project,
    User,
    Workspace,
    WorkspaceMember,
)
