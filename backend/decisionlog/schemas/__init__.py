from decisionlog.schemas.dataset import (
    ExportApproval,
    ExportAttachment,
    ExportBranding,
    ExportComment,
    ExportDataset,
    ExportDecision,
    ExportMetadata,
    ExportOption,
)
from decisionlog.schemas.exports import (
    ExportCreate,
    ExportCreateResponse,
    ExportDownloadRead,
    ExportLogRead,
    ExportRead,
    ExportStatusRead,
)

__all__ = [
    "ExportApproval",
    "ExportAttachment",
    "ExportBranding",
    "ExportComment",
    "ExportCreate",
    "ExportCreateResponse",
    "ExportDataset",
    "ExportDecision",
    "ExportDownloadRead",
    "ExportLogRead",
    "ExportMetadata",
    "ExportOption",
    "ExportRead",
    "ExportStatusRead",
]
