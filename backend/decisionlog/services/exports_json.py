from __future__ import annotations

import json
from typing import Any

from decisionlog.schemas.dataset import ExportDataset


def build_decision_log_json_document(dataset: ExportDataset) -> dict[str, Any]:
    """Nest related rows under their decision (true one-to-many, arrays always present)."""

    decisions: list[dict[str, Any]] = []
    for d in dataset.decisions:
        item = d.model_dump(mode="json")
        item["options"] = [o.model_dump(mode="json") for o in dataset.options_for(d.id)]
        item["comments"] = [c.model_dump(mode="json") for c in dataset.comments_for(d.id)]
        item["approvals"] = [a.model_dump(mode="json") for a in dataset.approvals_for(d.id)]
        item["attachments"] = [a.model_dump(mode="json") for a in dataset.attachments_for(d.id)]
        decisions.append(item)

    return {
        "metadata": dataset.metadata.model_dump(mode="json"),
        "decisions": decisions,
    }


def build_decision_log_json_bytes(dataset: ExportDataset) -> bytes:
    document = build_decision_log_json_document(dataset)
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
