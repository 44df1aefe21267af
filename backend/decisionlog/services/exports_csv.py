from __future__ import annotations

import csv
import io
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Optional, TypeVar

from decisionlog.schemas.dataset import ExportDataset

CSV_HEADERS = [
    "decision_id",
    "decision_title",
    "decision_status",
    "decision_created_at",
    "decision_updated_at",
    "option_id",
    "option_text",
    "option_rationale",
    "option_order",
    "comment_id",
    "comment_author",
    "comment_text",
    "comment_created_at",
    "approval_id",
    "approver",
    "approval_status",
    "approval_timestamp",
    "attachment_id",
    "file_name",
    "file_url",
]

T = TypeVar("T")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _at(items: list[T], index: int) -> Optional[T]:
    return items[index] if index < len(items) else None


def _group(rows: list[T]) -> dict[str, list[T]]:
    grouped: dict[str, list[T]] = defaultdict(list)
    for row in rows:
        grouped[row.decision_id].append(row)  # type: ignore[attr-defined]
    return grouped


def build_decision_log_csv_bytes(dataset: ExportDataset) -> bytes:
    """Flatten the dataset into one denormalized CSV table.

    Each decision spans max(n_options, n_comments, n_approvals, n_attachments, 1)
    rows. The i-th related row of every kind is zipped into the i-th CSV row;
    exhausted kinds leave their columns blank. Every field is quote-wrapped.
    """

    options_by_decision = _group(dataset.options)
    comments_by_decision = _group(dataset.comments)
    approvals_by_decision = _group(dataset.approvals)
    attachments_by_decision = _group(dataset.attachments)

    buf = io.StringIO(newline="")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for d in dataset.decisions:
        opts = options_by_decision.get(d.id, [])
        comments = comments_by_decision.get(d.id, [])
        approvals = approvals_by_decision.get(d.id, [])
        attachments = attachments_by_decision.get(d.id, [])

        row_count = max(len(opts), len(comments), len(approvals), len(attachments), 1)
        for i in range(row_count):
            o = _at(opts, i)
            c = _at(comments, i)
            a = _at(approvals, i)
            att = _at(attachments, i)
            writer.writerow(
                [
                    _cell(d.id),
                    _cell(d.title),
                    _cell(d.status),
                    _cell(d.created_at),
                    _cell(d.updated_at),
                    _cell(o.id if o else None),
                    _cell(o.title if o else None),
                    _cell(o.description if o else None),
                    _cell(o.position if o else None),
                    _cell(c.id if c else None),
                    _cell(c.author_name if c else None),
                    _cell(c.text if c else None),
                    _cell(c.created_at if c else None),
                    _cell(a.id if a else None),
                    _cell(a.approver_name if a else None),
                    _cell(a.status if a else None),
                    _cell(a.timestamp if a else None),
                    _cell(att.id if att else None),
                    _cell(att.filename if att else None),
                    _cell(att.url if att else None),
                ]
            )

    return buf.getvalue().encode("utf-8")
