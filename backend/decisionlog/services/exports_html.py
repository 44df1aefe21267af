from __future__ import annotations

import re
from datetime import date, datetime
from html import escape
from typing import Any, Optional

from decisionlog.schemas.dataset import ExportBranding, ExportDataset, ExportDecision

DEFAULT_PRIMARY_COLOR = "#195C4A"

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

_STYLE = """
    body { font-family: Inter, system-ui, sans-serif; padding: 24px; color: #23272F; }
    h1 { font-size: 24px; margin-bottom: 8px; }
    h2 { font-size: 18px; margin: 24px 0 8px; }
    h3 { font-size: 14px; margin: 16px 0 8px; color: #6B7280; }
    table { width: 100%; border-collapse: collapse; margin: 8px 0; }
    th, td { border: 1px solid #E6E8F0; padding: 8px 12px; text-align: left; }
    th { background: #F5F6FA; font-weight: 600; }
    .meta { color: #6B7280; font-size: 14px; margin-bottom: 16px; }
    .header { display: flex; justify-content: space-between; align-items: center;
              margin-bottom: 24px; padding-bottom: 16px; border-bottom: 1px solid #E6E8F0; }
    .decision { margin-bottom: 24px; page-break-inside: avoid; }
    .comment { margin-bottom: 8px; padding: 8px; border: 1px solid #eee; border-radius: 4px; }
    .muted { color: #6B7280; font-size: 12px; }
"""


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return escape(value.isoformat())
    return escape(str(value))


def resolve_primary_color(branding: Optional[ExportBranding]) -> str:
    """Return the branding color when it is a #rgb/#rrggbb value, else the default."""
    color = (branding.primary_color or "").strip() if branding else ""
    if color and _COLOR_RE.match(color):
        return color
    return DEFAULT_PRIMARY_COLOR


def _decision_section(dataset: ExportDataset, d: ExportDecision, primary_color: str) -> str:
    option_rows = "".join(
        "<tr>"
        f"<td>{_text(o.title)}</td>"
        f"<td>{_text(o.description)}</td>"
        f"<td>{o.position}</td>"
        f"<td>{'Yes' if o.is_recommended else 'No'}</td>"
        "</tr>"
        for o in dataset.options_for(d.id)
    )
    comments_html = "".join(
        '<div class="comment">'
        f"<strong>{_text(c.author_name)}</strong> "
        f'<span class="muted">{_text(c.created_at)}</span>'
        f'<p style="margin:4px 0 0">{_text(c.text)}</p>'
        "</div>"
        for c in dataset.comments_for(d.id)
    )
    approvals_html = "".join(
        '<div style="margin-bottom:4px">'
        f"<strong>{_text(a.approver_name)}</strong> ({_text(a.role)}) | "
        f"{_text(a.status)} | {_text(a.timestamp)}"
        "</div>"
        for a in dataset.approvals_for(d.id)
    )
    attachments_html = "".join(
        f'<div style="margin-bottom:4px">{_text(a.filename)}</div>'
        for a in dataset.attachments_for(d.id)
    )
    description_html = (
        f'<p style="margin-bottom:12px">{_text(d.description)}</p>' if d.description else ""
    )

    return f"""
  <div class="decision">
    <h2 style="color:{primary_color}">{_text(d.title)}</h2>
    <div class="meta">Status: {_text(d.status)} | Due: {_text(d.due_date) or "-"} | Created: {_text(d.created_at)}</div>
    {description_html}
    <h3>Options</h3>
    <table>
      <thead><tr><th>Title</th><th>Description</th><th>Order</th><th>Recommended</th></tr></thead>
      <tbody>{option_rows or '<tr><td colspan="4">No options</td></tr>'}</tbody>
    </table>
    <h3>Comments</h3>
    {comments_html or "<p>No comments</p>"}
    <h3>Approval History</h3>
    {approvals_html or "<p>No approvals</p>"}
    <h3>Attachments</h3>
    {attachments_html or "<p>No attachments</p>"}
  </div>
"""


def build_decision_log_html(
    dataset: ExportDataset,
    branding: Optional[ExportBranding] = None,
) -> str:
    """Render the printable decision log document.

    All user-supplied text (titles, descriptions, comments, names, filenames and the
    logo URL) is HTML-escaped. The branding color is only used when it is a plain
    hex value.
    """

    primary_color = resolve_primary_color(branding)
    logo_html = ""
    if branding and branding.logo_url:
        logo_html = f'<img src="{_text(branding.logo_url)}" alt="Logo" style="max-height:32px" />'

    meta = dataset.metadata
    sections = "".join(_decision_section(dataset, d, primary_color) for d in dataset.decisions)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Decision Log Export - {_text(meta.project_id)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="header">
    <div>{logo_html}</div>
    <div class="muted">Exported: {_text(meta.export_timestamp)}</div>
  </div>
  <h1>Decision Log Export</h1>
  <div class="meta">Project ID: {_text(meta.project_id)} | Export ID: {_text(meta.export_id)}</div>
{sections}
  <p class="muted" style="margin-top:32px">Decision Log Export</p>
</body>
</html>
"""


def build_decision_log_html_bytes(
    dataset: ExportDataset,
    branding: Optional[ExportBranding] = None,
) -> bytes:
    return build_decision_log_html(dataset, branding).encode("utf-8")
