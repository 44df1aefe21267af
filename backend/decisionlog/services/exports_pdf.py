"""HTML to PDF conversion.

PDF rendering is an optional capability. When no renderer is configured, or the
renderer fails, the HTML document is delivered as-is.
"""

from __future__ import annotations

import base64
import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Callable, Optional

from decisionlog.config import settings

HtmlToPdfRenderer = Callable[[str, str], bytes]


class PdfRenderError(Exception):
    pass


@dataclass(frozen=True)
class BuiltArtifact:
    content: bytes
    content_type: str
    extension: str


@dataclass(frozen=True)
class ConversionResult:
    artifact: BuiltArtifact
    converted: bool
    warning: Optional[str] = None


class DocRaptorRenderer:
    """Render HTML through a DocRaptor-compatible REST endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str,
        test_mode: bool = False,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.test_mode = test_mode
        self.timeout_seconds = timeout_seconds

    def __call__(self, html: str, name: str) -> bytes:
        body = json.dumps(
            {
                "doc": {
                    "document_type": "pdf",
                    "document_content": html,
                    "name": name,
                    "test": self.test_mode,
                }
            }
        ).encode("utf-8")
        auth = base64.b64encode(f"{self.api_key}:".encode("utf-8")).decode("ascii")
        req = urllib.request.Request(
            self.url,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Basic {auth}",
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                return resp.read()
        except urllib.error.HTTPError as exc:
            raise PdfRenderError(f"PDF service returned HTTP {exc.code}") from exc
        except urllib.error.URLError as exc:
            raise PdfRenderError(f"PDF service unreachable: {exc.reason}") from exc


def get_pdf_renderer() -> Optional[HtmlToPdfRenderer]:
    if not settings.docraptor_api_key:
        return None
    return DocRaptorRenderer(
        settings.docraptor_api_key,
        url=settings.docraptor_url,
        test_mode=settings.docraptor_test_mode,
        timeout_seconds=settings.pdf_render_timeout_seconds,
    )


def convert_html_artifact(
    html_artifact: BuiltArtifact,
    renderer: Optional[HtmlToPdfRenderer],
    *,
    name: str = "decision-log-export.pdf",
) -> ConversionResult:
    """Try to turn an HTML artifact into a PDF; never raises.

    Falls back to the HTML artifact when the renderer is absent, raises, or returns
    an empty body.
    """

    if renderer is None:
        return ConversionResult(
            artifact=html_artifact,
            converted=False,
            warning="PDF renderer not configured; delivering HTML",
        )

    try:
        pdf_bytes = renderer(html_artifact.content.decode("utf-8"), name)
    except Exception as exc:
        return ConversionResult(
            artifact=html_artifact,
            converted=False,
            warning=f"PDF conversion failed; delivering HTML ({str(exc)[:200]})",
        )

    if not pdf_bytes:
        return ConversionResult(
            artifact=html_artifact,
            converted=False,
            warning="PDF conversion returned an empty document; delivering HTML",
        )

    return ConversionResult(
        artifact=BuiltArtifact(content=pdf_bytes, content_type="application/pdf", extension="pdf"),
        converted=True,
    )
