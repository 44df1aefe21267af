import io
import json
import urllib.error

import pytest

from decisionlog.services import exports_pdf
from decisionlog.services.exports_pdf import (
    BuiltArtifact,
    DocRaptorRenderer,
    PdfRenderError,
    convert_html_artifact,
)

_HTML = BuiltArtifact(content=b"<html><body>log</body></html>", content_type="text/html", extension="html")


def test_without_renderer_html_is_delivered():
    result = convert_html_artifact(_HTML, None)

    assert result.converted is False
    assert result.artifact == _HTML
    assert result.warning


def test_renderer_failure_falls_back_to_html():
    def failing(html: str, name: str) -> bytes:
        raise PdfRenderError("PDF service returned HTTP 422")

    result = convert_html_artifact(_HTML, failing)

    assert result.converted is False
    assert result.artifact.content_type == "text/html"
    assert result.artifact.extension == "html"
    assert "422" in result.warning


def test_renderer_success_yields_pdf():
    calls = []

    def renderer(html: str, name: str) -> bytes:
        calls.append((html, name))
        return b"%PDF-1.4 fake"

    result = convert_html_artifact(_HTML, renderer, name="log.pdf")

    assert result.converted is True
    assert result.artifact.content_type == "application/pdf"
    assert result.artifact.extension == "pdf"
    assert result.artifact.content == b"%PDF-1.4 fake"
    assert calls == [("<html><body>log</body></html>", "log.pdf")]


def test_empty_pdf_body_falls_back_to_html():
    result = convert_html_artifact(_HTML, lambda html, name: b"")
    assert result.converted is False
    assert result.artifact == _HTML


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_docraptor_renderer_posts_document(monkeypatch):
    captured = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        captured["body"] = json.loads(req.data.decode("utf-8"))
        captured["timeout"] = timeout
        return _FakeResponse(b"%PDF-1.4 rendered")

    monkeypatch.setattr(exports_pdf.urllib.request, "urlopen", fake_urlopen)

    renderer = DocRaptorRenderer("key123", url="https://pdf.test/docs", timeout_seconds=5)
    pdf = renderer("<p>x</p>", "out.pdf")

    assert pdf == b"%PDF-1.4 rendered"
    assert captured["url"] == "https://pdf.test/docs"
    assert captured["auth"].startswith("Basic ")
    assert captured["body"]["doc"]["document_type"] == "pdf"
    assert captured["body"]["doc"]["document_content"] == "<p>x</p>"
    assert captured["timeout"] == 5


def test_docraptor_renderer_raises_on_http_error(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 401, "Unauthorized", {}, io.BytesIO(b""))

    monkeypatch.setattr(exports_pdf.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(PdfRenderError):
        DocRaptorRenderer("bad", url="https://pdf.test/docs")("<p>x</p>", "out.pdf")


def test_get_pdf_renderer_requires_api_key(monkeypatch):
    monkeypatch.setattr(exports_pdf.settings, "docraptor_api_key", None)
    assert exports_pdf.get_pdf_renderer() is None

    monkeypatch.setattr(exports_pdf.settings, "docraptor_api_key", "k")
    assert isinstance(exports_pdf.get_pdf_renderer(), DocRaptorRenderer)
