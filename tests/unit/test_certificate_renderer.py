"""Unit tests for PDF certificate rendering and its naming helpers."""
from datetime import datetime

import pytest

from cybertrain.services import certificate_renderer
from cybertrain.utils.errors import CertificateRenderError


@pytest.mark.unit
class TestRenderCertificate:
    def test_returns_pdf_bytes(self):
        pdf = certificate_renderer.render_certificate(
            "Jane Doe",
            certificate_renderer.comprehensive_label(["Phishing", "Passwords"]),
            datetime(2025, 8, 16),
        )
        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")

    def test_long_label_still_renders(self):
        label = certificate_renderer.comprehensive_label(f"Module number {i}" for i in range(30))
        pdf = certificate_renderer.render_certificate("A Learner", label, datetime(2025, 1, 2))
        assert pdf.startswith(b"%PDF")

    def test_long_label_wraps_within_page(self, monkeypatch):
        drawn = []
        original = certificate_renderer.canvas.Canvas.drawCentredString

        def record(pdf, x, y, text, *args, **kwargs):
            drawn.append(text)
            return original(pdf, x, y, text, *args, **kwargs)

        monkeypatch.setattr(certificate_renderer.canvas.Canvas, "drawCentredString", record)
        label = certificate_renderer.comprehensive_label(f"Module number {i}" for i in range(30))
        certificate_renderer.render_certificate("A Learner", label, datetime(2025, 1, 2))
        label_lines = [line for line in drawn if line in label]
        assert len(label_lines) > 1
        assert " ".join(label_lines) == label

    def test_render_failure_is_wrapped(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("canvas exploded")

        monkeypatch.setattr(certificate_renderer.canvas, "Canvas", boom)
        with pytest.raises(CertificateRenderError) as excinfo:
            certificate_renderer.render_certificate("Jane Doe", "Label", datetime(2025, 1, 1))
        assert excinfo.value.detail == certificate_renderer.RENDER_FAILED_MESSAGE
        assert excinfo.value.status_code == 500


@pytest.mark.unit
class TestLabelsAndFilenames:
    def test_comprehensive_label(self):
        assert (
            certificate_renderer.comprehensive_label(["a", "b", "c"])
            == "Cybersecurity Training - Modules: a, b, c"
        )

    def test_module_label_is_title(self):
        assert certificate_renderer.module_label("Phishing 101") == "Phishing 101"

    def test_comprehensive_filename(self):
        assert (
            certificate_renderer.comprehensive_filename("Jane", "Doe")
            == "CyberSecurity_Certificate_Jane_Doe.pdf"
        )

    def test_filename_keeps_unicode_and_drops_quotes(self):
        assert (
            certificate_renderer.module_filename('Phishing – "Basics"', "Jane", "Doe")
            == "Certificate_Phishing_–_Basics_Jane_Doe.pdf"
        )

    def test_module_filename_replaces_spaces(self):
        assert (
            certificate_renderer.module_filename("Safe Browsing Basics", "Jane", "Doe")
            == "Certificate_Safe_Browsing_Basics_Jane_Doe.pdf"
        )
