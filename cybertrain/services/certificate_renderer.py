"""
PDF certificate rendering with reportlab.
"""

import io
import logging
from datetime import datetime
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from cybertrain.config import settings
from cybertrain.utils.common import file_safe
from cybertrain.utils.errors import CertificateRenderError

logger = logging.getLogger(__name__)

RENDER_FAILED_MESSAGE = "An error occurred while generating the certificate. Please try again."

_BORDER = colors.HexColor("#1f3a5f")
_ACCENT = colors.HexColor("#2c5d8f")


def comprehensive_label(module_titles: Iterable[str]) -> str:
    titles = ", ".join(module_titles)
    return f"{settings.CERTIFICATE_PROGRAM_NAME} - Modules: {titles}"


def module_label(module_title: str) -> str:
    return module_title


def comprehensive_filename(first_name: str, last_name: str) -> str:
    return f"CyberSecurity_Certificate_{file_safe(first_name)}_{file_safe(last_name)}.pdf"


def module_filename(module_title: str, first_name: str, last_name: str) -> str:
    return f"Certificate_{file_safe(module_title)}_{file_safe(first_name)}_{file_safe(last_name)}.pdf"


def _draw_wrapped(pdf: canvas.Canvas, text: str, center_x: float, y: float, font: str, size: int, max_width: float) -> float:
    """Draw centred text, wrapping on words; returns the y below the last line."""
    pdf.setFont(font, size)
    for text_line in simpleSplit(text, font, size, max_width):
        pdf.drawCentredString(center_x, y, text_line)
        y -= size + 6
    return y


def render_certificate(learner_name: str, achievement_label: str, completion_date: datetime) -> bytes:
    """
    Render a one-page landscape completion certificate and return the PDF bytes.

    Raises CertificateRenderError when reportlab fails, so callers can report the
    failure without touching download counters.
    """
    try:
        buffer = io.BytesIO()
        width, height = landscape(letter)
        pdf = canvas.Canvas(buffer, pagesize=(width, height))
        pdf.setTitle("Certificate of Completion")
        center = width / 2.0

        pdf.setStrokeColor(_BORDER)
        pdf.setLineWidth(5)
        pdf.rect(36, 36, width - 72, height - 72)
        pdf.setLineWidth(1)
        pdf.rect(48, 48, width - 96, height - 96)

        pdf.setFillColor(_BORDER)
        pdf.setFont("Helvetica-Bold", 34)
        pdf.drawCentredString(center, height - 130, "CERTIFICATE OF COMPLETION")

        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica", 18)
        pdf.drawCentredString(center, height - 190, "This is to certify that")

        pdf.setFillColor(_ACCENT)
        pdf.setFont("Helvetica-Bold", 28)
        pdf.drawCentredString(center, height - 240, learner_name)

        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica", 16)
        pdf.drawCentredString(center, height - 285, "has successfully completed the training course:")

        pdf.setFillColor(_BORDER)
        y = _draw_wrapped(pdf, achievement_label, center, height - 325, "Helvetica-Bold", 20, width - 200)

        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica", 14)
        pdf.drawCentredString(center, min(y - 10, height - 380), f"Completed on: {completion_date.strftime('%B %d, %Y')}")

        pdf.setLineWidth(1)
        pdf.line(center - 120, 120, center + 120, 120)
        pdf.setFont("Helvetica-Oblique", 12)
        pdf.drawCentredString(center, 102, "Authorized Signature")

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()
    except Exception as exc:  # reportlab raises a variety of errors
        logger.exception("Certificate rendering failed for %s", learner_name)
        raise CertificateRenderError(RENDER_FAILED_MESSAGE) from exc
