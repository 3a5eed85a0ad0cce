import io

import pytest
from reportlab.lib.pagesizes import A4, letter
from reportlab.pdfgen import canvas

from app.config import Settings


def make_pdf(*sizes, mediabox_origin=None) -> bytes:
    """Small multi-page PDF; one page per size (default: one US letter page)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for w, h in (sizes or (letter,)):
        c.setPageSize((w, h))
        c.drawString(40, h - 40, f"page {w:.0f}x{h:.0f}")
        c.showPage()
    c.save()
    data = buf.getvalue()

    if mediabox_origin is None:
        return data

    # shift every media box so user space no longer starts at (0, 0)
    from pypdf import PdfReader, PdfWriter
    from pypdf.generic import RectangleObject

    dx, dy = mediabox_origin
    reader = PdfReader(io.BytesIO(data))
    writer = PdfWriter()
    for page in reader.pages:
        w, h = float(page.mediabox.width), float(page.mediabox.height)
        page.mediabox = RectangleObject([dx, dy, dx + w, dy + h])
        writer.add_page(page)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


@pytest.fixture
def letter_pdf() -> bytes:
    return make_pdf(letter)


@pytest.fixture
def mixed_pdf() -> bytes:
    return make_pdf(letter, A4, (400, 300))


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(debounce_upload_ms=0, debounce_slider_ms=20, debounce_text_ms=40)


@pytest.fixture
def pdf_factory():
    return make_pdf
