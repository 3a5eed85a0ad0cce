# app/watermark/compositor.py
from __future__ import annotations

import io
from typing import Dict, List

from fastapi.concurrency import run_in_threadpool
from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.config import Settings, get_settings
from app.watermark.errors import DocumentParseError, SerializationError
from app.watermark.placement import PageGeometry, solve
from app.watermark.rasterizer import RasterImage, rasterize
from app.watermark.spec import WatermarkSpec


def page_geometry(page: PageObject) -> PageGeometry:
    box = page.mediabox
    return PageGeometry(
        width=float(box.width),
        height=float(box.height),
        left=float(box.left),
        bottom=float(box.bottom),
    )


def open_source(source_bytes: bytes) -> PdfReader:
    """
    Fresh reader over the untouched upload. Every render calls this, so
    nothing from an earlier render can leak into the next one.
    """
    try:
        reader = PdfReader(io.BytesIO(source_bytes))
        if reader.is_encrypted and not reader.decrypt(""):
            raise DocumentParseError("PDF is password protected")
        # force the page tree to load so broken files fail here
        len(reader.pages)
    except DocumentParseError:
        raise
    except (PyPdfError, ValueError, KeyError) as e:
        raise DocumentParseError(f"Not a readable PDF: {type(e).__name__}: {e}") from e
    return reader


def _build_overlays(
    geometries: List[PageGeometry],
    raster: RasterImage,
    spec: WatermarkSpec,
) -> Dict[PageGeometry, PageObject]:
    """
    One overlay page per distinct page geometry, all in a single reportlab
    document so the PNG is embedded once and shared.
    """
    unique: List[PageGeometry] = []
    for g in geometries:
        if g not in unique:
            unique.append(g)

    img = ImageReader(io.BytesIO(raster.png_bytes))
    img_w, img_h = raster.logical_size

    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for g in unique:
        c.setPageSize((g.width, g.height))

        p = solve(g.size, (img_w, img_h), spec.rotation_deg, spec.offset_x, spec.offset_y)

        c.saveState()
        # media box origin shifts user space on some PDFs
        c.translate(g.left + p.draw_x, g.bottom + p.draw_y)
        c.rotate(spec.rotation_deg)
        c.setFillAlpha(spec.opacity)
        c.drawImage(img, 0, 0, width=img_w, height=img_h, mask="auto")
        c.restoreState()
        c.showPage()
    c.save()

    buf.seek(0)
    overlay_reader = PdfReader(buf)
    return {g: overlay_reader.pages[i] for i, g in enumerate(unique)}


def render_watermarked_pdf(
    source_bytes: bytes,
    spec: WatermarkSpec,
    *,
    settings: Settings | None = None,
) -> bytes:
    settings = settings or get_settings()

    reader = open_source(source_bytes)
    pages = list(reader.pages)
    geometries = [page_geometry(p) for p in pages]

    raster = rasterize(
        spec.text,
        spec.font_size_pt,
        spec.color_hex,
        scale=settings.raster_scale,
        font_path=settings.font_path,
    )
    overlays = _build_overlays(geometries, raster, spec)

    writer = PdfWriter()
    for page, g in zip(pages, geometries):
        # merge on the writer-owned copy, not the reader page
        out_page = writer.add_page(page)
        out_page.merge_page(overlays[g])

    if reader.metadata:
        writer.add_metadata({k: v for k, v in reader.metadata.items() if isinstance(v, str)})

    out = io.BytesIO()
    try:
        writer.write(out)
    except (PyPdfError, ValueError, KeyError, TypeError, OSError) as e:
        raise SerializationError(f"Could not write PDF: {type(e).__name__}: {e}") from e
    return out.getvalue()


async def composite(
    source_bytes: bytes | None,
    spec: WatermarkSpec,
    *,
    settings: Settings | None = None,
) -> bytes | None:
    """
    Watermark every page of `source_bytes`. Returns None when nothing has
    been uploaded yet; callers must check.
    """
    if not source_bytes:
        return None
    return await run_in_threadpool(render_watermarked_pdf, source_bytes, spec, settings=settings)
