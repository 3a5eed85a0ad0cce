import asyncio
import io

import pytest
from pypdf import PdfReader

from app.watermark.compositor import composite, open_source, page_geometry, render_watermarked_pdf
from app.watermark.errors import DocumentParseError
from app.watermark.spec import WatermarkSpec


def _reader(data: bytes) -> PdfReader:
    return PdfReader(io.BytesIO(data))


def _contents(data: bytes) -> list:
    return [p.get_contents().get_data() for p in _reader(data).pages]


def _ext_gstates(page) -> list:
    res = page["/Resources"].get_object()
    gs = res.get("/ExtGState")
    if gs is None:
        return []
    gs = gs.get_object()
    return [gs[k].get_object() for k in gs]


def _xobjects(page) -> list:
    res = page["/Resources"].get_object()
    xo = res.get("/XObject")
    if xo is None:
        return []
    xo = xo.get_object()
    return [xo[k].get_object() for k in xo]


def test_every_page_gets_the_watermark(mixed_pdf):
    out = render_watermarked_pdf(mixed_pdf, WatermarkSpec(text="DRAFT"))

    src_pages = _reader(mixed_pdf).pages
    out_pages = _reader(out).pages
    assert len(out_pages) == len(src_pages) == 3

    for src, dst in zip(src_pages, out_pages):
        assert page_geometry(dst) == page_geometry(src)
        assert any(x.get("/Subtype") == "/Image" for x in _xobjects(dst))


def test_opacity_is_applied_at_composite_time(letter_pdf):
    out = render_watermarked_pdf(letter_pdf, WatermarkSpec(opacity=0.3))
    page = _reader(out).pages[0]

    alphas = [float(gs["/ca"]) for gs in _ext_gstates(page) if "/ca" in gs]
    assert any(abs(a - 0.3) < 1e-6 for a in alphas)


def test_same_input_renders_same_pages(letter_pdf):
    spec = WatermarkSpec(text="SAME", rotation_deg=30, offset_x=15)

    assert _contents(render_watermarked_pdf(letter_pdf, spec)) == _contents(
        render_watermarked_pdf(letter_pdf, spec)
    )


def test_rerender_does_not_compound(letter_pdf):
    source = bytes(letter_pdf)
    final = WatermarkSpec(text="FINAL", rotation_deg=-15)

    for i in range(3):
        render_watermarked_pdf(letter_pdf, WatermarkSpec(text=f"tweak {i}", rotation_deg=i * 10))
    after_tweaks = render_watermarked_pdf(letter_pdf, final)

    assert letter_pdf == source
    assert _contents(after_tweaks) == _contents(render_watermarked_pdf(source, final))
    # one image per page, not one per render
    assert len([x for x in _xobjects(_reader(after_tweaks).pages[0])
                if x.get("/Subtype") == "/Image"]) == 1


def test_shifted_media_box_is_respected(pdf_factory):
    src = pdf_factory((612, 792), mediabox_origin=(100, 200))
    spec = WatermarkSpec(rotation_deg=0)

    out = render_watermarked_pdf(src, spec)
    page = _reader(out).pages[0]

    assert float(page.mediabox.left) == 100
    assert float(page.mediabox.bottom) == 200
    assert any(x.get("/Subtype") == "/Image" for x in _xobjects(page))


def test_blank_text_still_renders(letter_pdf):
    out = render_watermarked_pdf(letter_pdf, WatermarkSpec(text=""))

    assert len(_reader(out).pages) == 1


@pytest.mark.parametrize("bad", [b"not a pdf", b"\x00" * 64])
def test_garbage_source_is_a_parse_error(bad):
    with pytest.raises(DocumentParseError):
        render_watermarked_pdf(bad, WatermarkSpec())


def test_open_source_reads_pages(mixed_pdf):
    assert len(open_source(mixed_pdf).pages) == 3


@pytest.mark.parametrize("source", [None, b""])
def test_composite_without_source_returns_none(source):
    assert asyncio.run(composite(source, WatermarkSpec())) is None


def test_composite_matches_sync_render(letter_pdf):
    spec = WatermarkSpec(text="ASYNC")

    out = asyncio.run(composite(letter_pdf, spec))

    assert _contents(out) == _contents(render_watermarked_pdf(letter_pdf, spec))


def _concat(m, n):
    a, b, c, d, e, f = m
    na, nb, nc, nd, ne, nf = n
    return (
        a * na + b * nc,
        a * nb + b * nd,
        c * na + d * nc,
        c * nb + d * nd,
        e * na + f * nc + ne,
        e * nb + f * nd + nf,
    )


def _image_centres(page) -> list:
    """Page-space centre of every image XObject painted by the page's content stream."""
    xobjects = page["/Resources"]["/XObject"].get_object()
    ctm, stack, centres = (1, 0, 0, 1, 0, 0), [], []
    for operands, op in page.get_contents().operations:
        if op == b"q":
            stack.append(ctm)
        elif op == b"Q":
            ctm = stack.pop()
        elif op == b"cm":
            ctm = _concat([float(v) for v in operands], ctm)
        elif op == b"Do" and xobjects[operands[0]].get_object().get("/Subtype") == "/Image":
            a, b, c, d, e, f = ctm
            # the image occupies the unit square of its own space
            centres.append((0.5 * a + 0.5 * c + e, 0.5 * b + 0.5 * d + f))
    return centres


@pytest.mark.parametrize("rotation", [0, 45, 90, 135, 180, 270, -30, 400])
@pytest.mark.parametrize("origin", [None, (100, 200)])
@pytest.mark.parametrize("offset", [(0, 0), (100, -50)])
def test_image_centre_lands_on_page_centre_plus_offset(pdf_factory, rotation, origin, offset):
    src = pdf_factory((612, 792), mediabox_origin=origin)
    ox, oy = offset
    spec = WatermarkSpec(text="CONFIDENTIAL", rotation_deg=rotation, offset_x=ox, offset_y=oy)

    page = _reader(render_watermarked_pdf(src, spec)).pages[0]
    left, bottom = origin or (0, 0)

    (cx, cy), = _image_centres(page)
    assert cx == pytest.approx(left + 306 + ox, abs=0.05)
    assert cy == pytest.approx(bottom + 396 + oy, abs=0.05)


def test_each_page_size_centres_its_own_watermark(mixed_pdf):
    spec = WatermarkSpec(rotation_deg=60, offset_x=-20, offset_y=10)

    for page in _reader(render_watermarked_pdf(mixed_pdf, spec)).pages:
        g = page_geometry(page)
        (cx, cy), = _image_centres(page)
        assert cx == pytest.approx(g.left + g.width / 2 - 20, abs=0.05)
        assert cy == pytest.approx(g.bottom + g.height / 2 + 10, abs=0.05)
