# scripts/render_sample_watermark.py
from __future__ import annotations

import argparse
import io
from pathlib import Path

from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.pdfgen import canvas

from app.watermark.compositor import render_watermarked_pdf
from app.watermark.spec import WatermarkSpec


def _sample_pdf() -> bytes:
    """Three pages of different sizes so per-page placement is visible."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for size in (letter, A4, landscape(letter)):
        w, h = size
        c.setPageSize(size)
        c.setFont("Helvetica", 10)
        c.drawString(40, h - 40, f"Sample page {w:.0f} x {h:.0f}")
        # crosshair at page centre
        c.line(w / 2 - 20, h / 2, w / 2 + 20, h / 2)
        c.line(w / 2, h / 2 - 20, w / 2, h / 2 + 20)
        c.showPage()
    c.save()
    return buf.getvalue()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", type=Path, help="PDF to watermark (default: generated sample)")
    parser.add_argument("--text", default="CONFIDENTIAL")
    parser.add_argument("--size", type=float, default=40)
    parser.add_argument("--color", default="#ff0000")
    parser.add_argument("--opacity", type=float, default=0.3)
    parser.add_argument("--rotate", type=float, nargs="+", default=[0, 45, 90, -30])
    parser.add_argument("--x", type=float, default=0)
    parser.add_argument("--y", type=float, default=0)
    args = parser.parse_args()

    if args.input and not args.input.exists():
        print(f"[SKIP] missing input: {args.input}")
        return

    src = args.input.read_bytes() if args.input else _sample_pdf()

    Path("out").mkdir(exist_ok=True)

    for angle in args.rotate:
        spec = WatermarkSpec(
            text=args.text,
            font_size_pt=args.size,
            color_hex=args.color,
            opacity=args.opacity,
            rotation_deg=angle,
            offset_x=args.x,
            offset_y=args.y,
        )
        outp = Path("out") / f"watermark_{angle:g}deg.pdf"
        print(f"[RUN] rotation={angle:g} -> {outp}")
        outp.write_bytes(render_watermarked_pdf(src, spec))
        print(f"[OK] wrote {outp}")

    print("\nDone. The watermark centre should sit on each crosshair (offsets 0).")


if __name__ == "__main__":
    main()
