# app/services/keys.py
from __future__ import annotations

import time
from urllib.parse import quote


def download_filename(now_ms: int | None = None) -> str:
    # Signed_<epoch-ms>.pdf
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"Signed_{now_ms}.pdf"


def safe_filename(name: str | None) -> str:
    # Keep it simple for Content-Disposition; browsers are picky.
    name = (name or "document.pdf").strip().replace("\n", " ").replace("\r", " ")
    name = name.replace("/", "_").replace("\\", "_") or "document.pdf"
    if not name.lower().endswith(".pdf"):
        name += ".pdf"
    return name


def content_disposition(filename: str, *, inline: bool) -> str:
    """
    inline=True opens in browser tab; inline=False forces download.
    """
    disp = "inline" if inline else "attachment"
    # filename*= for utf-8 safety
    return f"{disp}; filename*=UTF-8''{quote(safe_filename(filename))}"
