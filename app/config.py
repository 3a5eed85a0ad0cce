# app/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

# Local dev convenience: loads from .env if present.
load_dotenv()

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        val = int(raw.strip())
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if val < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {val}")
    return val


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(x.strip() for x in raw.split(",") if x.strip())


@dataclass(frozen=True)
class Settings:
    # TTF/OTF used for every watermark. None -> DejaVu Sans, then Pillow's bundled font.
    font_path: str | None = None

    # Supersampling factor for the raster (pixels per point)
    raster_scale: int = 3

    # Quiet periods per input class
    debounce_upload_ms: int = 0
    debounce_slider_ms: int = 150
    debounce_text_ms: int = 800

    max_upload_mb: int = 50
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS

    def debounce_seconds(self, input_kind: str | None) -> float:
        k = (input_kind or "").strip().lower()
        if k == "upload":
            ms = self.debounce_upload_ms
        elif k == "slider":
            ms = self.debounce_slider_ms
        else:
            ms = self.debounce_text_ms  # free text waits longest
        return ms / 1000.0

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def load_settings() -> Settings:
    return Settings(
        font_path=os.getenv("WATERMARK_FONT_PATH") or None,
        raster_scale=_env_int("WATERMARK_RASTER_SCALE", 3, minimum=2),
        debounce_upload_ms=_env_int("DEBOUNCE_UPLOAD_MS", 0),
        debounce_slider_ms=_env_int("DEBOUNCE_SLIDER_MS", 150),
        debounce_text_ms=_env_int("DEBOUNCE_TEXT_MS", 800),
        max_upload_mb=_env_int("MAX_UPLOAD_MB", 50, minimum=1),
        cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )


_settings_singleton: Settings | None = None


def get_settings() -> Settings:
    global _settings_singleton
    if _settings_singleton is None:
        _settings_singleton = load_settings()
    return _settings_singleton
