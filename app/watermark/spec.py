# app/watermark/spec.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields, replace
from typing import Any

from app.watermark.errors import InvalidSpecError

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# upper bounds for the supersampled raster
MAX_FONT_SIZE_PT = 400
MAX_TEXT_LEN = 500

# JSON key -> dataclass attribute
_JSON_KEYS = {
    "text": "text",
    "font_size": "font_size_pt",
    "color": "color_hex",
    "opacity": "opacity",
    "rotation": "rotation_deg",
    "offset_x": "offset_x",
    "offset_y": "offset_y",
}


@dataclass(frozen=True)
class WatermarkSpec:
    """
    Everything needed for one render. Rebuilt from the request on every
    update, never mutated in place.
    """
    text: str = "CONFIDENTIAL"
    font_size_pt: float = 40.0
    color_hex: str = "#ff0000"
    opacity: float = 0.3  # applied at composite time, not baked into the raster
    rotation_deg: float = 45.0
    offset_x: float = 0.0  # points; +x right of page centre
    offset_y: float = 0.0  # points; +y above page centre

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise InvalidSpecError("text must be a string")
        if len(self.text) > MAX_TEXT_LEN:
            raise InvalidSpecError(
                f"text must be at most {MAX_TEXT_LEN} characters, got {len(self.text)}"
            )
        if not _HEX_COLOR.match(self.color_hex or ""):
            raise InvalidSpecError(f"color must be #rgb or #rrggbb, got {self.color_hex!r}")
        if not 0 < self.font_size_pt <= MAX_FONT_SIZE_PT:
            raise InvalidSpecError(
                f"font_size must be within (0, {MAX_FONT_SIZE_PT}], got {self.font_size_pt}"
            )
        if not 0.0 <= self.opacity <= 1.0:
            raise InvalidSpecError(f"opacity must be within [0, 1], got {self.opacity}")

    @property
    def opacity_percent(self) -> str:
        return f"{round(self.opacity * 100)}%"

    def merged(self, changes: dict) -> "WatermarkSpec":
        """Return a new spec with the JSON-style `changes` applied on top."""
        return replace(self, **_coerce(changes))


def _num(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise InvalidSpecError(f"{key} must be a number")
    try:
        out = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidSpecError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(out):
        raise InvalidSpecError(f"{key} must be finite, got {value!r}")
    return out


def _coerce(j: dict) -> dict:
    if not isinstance(j, dict):
        raise InvalidSpecError("fields must be an object")

    out: dict = {}
    for key, value in j.items():
        attr = _JSON_KEYS.get(key)
        if attr is None:
            raise InvalidSpecError(f"Unknown watermark field: {key!r}")
        if attr == "text":
            out[attr] = "" if value is None else str(value)
        elif attr == "color_hex":
            out[attr] = str(value or "").strip()
        else:
            out[attr] = _num(value, key)
    return out


def spec_from_json(j: dict | None, base: WatermarkSpec | None = None) -> WatermarkSpec:
    return (base or WatermarkSpec()).merged(j or {})


def spec_to_json(spec: WatermarkSpec) -> dict:
    attrs = {f.name for f in fields(spec)}
    out = {key: getattr(spec, attr) for key, attr in _JSON_KEYS.items() if attr in attrs}
    out["opacity_percent"] = spec.opacity_percent
    return out
