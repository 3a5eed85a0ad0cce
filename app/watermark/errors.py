# app/watermark/errors.py
from __future__ import annotations


class WatermarkError(Exception):
    """Base for every failure raised by the watermark engine."""


class DocumentParseError(WatermarkError):
    """Source bytes could not be opened as a PDF."""


class SerializationError(WatermarkError):
    """The watermarked document could not be written back to bytes."""


class InvalidSpecError(WatermarkError, ValueError):
    """A watermark parameter is missing, malformed or out of range."""
