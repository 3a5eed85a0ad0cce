# app/services/watermark_session.py
from __future__ import annotations

import asyncio
import sys
import uuid
from typing import Dict, Optional, Tuple

from app.config import Settings, get_settings
from app.services.debounce import Debouncer
from app.services.keys import download_filename
from app.services.preview_slot import Preview, PreviewSlot
from app.watermark.compositor import composite
from app.watermark.spec import WatermarkSpec, spec_to_json


class WatermarkSession:
    """
    One uploaded PDF plus the watermark settings currently applied to it.

    The uploaded bytes are never modified; every render starts again from
    them. Renders run one at a time, and a render that has started always
    finishes and installs its preview even if the spec changed meanwhile.
    """

    def __init__(
        self,
        source_bytes: bytes | None = None,
        filename: str | None = None,
        *,
        spec: WatermarkSpec | None = None,
        settings: Settings | None = None,
    ):
        self.id = uuid.uuid4().hex
        self.settings = settings or get_settings()
        self.filename = filename
        self.spec = spec or WatermarkSpec()

        self.preview = PreviewSlot()
        self.debouncer = Debouncer()

        self.last_error: str | None = None
        self.render_count = 0
        self.rendering = False

        self._source: bytes | None = bytes(source_bytes) if source_bytes else None
        self._lock = asyncio.Lock()

    @property
    def has_source(self) -> bool:
        return self._source is not None

    @property
    def source_bytes(self) -> bytes | None:
        return self._source

    def load_source(self, data: bytes, filename: str | None = None) -> None:
        """Swap in a new upload. Previews of the old file stay until the next render."""
        self._source = bytes(data) if data else None
        self.filename = filename
        self.last_error = None

    def update_spec(self, fields: dict, input_kind: str | None = "text") -> float:
        """
        Apply `fields` and schedule a debounced preview render.
        Validation happens before anything changes. Returns the delay used.
        """
        self.spec = self.spec.merged(fields or {})
        return self.request_render(input_kind)

    def request_render(self, input_kind: str | None) -> float:
        delay = self.settings.debounce_seconds(input_kind)
        self.debouncer.schedule(delay, self._render_in_background)
        return delay

    async def render_preview(self) -> Optional[Preview]:
        """
        Render with the current spec and install the result as the preview.
        Failures are recorded in last_error and re-raised; the previous
        preview is kept.
        """
        async with self._lock:
            source, spec = self._source, self.spec
            self.rendering = True
            try:
                data = await composite(source, spec, settings=self.settings)
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                raise
            finally:
                self.rendering = False

            if data is None:
                return None

            preview = self.preview.install(data)
            self.render_count += 1
            self.last_error = None
            print(f"Session {self.id}: preview {preview.handle} ({len(data)} bytes)")
            return preview

    async def render_now(self) -> Optional[Preview]:
        self.debouncer.cancel()
        return await self.render_preview()

    async def _render_in_background(self) -> None:
        try:
            await self.render_preview()
        except Exception as e:
            print(f"Session {self.id}: preview ERROR {type(e).__name__}: {e}", file=sys.stderr)

    async def export(self, fields: dict | None = None) -> Optional[Tuple[str, bytes]]:
        """
        Fresh render for download. `fields` override the session spec for
        this export only. None when no PDF has been uploaded.
        """
        spec = self.spec.merged(fields) if fields else self.spec
        async with self._lock:
            data = await composite(self._source, spec, settings=self.settings)
        if data is None:
            return None
        return download_filename(), data

    def close(self) -> None:
        self.debouncer.cancel()
        self.preview.release()

    def status(self) -> dict:
        current = self.preview.current
        return {
            "session_id": self.id,
            "filename": self.filename,
            "has_source": self.has_source,
            "spec": spec_to_json(self.spec),
            "preview_handle": current.handle if current else None,
            "rendering": self.rendering,
            "pending": self.debouncer.pending,
            "render_count": self.render_count,
            "last_error": self.last_error,
        }


class SessionRegistry:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings
        self._sessions: Dict[str, WatermarkSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, source_bytes: bytes | None = None, filename: str | None = None) -> WatermarkSession:
        session = WatermarkSession(source_bytes, filename, settings=self.settings)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Optional[WatermarkSession]:
        return self._sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True


_registry_singleton: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    global _registry_singleton
    if _registry_singleton is None:
        _registry_singleton = SessionRegistry()
    return _registry_singleton
