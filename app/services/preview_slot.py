# app/services/preview_slot.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

# released handles are remembered only to answer "gone" instead of "not found"
MAX_RELEASED_HANDLES = 256


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Preview:
    handle: str
    data: bytes
    created_at: datetime = field(default_factory=_utcnow)


class PreviewSlot:
    """
    Holds the one live preview of a session.

    Installing a new preview releases the previous handle right away, so a
    long editing session keeps at most one rendered PDF in memory.
    """

    def __init__(self):
        self._current: Optional[Preview] = None
        self._released: Dict[str, datetime] = {}

    @property
    def current(self) -> Optional[Preview]:
        return self._current

    def install(self, data: bytes) -> Preview:
        preview = Preview(handle=uuid.uuid4().hex, data=data)
        self.release()
        self._current = preview
        return preview

    def release(self) -> Optional[str]:
        if self._current is None:
            return None
        handle = self._current.handle
        self._released[handle] = _utcnow()
        while len(self._released) > MAX_RELEASED_HANDLES:
            self._released.pop(next(iter(self._released)))
        self._current = None
        return handle

    def get(self, handle: str) -> Optional[Preview]:
        if self._current is not None and self._current.handle == handle:
            return self._current
        return None

    def was_released(self, handle: str) -> bool:
        return handle in self._released
