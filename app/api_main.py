# app/api_main.py
from __future__ import annotations

import sys

from fastapi import Body, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.services.keys import content_disposition
from app.services.watermark_session import WatermarkSession, get_registry
from app.watermark.errors import DocumentParseError, InvalidSpecError, SerializationError
from app.watermark.spec import spec_to_json

settings = get_settings()

app = FastAPI(title="PDF Watermark API")

# CORS for local frontend dev (React/Vite/etc.)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Preview-Handle"],
)

PDF_MEDIA_TYPE = "application/pdf"


def _session_or_404(session_id: str) -> WatermarkSession:
    session = get_registry().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _pdf_response(data: bytes, filename: str, *, inline: bool, headers: dict | None = None) -> Response:
    h = {"Content-Disposition": content_disposition(filename, inline=inline)}
    h.update(headers or {})
    return Response(content=data, media_type=PDF_MEDIA_TYPE, headers=h)


def _fields_from_body(body: dict | None) -> dict:
    fields = (body or {}).get("fields")
    if fields is None:
        return {}
    if not isinstance(fields, dict):
        raise HTTPException(status_code=400, detail="fields must be an object")
    return fields


@app.get("/")
def root():
    return {"ok": True, "try": ["/docs", "/api/health", "/api/sessions"]}


@app.get("/api/health")
def health():
    return {"ok": True}


# ------------------------------------------------------------
# Upload: raw PDF body -> new session
# ------------------------------------------------------------
@app.post("/api/sessions", status_code=201)
async def create_session(request: Request, filename: str | None = Query(default=None)):
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {settings.max_upload_mb} MB")

    session = get_registry().create(data, filename)
    session.request_render("upload")
    print(f"Session {session.id}: uploaded {filename or '(unnamed)'} ({len(data)} bytes)")
    return session.status()


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str):
    return _session_or_404(session_id).status()


@app.delete("/api/sessions/{session_id}")
def delete_session(session_id: str):
    if not get_registry().drop(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}


# ------------------------------------------------------------
# Spec edits (debounced preview)
# ------------------------------------------------------------
@app.patch("/api/sessions/{session_id}/spec")
async def update_spec(session_id: str, body: dict = Body(...)):
    """
    body = { "fields": {"text": "...", "rotation": 30, ...}, "input": "text" | "slider" }
    """
    session = _session_or_404(session_id)
    fields = _fields_from_body(body)
    input_kind = body.get("input") or "text"
    if not isinstance(input_kind, str):
        raise HTTPException(status_code=400, detail="input must be a string")

    try:
        delay = session.update_spec(fields, input_kind)
    except InvalidSpecError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "ok": True,
        "spec": spec_to_json(session.spec),
        "scheduled_in_ms": int(round(delay * 1000)),
    }


@app.post("/api/sessions/{session_id}/render")
async def render_session(session_id: str):
    session = _session_or_404(session_id)
    try:
        preview = await session.render_now()
    except InvalidSpecError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentParseError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SerializationError as e:
        print(f"Session {session_id}: render ERROR {e}", file=sys.stderr)
        raise HTTPException(status_code=500, detail=str(e))

    if preview is None:
        raise HTTPException(status_code=400, detail="Please upload a PDF first")
    return session.status()


# ------------------------------------------------------------
# Previews
# ------------------------------------------------------------
@app.get("/api/sessions/{session_id}/preview")
def get_preview(session_id: str):
    session = _session_or_404(session_id)
    current = session.preview.current
    if current is None:
        raise HTTPException(status_code=404, detail="No preview rendered yet")
    return _pdf_response(
        current.data,
        session.filename or "preview.pdf",
        inline=True,
        headers={"X-Preview-Handle": current.handle, "Cache-Control": "no-store"},
    )


@app.get("/api/sessions/{session_id}/previews/{handle}")
def get_preview_by_handle(session_id: str, handle: str):
    session = _session_or_404(session_id)
    preview = session.preview.get(handle)
    if preview is None:
        if session.preview.was_released(handle):
            raise HTTPException(status_code=410, detail="Preview was replaced")
        raise HTTPException(status_code=404, detail="Preview not found")
    return _pdf_response(preview.data, session.filename or "preview.pdf", inline=True)


# ------------------------------------------------------------
# Final export
# ------------------------------------------------------------
@app.post("/api/sessions/{session_id}/download")
async def download(session_id: str, body: dict | None = Body(default=None)):
    session = _session_or_404(session_id)
    fields = _fields_from_body(body)

    try:
        result = await session.export(fields)
    except InvalidSpecError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentParseError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SerializationError as e:
        print(f"Session {session_id}: export ERROR {e}", file=sys.stderr)
        raise HTTPException(status_code=500, detail=str(e))

    if result is None:
        raise HTTPException(status_code=400, detail="Please upload a PDF first")

    filename, data = result
    return _pdf_response(data, filename, inline=False)
