"""API route handlers and Pydantic response schemas."""

import logging
from pathlib import PurePath
from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from omnipedia.errors import PipelineBusyError
from omnipedia.orchestrator.state import is_processing
from omnipedia.schemas.generation import GenerationItem, TokenUsage, UsageTotals
from omnipedia.schemas.plan import ComponentPart, ObjectPlan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_MEDIA_TYPES = {
    ".mp4": "video/mp4",
    ".wav": "audio/wav",
}


# ============================================================================
# Request/Response Schemas
# ============================================================================

class GenerateRequest(BaseModel):
    """Request schema for POST /api/generate."""
    prompt: str = Field(min_length=1)
    animate: bool = True


class SurpriseRequest(BaseModel):
    """Request schema for POST /api/surprise."""
    animate: bool = True


class GenerateResponse(BaseModel):
    """Response schema for an accepted generation run."""
    item_id: Optional[str] = None
    status: str
    status_url: str = "/api/session"


class CredentialsRequest(BaseModel):
    """Request schema for PUT /api/credentials."""
    api_key: str = Field(min_length=1)


class CredentialsResponse(BaseModel):
    """Whether a key is configured. The key itself is never returned."""
    configured: bool
    credential_required: bool


class ItemResponse(BaseModel):
    """One history item with media paths rewritten to API URLs."""
    id: str
    prompt: str
    timestamp: int
    has_video: bool
    plan: Optional[ObjectPlan] = None
    components: list[ComponentPart] = []
    narration_script: Optional[str] = None
    infographic_url: Optional[str] = None
    assembled_url: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    usage: list[TokenUsage] = []
    total_cost: float = 0.0

    @classmethod
    def from_item(cls, item: GenerationItem) -> "ItemResponse":
        return cls(
            id=item.id,
            prompt=item.prompt,
            timestamp=item.timestamp,
            has_video=item.has_video,
            plan=item.plan,
            components=list(item.components),
            narration_script=item.narration_script,
            infographic_url=item.infographic_url,
            assembled_url=item.assembled_url,
            video_url=_media_url(item.id, item.video_url),
            audio_url=_media_url(item.id, item.audio_url),
            usage=list(item.usage),
            total_cost=item.total_cost,
        )


class HistoryEntry(BaseModel):
    """Compact history listing entry."""
    id: str
    prompt: str
    timestamp: int
    has_video: bool
    display_title: Optional[str] = None
    calls: int
    total_cost: float


class SessionResponse(BaseModel):
    """Response schema for GET /api/session."""
    status: str
    step_index: int
    is_processing: bool
    error: Optional[str] = None
    credential_required: bool
    current_item: Optional[ItemResponse] = None
    totals: UsageTotals


class ClearHistoryResponse(BaseModel):
    removed: int


def _media_url(item_id: str, file_uri: Optional[str]) -> Optional[str]:
    """Map a saved asset's file URI to its /api/media URL."""
    if not file_uri:
        return None
    filename = PurePath(urlparse(file_uri).path).name
    return f"/api/media/{item_id}/{filename}"


def _runtime(request: Request):
    return request.app.state.runtime


# ============================================================================
# Endpoint Handlers
# ============================================================================

@router.post("/generate", status_code=202, response_model=GenerateResponse)
async def generate(request: Request, body: GenerateRequest, background_tasks: BackgroundTasks):
    """Start a generation run in the background.

    Creates the history item immediately and returns 202 Accepted with its
    id; progress is polled through GET /api/session.
    """
    runtime = _runtime(request)
    try:
        started = runtime.runner.start(body.prompt, body.animate)
    except PipelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if started is None:
        raise HTTPException(status_code=401, detail="API key not configured")

    item, token = started
    background_tasks.add_task(runtime.runner.execute, item, token)
    logger.info(f"Accepted generation {item.id} for prompt: {body.prompt[:50]}")
    return GenerateResponse(item_id=item.id, status=runtime.session.status.value)


@router.post("/surprise", status_code=202, response_model=GenerateResponse)
async def surprise(request: Request, body: SurpriseRequest, background_tasks: BackgroundTasks):
    """Pick a random topic and run the pipeline for it in the background."""
    runtime = _runtime(request)
    if not runtime.credentials.is_configured:
        runtime.session.require_credentials()
        raise HTTPException(status_code=401, detail="API key not configured")
    try:
        token = runtime.session.begin_random()
    except PipelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    background_tasks.add_task(runtime.runner.surprise, body.animate, token)
    return GenerateResponse(status=runtime.session.status.value)


@router.get("/session", response_model=SessionResponse)
async def get_session(request: Request):
    """Current status, error, selected item and session-wide usage totals."""
    snapshot = _runtime(request).session.snapshot()
    current = snapshot.current_item
    return SessionResponse(
        status=snapshot.status.value,
        step_index=snapshot.step_index,
        is_processing=is_processing(snapshot.status),
        error=snapshot.error,
        credential_required=snapshot.credential_required,
        current_item=ItemResponse.from_item(current) if current else None,
        totals=snapshot.totals,
    )


@router.get("/history", response_model=list[HistoryEntry])
async def list_history(request: Request):
    """List history items, newest first."""
    history = _runtime(request).session.history
    return [
        HistoryEntry(
            id=item.id,
            prompt=item.prompt,
            timestamp=item.timestamp,
            has_video=item.has_video,
            display_title=item.plan.display_title if item.plan else None,
            calls=len(item.usage),
            total_cost=item.total_cost,
        )
        for item in reversed(history)
    ]


@router.get("/history/{item_id}", response_model=ItemResponse)
async def get_history_item(request: Request, item_id: str):
    """Full detail for one history item."""
    item = _runtime(request).session.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return ItemResponse.from_item(item)


@router.post("/history/{item_id}/select", response_model=ItemResponse)
async def select_history_item(request: Request, item_id: str):
    """Make a history item the current one."""
    try:
        item = _runtime(request).session.select(item_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Item not found")
    return ItemResponse.from_item(item)


@router.delete("/history", response_model=ClearHistoryResponse)
async def clear_history(request: Request):
    """Delete every item and its saved media; an in-flight run is abandoned."""
    removed = _runtime(request).session.clear_history()
    logger.info(f"Cleared {removed} history item(s)")
    return ClearHistoryResponse(removed=removed)


@router.get("/credentials", response_model=CredentialsResponse)
async def get_credentials(request: Request):
    runtime = _runtime(request)
    return CredentialsResponse(
        configured=runtime.credentials.is_configured,
        credential_required=runtime.session.credential_required,
    )


@router.put("/credentials", response_model=CredentialsResponse)
async def set_credentials(request: Request, body: CredentialsRequest):
    """Save a new API key and clear the credential prompt."""
    runtime = _runtime(request)
    try:
        runtime.credentials.set(body.api_key)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    runtime.session.credentials_updated()
    return CredentialsResponse(configured=True, credential_required=False)


@router.delete("/credentials", response_model=CredentialsResponse)
async def clear_credentials(request: Request):
    """Forget the API key; the next run will ask for a new one."""
    runtime = _runtime(request)
    runtime.credentials.clear()
    runtime.session.require_credentials()
    return CredentialsResponse(configured=False, credential_required=True)


@router.get("/media/{item_id}/{filename}")
async def get_media(request: Request, item_id: str, filename: str):
    """Serve a saved video or narration file."""
    path = _runtime(request).file_manager.resolve_asset(item_id, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return FileResponse(
        path=str(path),
        media_type=_MEDIA_TYPES.get(path.suffix, "application/octet-stream"),
        filename=path.name,
    )
