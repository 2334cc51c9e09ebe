"""Authoring Session API Endpoints.

Drives an authoring session through its phases: input, angles, context,
outline (with structured edits), hook/template selection, draft, save.
Sessions live in process memory; saved sessions can be restored.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_session_registry
from src.api.schemas.sessions import (
    DraftEditRequest,
    InputRequest,
    InsightSelectionRequest,
    OutlineEditRequest,
    RestoreRequest,
    SaveRequest,
    SaveResponse,
    SelectionRequest,
    SessionResponse,
)
from src.api.services.session_registry import AuthoringSession, SessionRegistry
from src.authoring.services.outline_editor import OutlineEditError
from src.authoring.services.persistence import PersistenceError, SessionRecordNotFoundError
from src.authoring.services.state_machine import GenerationError, InvalidTransitionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@contextmanager
def authoring_errors():
    """Map authoring errors onto HTTP status codes."""
    try:
        yield
    except (InvalidTransitionError, OutlineEditError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except SessionRecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "session_record_id": e.session_record_id},
        )


def _session_or_404(registry: SessionRegistry, session_id: str) -> AuthoringSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


# =============================================================================
# Lifecycle
# =============================================================================


@router.post("", response_model=SessionResponse, status_code=201)
def create_session(registry: SessionRegistry = Depends(get_session_registry)):
    return registry.describe(registry.create())


@router.post("/restore", response_model=SessionResponse, status_code=201)
async def restore_session(
    body: RestoreRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Start a new session from a saved session record."""
    with authoring_errors():
        session = await registry.restore(body.session_record_id)
    return registry.describe(session)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    return registry.describe(_session_or_404(registry, session_id))


@router.delete("/{session_id}")
def delete_session(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    if not registry.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"deleted": session_id}


# =============================================================================
# Input, angles, context
# =============================================================================


@router.post("/{session_id}/input", response_model=SessionResponse)
def set_input(
    session_id: str,
    body: InputRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.set_input(
            body.raw_input,
            strategy=body.strategy,
            content_type=body.content_type,
            author_id=body.author_id,
            selected_icp_id=body.selected_icp_id,
        )
    return registry.describe(session)


@router.post("/{session_id}/angles", response_model=SessionResponse)
async def request_angles(
    session_id: str, registry: SessionRegistry = Depends(get_session_registry)
):
    """Generate angle candidates. Blocks until the generation service answers."""
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        await session.controller.request_angles()
    return registry.describe(session)


@router.post("/{session_id}/angles/select", response_model=SessionResponse)
def select_angle(
    session_id: str,
    body: SelectionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    if body.target() is None:
        raise HTTPException(status_code=422, detail="Give index or key of the angle")
    with authoring_errors():
        session.controller.select_angle(body.target())
    return registry.describe(session)


@router.post("/{session_id}/context/insights/{insight_id}", response_model=SessionResponse)
def set_insight_selected(
    session_id: str,
    insight_id: str,
    body: InsightSelectionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.set_insight_selected(insight_id, body.selected)
    return registry.describe(session)


@router.post("/{session_id}/context/approve", response_model=SessionResponse)
def approve_context(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.approve_context()
    return registry.describe(session)


# =============================================================================
# Outline
# =============================================================================


@router.post("/{session_id}/outline", response_model=SessionResponse)
async def request_outline(
    session_id: str, registry: SessionRegistry = Depends(get_session_registry)
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        await session.controller.request_outline()
    return registry.describe(session)


@router.post("/{session_id}/outline/edit", response_model=SessionResponse)
def edit_outline(
    session_id: str,
    body: OutlineEditRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    editor = session.editor
    with authoring_errors():
        if body.op == "rename_section":
            editor.rename_section(body.section_index, body.heading)
        elif body.op == "move_section":
            editor.move_section(body.section_index, body.direction)
        elif body.op == "add_section":
            editor.add_section()
        elif body.op == "remove_section":
            editor.remove_section(body.section_index)
        elif body.op == "add_key_point":
            editor.add_key_point(body.section_index)
        elif body.op == "update_key_point":
            editor.update_key_point(body.section_index, body.point_index, body.text)
        elif body.op == "remove_key_point":
            editor.remove_key_point(body.section_index, body.point_index)
    return registry.describe(session)


@router.post("/{session_id}/outline/reset", response_model=SessionResponse)
def reset_outline(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    """Revert the outline to the generated version."""
    session = _session_or_404(registry, session_id)
    session.editor.reset()
    return registry.describe(session)


@router.post("/{session_id}/hook", response_model=SessionResponse)
def select_hook(
    session_id: str,
    body: SelectionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.select_hook(body.target())
    return registry.describe(session)


@router.post("/{session_id}/template", response_model=SessionResponse)
def select_template(
    session_id: str,
    body: SelectionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.select_template(body.target())
    return registry.describe(session)


@router.post("/{session_id}/outline/advance", response_model=SessionResponse)
async def advance_from_outline(
    session_id: str, registry: SessionRegistry = Depends(get_session_registry)
):
    """Go to hook selection, or straight to the draft when the outline has no hooks."""
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        await session.controller.advance_from_outline()
    return registry.describe(session)


# =============================================================================
# Draft and save
# =============================================================================


@router.post("/{session_id}/draft", response_model=SessionResponse)
async def request_draft(
    session_id: str, registry: SessionRegistry = Depends(get_session_registry)
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        await session.controller.request_draft()
    return registry.describe(session)


@router.post("/{session_id}/draft/edit", response_model=SessionResponse)
def edit_draft(
    session_id: str,
    body: DraftEditRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.edit_draft(body.text)
    return registry.describe(session)


@router.post("/{session_id}/draft/reset", response_model=SessionResponse)
def reset_draft(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    session = _session_or_404(registry, session_id)
    session.controller.reset_draft()
    return registry.describe(session)


@router.post("/{session_id}/revise", response_model=SessionResponse)
def revise_outline(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    """Go back from the draft to the outline. The draft is discarded."""
    session = _session_or_404(registry, session_id)
    with authoring_errors():
        session.controller.revise_outline()
    return registry.describe(session)


@router.post("/{session_id}/save", response_model=SaveResponse)
async def save_session(
    session_id: str,
    body: Optional[SaveRequest] = None,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _session_or_404(registry, session_id)
    body = body or SaveRequest()
    with authoring_errors():
        result = await session.controller.save(new_content_record=body.new_content_record)
    return SaveResponse(
        session_record_id=result.session_record_id,
        content_record_id=result.content_record_id,
        session=registry.describe(session),
    )
