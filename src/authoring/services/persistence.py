"""Persistence gateway: saves and restores authoring sessions.

A save resolves overlays to effective values, upserts the session record
keyed by session_record_id, then creates a derived content record that
points back at the session. The content record is re-created on every
save by default so the saved-content list keeps each version.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.authoring.models.artifacts import (
    ContentAngle,
    ContextBundle,
    Draft,
    Outline,
    OutlineHook,
    SaveResult,
    TemplateRecommendation,
)
from src.authoring.models.enums import SessionStatus
from src.authoring.models.snapshot import PipelineSnapshot
from src.authoring.services.transport import PersistenceTransport, TransportError

logger = logging.getLogger(__name__)

CONTENT_RECORD_STATUS = "draft"


class PersistenceError(Exception):
    """Raised when a save or load fails.

    session_record_id is set when the session record was written but the
    content record was not, so a retry upserts the same session.
    """

    def __init__(self, message: str, session_record_id: Optional[str] = None):
        super().__init__(message)
        self.session_record_id = session_record_id


class SessionRecordNotFoundError(PersistenceError):
    pass


# ============================================================================
# Record builders
# ============================================================================


def _dump(model) -> Optional[Dict[str, Any]]:
    return model.model_dump(mode="json") if model is not None else None


def build_session_record(
    snapshot: PipelineSnapshot,
    status: SessionStatus = SessionStatus.IN_PROGRESS,
) -> Dict[str, Any]:
    """Serialize the effective snapshot into a session record."""
    outline = snapshot.effective_outline()
    final_content = snapshot.effective_draft_text()
    outline_edited = (
        snapshot.outline_overlay is not None
        and snapshot.outline_overlay != snapshot.canonical_outline
    )

    record: Dict[str, Any] = {
        "author_id": snapshot.author_id,
        "strategy": snapshot.strategy.value if snapshot.strategy else None,
        "content_type": snapshot.content_type.value,
        "current_phase": snapshot.phase.value,
        "status": status.value,
        "raw_input": snapshot.raw_input,
        "selected_icp_id": snapshot.selected_icp_id,
        "tracking_id": snapshot.tracking_id,
        "all_angles": [a.model_dump(mode="json") for a in snapshot.angle_candidates],
        "selected_angle": _dump(snapshot.selected_angle),
        "angles_context": _dump(snapshot.context_bundle),
        "approved_context": _dump(snapshot.approved_context),
        "title": _record_title(snapshot),
        "outline": _dump(outline),
        "original_outline": _dump(snapshot.canonical_outline) if outline_edited else None,
        "selected_hook": _dump(snapshot.selected_hook),
        "selected_template": _dump(snapshot.selected_template),
        "written_content": _dump(snapshot.canonical_draft),
        "final_content": final_content,
        "word_count": len(final_content.split()) if final_content else None,
    }
    if snapshot.session_record_id:
        record["id"] = snapshot.session_record_id
    return record


def build_content_record(snapshot: PipelineSnapshot, session_record_id: str) -> Dict[str, Any]:
    """Serialize the effective draft into a derived content record."""
    body = snapshot.effective_draft_text() or ""
    draft = snapshot.canonical_draft
    return {
        "session_id": session_record_id,
        "author_id": snapshot.author_id,
        "content_type": snapshot.content_type.value,
        "post_title": _record_title(snapshot),
        "post_body": body,
        "image_prompt": draft.image_prompts[0] if draft and draft.image_prompts else None,
        "selected_hook": snapshot.selected_hook.text if snapshot.selected_hook else None,
        "selected_template": (
            snapshot.selected_template.template_name if snapshot.selected_template else None
        ),
        "status": CONTENT_RECORD_STATUS,
    }


def _record_title(snapshot: PipelineSnapshot) -> Optional[str]:
    outline = snapshot.effective_outline()
    if outline is not None and outline.title:
        return outline.title
    if snapshot.canonical_draft is not None and snapshot.canonical_draft.title:
        return snapshot.canonical_draft.title
    if snapshot.selected_angle is not None:
        return snapshot.selected_angle.angle_title or snapshot.selected_angle.title
    return None


# ============================================================================
# Restore
# ============================================================================


def _first(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _parse(model_cls, value, label: str):
    if value is None:
        return None
    try:
        return model_cls.model_validate(value)
    except ValidationError as e:
        logger.warning("Dropping unreadable %s from session record: %s", label, e)
        return None


def hydrate_snapshot(record: Dict[str, Any]) -> PipelineSnapshot:
    """Rebuild a PipelineSnapshot from a stored session record.

    Accepts the current and legacy column names. Generated artifacts
    become canonical; stored user edits come back as overlays.
    """
    angles: List[ContentAngle] = []
    for raw in record.get("all_angles") or []:
        angle = _parse(ContentAngle, raw, "angle")
        if angle is not None:
            angles.append(angle)

    stored_outline = _parse(Outline, _first(record, "outline", "outline_data"), "outline")
    original_outline = _parse(Outline, record.get("original_outline"), "original outline")
    if original_outline is not None:
        canonical_outline, outline_edits = original_outline, stored_outline
    else:
        canonical_outline, outline_edits = stored_outline, None

    written = record.get("written_content")
    final_content = record.get("final_content")
    canonical_draft = None
    if isinstance(written, dict):
        canonical_draft = _parse(Draft, written, "written content")
    elif isinstance(written, str):
        canonical_draft = Draft(body=written)
    elif final_content:
        canonical_draft = Draft(body=final_content)

    draft_edits = None
    if canonical_draft is not None and final_content and final_content != canonical_draft.body:
        draft_edits = final_content

    fields: Dict[str, Any] = {
        "content_type": record.get("content_type"),
        "strategy": _first(record, "strategy", "content_strategy"),
        "raw_input": _first(record, "raw_input", "youtube_url") or "",
        "author_id": record.get("author_id"),
        "selected_icp_id": record.get("selected_icp_id"),
        "tracking_id": record.get("tracking_id"),
        "session_record_id": _first(record, "session_record_id", "id"),
    }
    fields = {k: v for k, v in fields.items() if v is not None}

    try:
        snapshot = PipelineSnapshot(
            angle_candidates=angles,
            selected_angle=_parse(ContentAngle, record.get("selected_angle"), "selected angle"),
            context_bundle=_parse(ContextBundle, record.get("angles_context"), "context"),
            approved_context=_parse(
                ContextBundle, _first(record, "approved_context", "full_context"), "approved context"
            ),
            canonical_outline=canonical_outline,
            outline_overlay=outline_edits,
            selected_hook=_parse(OutlineHook, record.get("selected_hook"), "hook"),
            selected_template=_parse(
                TemplateRecommendation, record.get("selected_template"), "template"
            ),
            canonical_draft=canonical_draft,
            draft_overlay=draft_edits,
            **fields,
        )
    except ValidationError as e:
        raise PersistenceError(f"Session record is not restorable: {e}") from e

    if snapshot.context_bundle is None and snapshot.approved_context is not None:
        snapshot.context_bundle = snapshot.approved_context.model_copy(deep=True)

    snapshot.phase = snapshot.furthest_phase()
    return snapshot


# ============================================================================
# Gateway
# ============================================================================


class PersistenceGateway:
    """Writes snapshots through a PersistenceTransport."""

    def __init__(self, transport: PersistenceTransport):
        self.transport = transport

    async def save(
        self,
        snapshot: PipelineSnapshot,
        new_content_record: bool = True,
        status: SessionStatus = SessionStatus.IN_PROGRESS,
    ) -> SaveResult:
        """Upsert the session record, then create a content record.

        The content record is skipped when new_content_record is False or
        there is no draft text yet (a progress save).
        """
        record = build_session_record(snapshot, status)
        try:
            stored = await self.transport.upsert_session(record)
        except TransportError as e:
            logger.error("Session upsert failed: %s", e)
            raise PersistenceError(f"Failed to save session: {e}") from e

        session_record_id = str(stored.get("id") or snapshot.session_record_id or "")
        if not session_record_id:
            raise PersistenceError("Session upsert returned no id")

        content_record_id = None
        body = snapshot.effective_draft_text()
        if new_content_record and body:
            try:
                created = await self.transport.create_content_record(
                    build_content_record(snapshot, session_record_id)
                )
            except TransportError as e:
                logger.error(
                    "Content record creation failed for session %s: %s", session_record_id, e
                )
                raise PersistenceError(
                    f"Session saved but content record failed: {e}",
                    session_record_id=session_record_id,
                ) from e
            if not created.get("id"):
                logger.error("Content record for session %s returned no id", session_record_id)
                raise PersistenceError(
                    "Session saved but content record returned no id",
                    session_record_id=session_record_id,
                )
            content_record_id = str(created["id"])
        elif new_content_record:
            logger.info("No draft text yet, saving progress only for %s", session_record_id)

        logger.info(
            "Saved session %s (content record: %s)", session_record_id, content_record_id
        )
        return SaveResult(session_record_id=session_record_id, content_record_id=content_record_id)

    async def load(self, session_record_id: str) -> PipelineSnapshot:
        try:
            record = await self.transport.load_session(session_record_id)
        except TransportError as e:
            raise PersistenceError(f"Failed to load session {session_record_id}: {e}") from e
        if record is None:
            raise SessionRecordNotFoundError(f"Session {session_record_id} not found")
        return hydrate_snapshot(record)
