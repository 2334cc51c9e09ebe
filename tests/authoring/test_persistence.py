"""Tests for the persistence gateway.

Covers: session/content record creation and reuse, effective values in
stored records, partial failures, and restoring snapshots from current
and legacy session records.
"""

from unittest.mock import AsyncMock

import pytest

from src.authoring.models.artifacts import (
    ContentAngle,
    ContextBundle,
    Draft,
    Outline,
    OutlineHook,
    TemplateRecommendation,
)
from src.authoring.models.enums import ContentStrategy, ContentType, PipelinePhase, SessionStatus
from src.authoring.models.snapshot import PipelineSnapshot
from src.authoring.services.persistence import (
    PersistenceError,
    PersistenceGateway,
    SessionRecordNotFoundError,
    build_content_record,
    build_session_record,
    hydrate_snapshot,
)
from src.authoring.services.transport import InMemoryPersistenceTransport, TransportError


def _outline(title="Pricing before product"):
    return Outline(
        title=title,
        hooks=[OutlineHook(id="h1", text="Most founders price last.")],
        sections=[
            {"heading": "Intro", "key_points": ["Why it matters"]},
            {"heading": "Close", "key_points": ["CTA"]},
        ],
        recommendations=[TemplateRecommendation(template_name="story")],
    )


def _written_snapshot(**overrides):
    angle = ContentAngle(angle_id="a1", title="Pricing", angle_title="Price before you build")
    outline = _outline()
    fields = dict(
        phase=PipelinePhase.WRITING,
        strategy=ContentStrategy.LINKEDIN_POSTS,
        raw_input="5 tips for B2B founders",
        author_id="author-1",
        angle_candidates=[angle],
        selected_angle=angle,
        context_bundle=ContextBundle(key_insights=[{"id": "i1", "headline": "Sell first"}]),
        approved_context=ContextBundle(key_insights=[{"id": "i1", "headline": "Sell first"}]),
        canonical_outline=outline,
        selected_hook=outline.hooks[0],
        selected_template=outline.recommendations[0],
        canonical_draft=Draft(body="Generated body text", image_prompts=["Whiteboard"]),
    )
    fields.update(overrides)
    return PipelineSnapshot(**fields)


@pytest.fixture
def transport():
    return InMemoryPersistenceTransport()


@pytest.fixture
def gateway(transport):
    return PersistenceGateway(transport)


class TestBuildRecords:
    def test_session_record_stores_effective_values(self):
        edited = _outline(title="Edited title")
        snapshot = _written_snapshot(outline_overlay=edited, draft_overlay="Hand-edited body")

        record = build_session_record(snapshot, SessionStatus.COMPLETED)

        assert record["outline"]["title"] == "Edited title"
        assert record["original_outline"]["title"] == "Pricing before product"
        assert record["final_content"] == "Hand-edited body"
        assert record["written_content"]["body"] == "Generated body text"
        assert record["word_count"] == 2
        assert record["status"] == "completed"
        assert record["current_phase"] == "writing"
        assert "id" not in record

    def test_unedited_outline_has_no_original(self):
        record = build_session_record(_written_snapshot())
        assert record["original_outline"] is None
        assert record["status"] == "in_progress"

    def test_session_record_carries_existing_id(self):
        record = build_session_record(_written_snapshot(session_record_id="sess-1"))
        assert record["id"] == "sess-1"

    def test_content_record_points_at_session(self):
        record = build_content_record(_written_snapshot(), "sess-1")
        assert record["session_id"] == "sess-1"
        assert record["post_body"] == "Generated body text"
        assert record["post_title"] == "Pricing before product"
        assert record["image_prompt"] == "Whiteboard"
        assert record["selected_hook"] == "Most founders price last."
        assert record["selected_template"] == "story"

    def test_title_falls_back_to_angle(self):
        snapshot = _written_snapshot(canonical_outline=None, selected_hook=None, selected_template=None)
        assert build_content_record(snapshot, "sess-1")["post_title"] == "Price before you build"


class TestSave:
    @pytest.mark.asyncio
    async def test_resave_reuses_session_and_adds_content_record(self, gateway, transport):
        """Second save with the returned id reuses the session and adds a second content record."""
        snapshot = _written_snapshot()

        first = await gateway.save(snapshot)
        assert first.session_record_id in transport.sessions
        assert first.content_record_id is not None

        snapshot.session_record_id = first.session_record_id
        second = await gateway.save(snapshot)

        assert second.session_record_id == first.session_record_id
        assert second.content_record_id != first.content_record_id
        assert len(transport.sessions) == 1
        assert len(transport.content_for_session(first.session_record_id)) == 2

    @pytest.mark.asyncio
    async def test_content_record_can_be_skipped(self, gateway, transport):
        result = await gateway.save(_written_snapshot(), new_content_record=False)
        assert result.content_record_id is None
        assert transport.content_records == {}

    @pytest.mark.asyncio
    async def test_progress_save_without_draft(self, gateway, transport):
        snapshot = _written_snapshot(phase=PipelinePhase.OUTLINE, canonical_draft=None)
        result = await gateway.save(snapshot)
        assert result.content_record_id is None
        assert transport.sessions[result.session_record_id]["final_content"] is None

    @pytest.mark.asyncio
    async def test_upsert_failure(self, gateway, transport):
        transport.fail_upsert = TransportError("connection refused")
        with pytest.raises(PersistenceError) as exc_info:
            await gateway.save(_written_snapshot())
        assert exc_info.value.session_record_id is None
        assert transport.content_records == {}

    @pytest.mark.asyncio
    async def test_content_failure_reports_session_id(self, gateway, transport):
        transport.fail_content = TransportError("insert failed")
        with pytest.raises(PersistenceError) as exc_info:
            await gateway.save(_written_snapshot())
        assert exc_info.value.session_record_id in transport.sessions

    @pytest.mark.asyncio
    async def test_content_record_without_id_reports_session_id(self, gateway, transport):
        transport.create_content_record = AsyncMock(return_value={})
        with pytest.raises(PersistenceError) as exc_info:
            await gateway.save(_written_snapshot())
        assert exc_info.value.session_record_id in transport.sessions


class TestRestore:
    @pytest.mark.asyncio
    async def test_save_then_load_keeps_edits_as_overlays(self, gateway):
        edited = _outline(title="Edited title")
        result = await gateway.save(
            _written_snapshot(outline_overlay=edited, draft_overlay="Hand-edited body")
        )

        restored = await gateway.load(result.session_record_id)

        assert restored.session_record_id == result.session_record_id
        assert restored.phase == PipelinePhase.WRITING
        assert restored.canonical_outline.title == "Pricing before product"
        assert restored.outline_overlay.title == "Edited title"
        assert restored.canonical_draft.body == "Generated body text"
        assert restored.draft_overlay == "Hand-edited body"
        assert restored.selected_hook.identity_key() == "h1"
        assert restored.selected_template.template_name == "story"
        assert restored.strategy == ContentStrategy.LINKEDIN_POSTS

    @pytest.mark.asyncio
    async def test_load_missing_session(self, gateway):
        with pytest.raises(SessionRecordNotFoundError):
            await gateway.load("does-not-exist")

    def test_legacy_record(self):
        record = {
            "id": "legacy-1",
            "content_strategy": "YouTube",
            "youtube_url": "https://youtube.com/watch?v=abc",
            "content_type": "post",
            "all_angles": [{"title": "Old angle"}],
            "selected_angle": {"title": "Old angle"},
            "full_context": {"key_insights": [{"id": "k1", "headline": "Old insight"}]},
            "outline_data": {
                "title": "Old outline",
                "outline": [{"heading": "Only section", "key_points": ["point"]}],
            },
            "written_content": "Plain text body",
            "final_content": "Plain text body",
        }

        snapshot = hydrate_snapshot(record)

        assert snapshot.session_record_id == "legacy-1"
        assert snapshot.strategy == ContentStrategy.YOUTUBE
        assert snapshot.raw_input == "https://youtube.com/watch?v=abc"
        assert snapshot.content_type == ContentType.POST
        assert snapshot.canonical_outline.outline[0].heading == "Only section"
        assert snapshot.approved_context.key_insights[0].id == "k1"
        assert snapshot.context_bundle == snapshot.approved_context
        assert snapshot.canonical_draft.body == "Plain text body"
        assert snapshot.draft_overlay is None
        assert snapshot.phase == PipelinePhase.WRITING

    def test_final_content_only(self):
        snapshot = hydrate_snapshot({"final_content": "Only the final text"})
        assert snapshot.canonical_draft.body == "Only the final text"
        assert snapshot.phase == PipelinePhase.WRITING

    def test_phase_from_furthest_artifact(self):
        snapshot = hydrate_snapshot({
            "raw_input": "topic",
            "all_angles": [{"title": "A"}, {"title": "B"}],
        })
        assert snapshot.phase == PipelinePhase.ANGLES

    def test_unreadable_artifact_is_dropped(self):
        snapshot = hydrate_snapshot({
            "all_angles": [{"title": "Good"}, {"no_title": True}],
            "selected_hook": {"type": "missing text"},
        })
        assert [a.title for a in snapshot.angle_candidates] == ["Good"]
        assert snapshot.selected_hook is None

    def test_invalid_scalar_raises_persistence_error(self):
        with pytest.raises(PersistenceError, match="not restorable"):
            hydrate_snapshot({"content_type": "podcast"})
