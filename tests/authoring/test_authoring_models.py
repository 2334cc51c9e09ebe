"""Tests for authoring artifact and snapshot models."""

import pytest

from src.authoring.models import (
    PHASE_ORDER,
    AnglesResult,
    ContentType,
    ContextBundle,
    Draft,
    Outline,
    PipelinePhase,
    PipelineSnapshot,
)
from src.authoring.models.enums import phase_index


class TestEnums:
    def test_phase_order_is_forward(self):
        assert PHASE_ORDER[0] == PipelinePhase.INPUT
        assert PHASE_ORDER[-1] == PipelinePhase.SAVED
        assert phase_index(PipelinePhase.WRITING) > phase_index(PipelinePhase.HOOK_SELECTION)

    def test_post_short_name(self):
        assert ContentType("post") is ContentType.POST
        assert ContentType.POST.is_article is False
        assert ContentType.SEO_ARTICLE.is_article is True

    def test_unknown_content_type(self):
        with pytest.raises(ValueError):
            ContentType("podcast")


class TestAnglesResult:
    def test_reads_response_field_names(self):
        result = AnglesResult.model_validate({
            "selected_angles": [{"title": "One"}],
            "context": {"key_insights": [{"id": "i1"}]},
            "tracking_id": "t-1",
        })
        assert result.angle_candidates[0].title == "One"
        assert result.context.key_insights[0].selected is True

    def test_unknown_fields_survive(self):
        result = AnglesResult.model_validate({"selected_angles": [], "debug": {"model": "x"}})
        assert result.model_dump()["debug"] == {"model": "x"}


class TestContextBundle:
    def test_toggle_returns_copy(self):
        bundle = ContextBundle(key_insights=[{"id": "i1"}, {"id": "i2"}])
        toggled = bundle.with_insight_selected("i2", False)
        assert [i.selected for i in toggled.key_insights] == [True, False]
        assert [i.selected for i in bundle.key_insights] == [True, True]
        assert [i.id for i in toggled.selected_insights()] == ["i1"]

    def test_toggle_unknown_insight(self):
        with pytest.raises(KeyError):
            ContextBundle().with_insight_selected("nope", True)


class TestOutline:
    def test_template_recommendations_alias(self):
        outline = Outline.model_validate({
            "template_recommendations": [{"template_name": "listicle"}],
        })
        assert outline.recommendations[0].template_name == "listicle"
        assert outline.has_hooks() is False


class TestDraft:
    @pytest.mark.parametrize("key", ["final_post_body", "post_content", "final_article_body", "body"])
    def test_body_keys(self, key):
        assert Draft.from_response({key: "Text"}).body == "Text"

    def test_single_image_prompt_becomes_list(self):
        draft = Draft.from_response({"final_post_body": "x", "image_prompt": "A chart"})
        assert draft.image_prompts == ["A chart"]

    def test_image_prompts_string_is_not_split(self):
        draft = Draft.from_response({"final_post_body": "x", "image_prompts": "A chart"})
        assert draft.image_prompts == ["A chart"]

    def test_extra_response_fields_kept(self):
        draft = Draft.from_response({"final_post_body": "x", "hashtags": ["#b2b"]})
        assert draft.model_dump()["hashtags"] == ["#b2b"]


class TestSnapshot:
    def test_effective_values(self):
        snapshot = PipelineSnapshot(
            canonical_outline=Outline(title="Canonical"),
            canonical_draft=Draft(body="Generated"),
        )
        assert snapshot.effective_outline().title == "Canonical"
        assert snapshot.effective_draft_text() == "Generated"

        snapshot.outline_overlay = Outline(title="Edited")
        snapshot.draft_overlay = ""
        assert snapshot.effective_outline().title == "Edited"
        assert snapshot.effective_draft_text() == ""

    def test_furthest_phase(self):
        assert PipelineSnapshot().furthest_phase() == PipelinePhase.INPUT
        assert PipelineSnapshot(angle_candidates=[{"title": "a"}]).furthest_phase() == (
            PipelinePhase.ANGLES
        )
        assert PipelineSnapshot(canonical_outline=Outline()).furthest_phase() == (
            PipelinePhase.OUTLINE
        )
