"""Artifact models exchanged with the generation service.

The generation service adds fields as its prompts evolve, so every model
uses extra='allow' and only checks the fields the console actually reads.
Unknown fields survive a round-trip and are persisted with the session.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

logger = logging.getLogger(__name__)


class ContentAngle(BaseModel):
    """A candidate angle returned by angle generation."""

    model_config = {"extra": "allow"}

    angle_id: Optional[str] = None
    title: str
    angle_title: Optional[str] = None
    content_type: Optional[str] = None
    target_audience: Optional[str] = None
    strategic_brief: Optional[str] = None
    hook: Optional[str] = None
    summary: Optional[str] = None

    def identity_key(self) -> str:
        return self.angle_id or self.title


class KeyInsight(BaseModel):
    """A supporting insight. Selected unless explicitly switched off."""

    model_config = {"extra": "allow"}

    id: str
    headline: str = ""
    description: str = ""
    source_quote: Optional[str] = None
    selected: bool = True


class ContextBundle(BaseModel):
    """Curated supporting material for an angle."""

    model_config = {"extra": "allow"}

    key_insights: List[KeyInsight] = Field(default_factory=list)
    stories: List[Any] = Field(default_factory=list)
    frameworks: List[Any] = Field(default_factory=list)
    quotes: List[Any] = Field(default_factory=list)
    experience: List[Any] = Field(default_factory=list)
    perspectives: List[Any] = Field(default_factory=list)
    knowledge: List[Any] = Field(default_factory=list)
    external_knowledge: List[Any] = Field(default_factory=list)
    icp_pains: List[Any] = Field(default_factory=list)
    icp_profile: Optional[Dict[str, Any]] = None
    tone: Optional[Dict[str, Any]] = None

    def with_insight_selected(self, insight_id: str, selected: bool) -> "ContextBundle":
        """Return a copy with one insight's selected flag changed.

        Raises:
            KeyError: if no insight has that id.
        """
        if not any(i.id == insight_id for i in self.key_insights):
            raise KeyError(insight_id)
        bundle = self.model_copy(deep=True)
        for insight in bundle.key_insights:
            if insight.id == insight_id:
                insight.selected = selected
        return bundle

    def frozen(self) -> "ContextBundle":
        """Deep copy with every insight carrying an explicit selected flag."""
        bundle = self.model_copy(deep=True)
        for insight in bundle.key_insights:
            insight.selected = bool(insight.selected)
        return bundle

    def selected_insights(self) -> List[KeyInsight]:
        return [i for i in self.key_insights if i.selected]


class OutlineHook(BaseModel):
    """An opening hook suggested alongside the outline."""

    model_config = {"extra": "allow"}

    id: Optional[str] = None
    text: str
    type: Optional[str] = None
    hook_type: Optional[str] = None
    rationale: Optional[str] = None

    def identity_key(self) -> str:
        return self.id or self.text


class OutlineSection(BaseModel):
    model_config = {"extra": "allow"}

    heading: str = ""
    section_type: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    purpose: Optional[str] = None
    content: Optional[str] = None


class TemplateRecommendation(BaseModel):
    model_config = {"extra": "allow"}

    template_name: Optional[str] = None
    template_content: Optional[str] = None
    rationale: Optional[str] = None
    match_score: Optional[float] = None

    def identity_key(self) -> str:
        return self.template_name or self.template_content or ""


class SupportingEvidence(BaseModel):
    model_config = {"extra": "allow"}

    url: Optional[str] = None
    title: Optional[str] = None
    snippet: Optional[str] = None
    source: Optional[str] = None


class Outline(BaseModel):
    """Outline returned by outline generation.

    Older responses carry the section list under `outline` instead of
    `sections`. Both are kept as received; see outline_editor for the
    normalization rules.
    """

    model_config = {"extra": "allow", "populate_by_name": True}

    title: str = ""
    hooks: List[OutlineHook] = Field(default_factory=list)
    sections: List[OutlineSection] = Field(default_factory=list)
    outline: Optional[List[OutlineSection]] = None
    supporting_evidence: List[SupportingEvidence] = Field(default_factory=list)
    cta: Optional[str] = None
    recommendations: List[TemplateRecommendation] = Field(
        default_factory=list,
        validation_alias=AliasChoices("recommendations", "template_recommendations"),
    )

    def has_hooks(self) -> bool:
        return len(self.hooks) > 0


class Draft(BaseModel):
    """Generated post or article, normalized to a single body field."""

    model_config = {"extra": "allow"}

    body: str = ""
    title: Optional[str] = None
    image_prompts: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    word_count: Optional[int] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "Draft":
        """Build a Draft from a writePost or writeArticle response."""
        body = (
            data.get("final_post_body")
            or data.get("post_content")
            or data.get("final_article_body")
            or data.get("final_article")
            or data.get("draft_body")
            or data.get("body")
            or ""
        )
        image_prompts = data.get("image_prompts") or []
        if isinstance(image_prompts, str):
            image_prompts = [image_prompts]
        image_prompts = list(image_prompts)
        if not image_prompts and data.get("image_prompt"):
            image_prompts = [data["image_prompt"]]
        metadata = data.get("metadata") or data.get("rich_metadata") or {}

        known = {
            "final_post_body", "post_content", "final_article_body", "final_article",
            "draft_body", "body", "image_prompts", "image_prompt", "metadata",
            "rich_metadata", "title", "word_count",
        }
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(
            body=body,
            title=data.get("title"),
            image_prompts=image_prompts,
            metadata=metadata,
            word_count=data.get("word_count"),
            **extra,
        )


class AnglesResult(BaseModel):
    """Response of angle generation."""

    model_config = {"extra": "allow", "populate_by_name": True}

    angle_candidates: List[ContentAngle] = Field(
        default_factory=list,
        validation_alias=AliasChoices("selected_angles", "angle_candidates"),
    )
    context: ContextBundle = Field(
        default_factory=ContextBundle,
        validation_alias=AliasChoices("context", "context_bundle"),
    )
    session_record_id: Optional[str] = None
    tracking_id: Optional[str] = None


class SaveResult(BaseModel):
    """Identifiers returned by a successful save."""

    session_record_id: str
    content_record_id: Optional[str] = None
