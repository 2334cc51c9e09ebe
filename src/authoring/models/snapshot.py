"""Pipeline snapshot: the full transient state of one authoring session."""

from typing import List, Optional

from pydantic import BaseModel, Field

from src.authoring.models.artifacts import (
    ContentAngle,
    ContextBundle,
    Draft,
    Outline,
    OutlineHook,
    TemplateRecommendation,
)
from src.authoring.models.enums import ContentStrategy, ContentType, PipelinePhase


class PipelineSnapshot(BaseModel):
    """Everything the console knows about one authoring session.

    canonical_* fields hold the last values confirmed by the generation
    service; *_overlay fields hold local user edits on top of them.
    """

    phase: PipelinePhase = PipelinePhase.INPUT
    content_type: ContentType = ContentType.POST
    strategy: Optional[ContentStrategy] = None
    raw_input: str = ""
    author_id: Optional[str] = None
    selected_icp_id: Optional[str] = None

    angle_candidates: List[ContentAngle] = Field(default_factory=list)
    selected_angle: Optional[ContentAngle] = None

    context_bundle: Optional[ContextBundle] = None
    approved_context: Optional[ContextBundle] = None

    canonical_outline: Optional[Outline] = None
    outline_overlay: Optional[Outline] = None
    selected_hook: Optional[OutlineHook] = None
    selected_template: Optional[TemplateRecommendation] = None

    canonical_draft: Optional[Draft] = None
    draft_overlay: Optional[str] = None

    session_record_id: Optional[str] = None
    tracking_id: Optional[str] = None
    content_record_ids: List[str] = Field(default_factory=list)

    def effective_outline(self) -> Optional[Outline]:
        """The overlay if one exists, otherwise the canonical outline."""
        if self.outline_overlay is not None:
            return self.outline_overlay
        return self.canonical_outline

    def effective_draft_text(self) -> Optional[str]:
        if self.draft_overlay is not None:
            return self.draft_overlay
        if self.canonical_draft is not None:
            return self.canonical_draft.body
        return None

    def furthest_phase(self) -> PipelinePhase:
        """Furthest phase the stored artifacts support."""
        if self.canonical_draft is not None:
            return PipelinePhase.WRITING
        if self.canonical_outline is not None:
            return PipelinePhase.OUTLINE
        if self.selected_angle is not None or self.approved_context is not None:
            return PipelinePhase.CONTEXT
        if self.angle_candidates:
            return PipelinePhase.ANGLES
        return PipelinePhase.INPUT
