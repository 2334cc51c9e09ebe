"""Authoring pipeline models."""

from src.authoring.models.enums import (
    PipelinePhase,
    PHASE_ORDER,
    ContentType,
    ContentStrategy,
    GenerationAction,
    SessionStatus,
    CelebrationStage,
)
from src.authoring.models.artifacts import (
    AnglesResult,
    ContentAngle,
    ContextBundle,
    Draft,
    KeyInsight,
    Outline,
    OutlineHook,
    OutlineSection,
    SaveResult,
    SupportingEvidence,
    TemplateRecommendation,
)
from src.authoring.models.snapshot import PipelineSnapshot

__all__ = [
    "PipelinePhase",
    "PHASE_ORDER",
    "ContentType",
    "ContentStrategy",
    "GenerationAction",
    "SessionStatus",
    "CelebrationStage",
    "AnglesResult",
    "ContentAngle",
    "ContextBundle",
    "Draft",
    "KeyInsight",
    "Outline",
    "OutlineHook",
    "OutlineSection",
    "SaveResult",
    "SupportingEvidence",
    "TemplateRecommendation",
    "PipelineSnapshot",
]
