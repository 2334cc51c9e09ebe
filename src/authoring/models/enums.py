"""Enums for the authoring pipeline state machine and its artifacts."""

from enum import Enum


class PipelinePhase(str, Enum):
    """The phases an authoring session moves through."""

    INPUT = "input"
    ANGLES = "angles"
    CONTEXT = "context"
    OUTLINE = "outline"
    HOOK_SELECTION = "hook_selection"
    WRITING = "writing"
    SAVED = "saved"


# Ordered list for forward progression
PHASE_ORDER = [
    PipelinePhase.INPUT,
    PipelinePhase.ANGLES,
    PipelinePhase.CONTEXT,
    PipelinePhase.OUTLINE,
    PipelinePhase.HOOK_SELECTION,
    PipelinePhase.WRITING,
    PipelinePhase.SAVED,
]


def phase_index(phase: PipelinePhase) -> int:
    """Position of a phase in PHASE_ORDER."""
    return PHASE_ORDER.index(phase)


class ContentType(str, Enum):
    """Kind of content being authored. Fixed once chosen."""

    POST = "linkedin_post"
    LINKEDIN_ARTICLE = "linkedin_article"
    SEO_ARTICLE = "seo_article"

    @classmethod
    def _missing_(cls, value):
        # "post" is the short name used by older clients
        if isinstance(value, str) and value.lower() == "post":
            return cls.POST
        return None

    @property
    def is_article(self) -> bool:
        return self is not ContentType.POST


class ContentStrategy(str, Enum):
    """Where the raw input comes from."""

    LINKEDIN_POSTS = "linkedin_posts"
    MARKET_ANALYSIS = "MarketAnalysis"
    YOUTUBE = "YouTube"


class GenerationAction(str, Enum):
    """Actions understood by the remote orchestrator endpoint."""

    GET_ANGLES = "getAngles"
    GENERATE_OUTLINE = "generateOutline"
    WRITE_POST = "writePost"
    WRITE_ARTICLE = "writeArticle"


class SessionStatus(str, Enum):
    """Status stored on the persisted session record."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CelebrationStage(str, Enum):
    """Stages of the completion celebration sequence."""

    IDLE = "idle"
    ITEM = "item"
    ALL_COMPLETE = "all_complete"
    DONE = "done"
