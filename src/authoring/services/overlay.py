"""Overlay resolution for user-edited artifacts.

An artifact (outline or draft text) has a canonical value confirmed by the
generation service and an optional local overlay. The overlay, when present,
is the effective value. It counts as an edit only when it differs from the
canonical value by value, not by identity.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from src.authoring.models.snapshot import PipelineSnapshot
from src.authoring.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """Effective value of an artifact plus whether the user edited it."""

    effective: Optional[T]
    is_edited: bool


def resolve(canonical: Optional[T], overlay: Optional[T]) -> Resolved[T]:
    """Pick the effective value. Pure and deterministic."""
    if overlay is None:
        return Resolved(effective=canonical, is_edited=False)
    return Resolved(effective=overlay, is_edited=overlay != canonical)


class ArtifactOverlay:
    """Binds resolve()/reset() to one canonical/overlay pair in a store.

    `canonical` projects the canonical value out of a snapshot, so the draft
    can compare its overlay text against the canonical draft body.
    """

    def __init__(
        self,
        store: SnapshotStore,
        overlay_field: str,
        canonical: Callable[[PipelineSnapshot], Any],
    ):
        self.store = store
        self.overlay_field = overlay_field
        self._canonical = canonical

    def resolve(self, snapshot: Optional[PipelineSnapshot] = None) -> Resolved:
        if snapshot is None:
            snapshot = self.store.get_snapshot()
        return resolve(self._canonical(snapshot), getattr(snapshot, self.overlay_field))

    def set(self, value: Any) -> PipelineSnapshot:
        return self.store.commit({self.overlay_field: value})

    def reset(self) -> PipelineSnapshot:
        """Revert to the canonical value. Idempotent."""
        snapshot = self.store.get_snapshot()
        if getattr(snapshot, self.overlay_field) is None:
            return snapshot
        logger.info("Reverting %s to canonical value", self.overlay_field)
        return self.store.commit({self.overlay_field: None})


def outline_overlay(store: SnapshotStore) -> ArtifactOverlay:
    return ArtifactOverlay(store, "outline_overlay", lambda s: s.canonical_outline)


def draft_overlay(store: SnapshotStore) -> ArtifactOverlay:
    return ArtifactOverlay(
        store,
        "draft_overlay",
        lambda s: s.canonical_draft.body if s.canonical_draft is not None else None,
    )
