"""Structured outline editing.

Each operation takes an Outline and returns a new one; inputs are never
mutated. The section list is read from `sections`, or from the legacy
`outline` key when that is where the generation service put it, and is
written back under the same key it was read from.

OutlineEditor applies the operations to a store's outline overlay,
creating the overlay from the canonical outline on the first edit. The
canonical outline is never touched.
"""

import logging
from typing import Callable, List, Optional

from src.authoring.models.artifacts import Outline, OutlineSection
from src.authoring.models.snapshot import PipelineSnapshot
from src.authoring.services.overlay import Resolved, outline_overlay
from src.authoring.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

CURRENT_SECTIONS_KEY = "sections"
LEGACY_SECTIONS_KEY = "outline"

NEW_SECTION_HEADING = "New Section"
NEW_KEY_POINT = "New point"


class OutlineEditError(IndexError):
    """Raised when an edit targets a section or key point that does not exist."""

    pass


# ============================================================================
# Normalization
# ============================================================================


def sections_key(outline: Outline) -> str:
    """Which field holds the section list for this outline."""
    if outline.sections:
        return CURRENT_SECTIONS_KEY
    if outline.outline is not None:
        return LEGACY_SECTIONS_KEY
    return CURRENT_SECTIONS_KEY


def get_sections(outline: Outline) -> List[OutlineSection]:
    """Working copy of the section list, whichever key it lives under."""
    source = getattr(outline, sections_key(outline)) or []
    return [s.model_copy(deep=True) for s in source]


def _with_sections(outline: Outline, key: str, sections: List[OutlineSection]) -> Outline:
    return outline.model_copy(update={key: sections}, deep=True)


def _edit(outline: Outline, change: Callable[[List[OutlineSection]], None]) -> Outline:
    key = sections_key(outline)
    sections = get_sections(outline)
    change(sections)
    return _with_sections(outline, key, sections)


def _check_section(sections: List[OutlineSection], index: int) -> None:
    if not 0 <= index < len(sections):
        raise OutlineEditError(
            f"Section {index} does not exist (outline has {len(sections)} sections)"
        )


def _check_point(section: OutlineSection, section_index: int, point_index: int) -> None:
    if not 0 <= point_index < len(section.key_points):
        raise OutlineEditError(
            f"Key point {point_index} does not exist in section {section_index} "
            f"({len(section.key_points)} key points)"
        )


# ============================================================================
# Operations
# ============================================================================


def rename_section(outline: Outline, index: int, heading: str) -> Outline:
    def change(sections):
        _check_section(sections, index)
        sections[index].heading = heading

    return _edit(outline, change)


def move_section(outline: Outline, index: int, direction: int) -> Outline:
    """Swap a section with its neighbour.

    A move past either end is a silent no-op: the first section cannot move
    up and the last cannot move down.
    """
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or +1, got {direction}")

    def change(sections):
        _check_section(sections, index)
        target = index + direction
        if not 0 <= target < len(sections):
            return
        sections[index], sections[target] = sections[target], sections[index]

    return _edit(outline, change)


def add_section(outline: Outline) -> Outline:
    """Append a placeholder section with one placeholder key point."""

    def change(sections):
        sections.append(
            OutlineSection(heading=NEW_SECTION_HEADING, key_points=[NEW_KEY_POINT])
        )

    return _edit(outline, change)


def remove_section(outline: Outline, index: int) -> Outline:
    def change(sections):
        _check_section(sections, index)
        del sections[index]

    return _edit(outline, change)


def add_key_point(outline: Outline, section_index: int, text: str = NEW_KEY_POINT) -> Outline:
    def change(sections):
        _check_section(sections, section_index)
        sections[section_index].key_points.append(text)

    return _edit(outline, change)


def update_key_point(
    outline: Outline, section_index: int, point_index: int, text: str
) -> Outline:
    def change(sections):
        _check_section(sections, section_index)
        section = sections[section_index]
        _check_point(section, section_index, point_index)
        section.key_points[point_index] = text

    return _edit(outline, change)


def remove_key_point(outline: Outline, section_index: int, point_index: int) -> Outline:
    def change(sections):
        _check_section(sections, section_index)
        section = sections[section_index]
        _check_point(section, section_index, point_index)
        del section.key_points[point_index]

    return _edit(outline, change)


# ============================================================================
# Store-bound editor
# ============================================================================


class OutlineEditor:
    """Applies outline operations to the outline overlay of a store."""

    def __init__(self, store: SnapshotStore):
        self.store = store
        self.overlay = outline_overlay(store)

    def _base(self) -> Outline:
        snapshot = self.store.get_snapshot()
        base: Optional[Outline] = snapshot.effective_outline()
        if base is None:
            raise OutlineEditError("No outline to edit")
        return base

    def _apply(self, operation: Callable[..., Outline], *args) -> PipelineSnapshot:
        edited = operation(self._base(), *args)
        logger.debug("Outline edit %s%r", operation.__name__, args)
        return self.store.commit({"outline_overlay": edited})

    def rename_section(self, index: int, heading: str) -> PipelineSnapshot:
        return self._apply(rename_section, index, heading)

    def move_section(self, index: int, direction: int) -> PipelineSnapshot:
        return self._apply(move_section, index, direction)

    def add_section(self) -> PipelineSnapshot:
        return self._apply(add_section)

    def remove_section(self, index: int) -> PipelineSnapshot:
        return self._apply(remove_section, index)

    def add_key_point(self, section_index: int) -> PipelineSnapshot:
        return self._apply(add_key_point, section_index)

    def update_key_point(self, section_index: int, point_index: int, text: str) -> PipelineSnapshot:
        return self._apply(update_key_point, section_index, point_index, text)

    def remove_key_point(self, section_index: int, point_index: int) -> PipelineSnapshot:
        return self._apply(remove_key_point, section_index, point_index)

    def resolve(self) -> Resolved:
        return self.overlay.resolve()

    def reset(self) -> PipelineSnapshot:
        return self.overlay.reset()
