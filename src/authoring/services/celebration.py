"""Completion celebration sequence for a batch of sync actions.

Each completed item gets a short per-item celebration; once every item is
complete the all-complete celebration plays, then the sequence ends.

    idle → item → idle → ... → item → all_complete → done

Items only ever move to complete (no decrement) and done is terminal.
Transitions go through the same validate_transition helper as the
phase controller.
"""

import logging
from typing import Iterable, List, Optional, Set

from src.authoring.models.enums import CelebrationStage
from src.authoring.services.state_machine import InvalidTransitionError, validate_transition

logger = logging.getLogger(__name__)

# How long each stage stays on screen before the caller advances it
ITEM_DURATION_SECONDS = 1.2
ALL_COMPLETE_DURATION_SECONDS = 3.5
MILESTONE_DURATION_SECONDS = 4.0

VALID_CELEBRATION_TRANSITIONS = {
    CelebrationStage.IDLE: {CelebrationStage.ITEM},
    CelebrationStage.ITEM: {CelebrationStage.IDLE, CelebrationStage.ALL_COMPLETE},
    CelebrationStage.ALL_COMPLETE: {CelebrationStage.DONE},
}

STREAK_MILESTONES = {
    7: "1 week. Most people never get here.",
    14: "2 weeks of building authority. You're in rare company.",
    30: "30 days. This is who you are now.",
    60: "60 days. Your authority compounds while you sleep.",
    90: "90 days. You've built something most people only talk about.",
}


def identity_message(streak: int) -> str:
    """Message shown with the all-complete celebration."""
    if streak >= 30:
        return "Authority machine. Your DNA is compounding daily."
    if streak >= 15:
        return "This isn't a streak anymore. It's who you are."
    if streak >= 8:
        return "Two weeks strong. Your authority is compounding."
    if streak >= 4:
        return "A week of building authority. This is becoming habit."
    if streak >= 1:
        return "You're building momentum. Keep going."
    return "First sync done. The streak starts now."


def milestone_message(streak: int) -> Optional[str]:
    """Message for a streak milestone, or None if the streak is not one."""
    return STREAK_MILESTONES.get(streak)


class CelebrationSequence:
    def __init__(self, item_ids: Iterable[str], streak: int = 0):
        self.item_ids: List[str] = list(item_ids)
        if not self.item_ids:
            raise ValueError("A celebration needs at least one item")
        self.streak = streak
        self.stage = CelebrationStage.IDLE
        self.completed: Set[str] = set()
        self.current_item: Optional[str] = None

    @property
    def all_complete(self) -> bool:
        return self.completed.issuperset(self.item_ids)

    @property
    def remaining(self) -> int:
        return len(set(self.item_ids) - self.completed)

    def _transition(self, target: CelebrationStage) -> CelebrationStage:
        validate_transition(self.stage, target, VALID_CELEBRATION_TRANSITIONS)
        logger.debug("Celebration %s → %s", self.stage.value, target.value)
        self.stage = target
        return target

    def complete_item(self, item_id: str) -> CelebrationStage:
        """Start the per-item celebration for a newly completed item."""
        if item_id not in self.item_ids:
            raise KeyError(item_id)
        if item_id in self.completed:
            raise InvalidTransitionError(f"Item {item_id} is already complete")
        self._transition(CelebrationStage.ITEM)
        self.completed.add(item_id)
        self.current_item = item_id
        return self.stage

    def finish_item(self) -> CelebrationStage:
        """End the per-item celebration."""
        target = CelebrationStage.ALL_COMPLETE if self.all_complete else CelebrationStage.IDLE
        self._transition(target)
        self.current_item = None
        if target == CelebrationStage.ALL_COMPLETE:
            logger.info("All %d items complete (streak %d)", len(self.item_ids), self.streak)
        return self.stage

    def finish_all(self) -> CelebrationStage:
        return self._transition(CelebrationStage.DONE)

    def message(self) -> Optional[str]:
        if self.stage == CelebrationStage.ALL_COMPLETE:
            return identity_message(self.streak)
        return None

    def duration(self) -> Optional[float]:
        """Seconds the current stage stays on screen; None when nothing is shown."""
        if self.stage == CelebrationStage.ITEM:
            return ITEM_DURATION_SECONDS
        if self.stage == CelebrationStage.ALL_COMPLETE:
            if milestone_message(self.streak) is not None:
                return MILESTONE_DURATION_SECONDS
            return ALL_COMPLETE_DURATION_SECONDS
        return None
