"""Authoring Pipeline State Machine.

Manages the phase of one authoring session and the generation calls that
move it forward.

Transition rules:
- Forward by default: input → angles → context → outline → (hook_selection) → writing → saved
- hook_selection is skipped when the effective outline has no hooks
- Backward only through the revision loop: writing → outline, which keeps
  the selected angle and context and discards the draft
- A failed generation call leaves the phase unchanged; the user retries
  the same transition

Only one generation call runs at a time per session. Every call is tagged
with the phase it started from and the store epoch; a response that comes
back after the session moved on, was reset, or was superseded is logged
and dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Set, Union

from pydantic import ValidationError

from src.authoring.models.artifacts import (
    AnglesResult,
    ContentAngle,
    ContextBundle,
    Draft,
    Outline,
    OutlineHook,
    SaveResult,
    TemplateRecommendation,
)
from src.authoring.models.enums import (
    ContentStrategy,
    ContentType,
    GenerationAction,
    PipelinePhase,
    SessionStatus,
)
from src.authoring.models.snapshot import PipelineSnapshot
from src.authoring.services.overlay import draft_overlay
from src.authoring.services.persistence import PersistenceError, PersistenceGateway
from src.authoring.services.snapshot_store import SnapshotStore
from src.authoring.services.transport import GenerationTransport, TransportError
from src.logging_utils import SessionLogAdapter

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_TIMEOUT = 300

# Valid phase transitions
VALID_PHASE_TRANSITIONS = {
    PipelinePhase.INPUT: {PipelinePhase.ANGLES},
    PipelinePhase.ANGLES: {PipelinePhase.CONTEXT},
    PipelinePhase.CONTEXT: {PipelinePhase.OUTLINE},
    PipelinePhase.OUTLINE: {PipelinePhase.HOOK_SELECTION, PipelinePhase.WRITING},
    PipelinePhase.HOOK_SELECTION: {PipelinePhase.WRITING},
    PipelinePhase.WRITING: {PipelinePhase.SAVED, PipelinePhase.OUTLINE},
    PipelinePhase.SAVED: {PipelinePhase.SAVED},  # re-save
}

# Allowed backward transitions (phase_from → set of phases it can go back to)
ALLOWED_BACKWARD_TRANSITIONS = {
    PipelinePhase.WRITING: {PipelinePhase.OUTLINE},
}

# Phases where the angle can still be (re-)picked
ANGLE_SELECTION_PHASES = {PipelinePhase.ANGLES, PipelinePhase.CONTEXT}
HOOK_SELECTION_PHASES = {PipelinePhase.OUTLINE, PipelinePhase.HOOK_SELECTION}
DRAFT_PHASES = {PipelinePhase.WRITING, PipelinePhase.SAVED}

# Everything downstream of the angle, cleared when the angle changes
_DOWNSTREAM_OF_ANGLE = {
    "approved_context": None,
    "canonical_outline": None,
    "outline_overlay": None,
    "selected_hook": None,
    "selected_template": None,
    "canonical_draft": None,
    "draft_overlay": None,
}


class InvalidTransitionError(Exception):
    """Raised when a state transition is not allowed."""

    pass


class TransitionInFlightError(InvalidTransitionError):
    """Raised when a transition is requested while a generation call is running."""

    pass


class GenerationError(Exception):
    """Raised when the generation service fails or times out."""

    pass


def validate_transition(current, target, allowed: Mapping[Any, Set[Any]]) -> None:
    """Raise InvalidTransitionError unless current → target is in the table."""
    if target not in allowed.get(current, set()):
        current_name = getattr(current, "value", current)
        target_name = getattr(target, "value", target)
        raise InvalidTransitionError(f"Cannot transition from {current_name} to {target_name}")


@dataclass(frozen=True)
class _RequestTicket:
    slot: str
    seq: int
    epoch: int
    phase: PipelinePhase


class PhaseController:
    """Drives one authoring session through its phases.

    Local steps (selecting, approving, editing) are synchronous. Steps
    that call the generation service are coroutines and commit their
    result only if it is still wanted when it arrives.
    """

    def __init__(
        self,
        store: SnapshotStore,
        generation: GenerationTransport,
        gateway: PersistenceGateway,
        timeout_seconds: float = DEFAULT_GENERATION_TIMEOUT,
        session_label: Optional[str] = None,
    ):
        self.store = store
        self.generation = generation
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds
        self.log = SessionLogAdapter(logger, {"session": session_label})
        self._seq = 0
        self._latest: Dict[str, int] = {}
        self._in_flight: Optional[_RequestTicket] = None

    @property
    def in_flight(self) -> Optional[str]:
        """Slot of the running request, if any."""
        return self._in_flight.slot if self._in_flight else None

    # ========================================================================
    # Input and angles
    # ========================================================================

    def set_input(
        self,
        raw_input: str,
        strategy: Optional[Union[ContentStrategy, str]] = None,
        content_type: Optional[Union[ContentType, str]] = None,
        author_id: Optional[str] = None,
        selected_icp_id: Optional[str] = None,
    ) -> PipelineSnapshot:
        """Record what to write about. Only allowed before angles exist."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, {PipelinePhase.INPUT}, "set the input")

        patch: Dict[str, Any] = {"raw_input": raw_input}
        if strategy is not None:
            patch["strategy"] = ContentStrategy(strategy)
        if content_type is not None:
            patch["content_type"] = ContentType(content_type)
        if author_id is not None:
            patch["author_id"] = author_id
        if selected_icp_id is not None:
            patch["selected_icp_id"] = selected_icp_id
        return self.store.commit(patch)

    async def request_angles(self) -> PipelineSnapshot:
        """input → angles. Calls angle generation."""
        snapshot = self._snapshot_when_idle()
        validate_transition(snapshot.phase, PipelinePhase.ANGLES, VALID_PHASE_TRANSITIONS)
        if not snapshot.raw_input.strip():
            raise InvalidTransitionError("Raw input is required before requesting angles")

        payload = {
            "raw_input": snapshot.raw_input,
            "strategy": snapshot.strategy.value if snapshot.strategy else None,
            "content_type": snapshot.content_type.value,
            "author_id": snapshot.author_id,
            "user_id": snapshot.author_id,
            "icp": snapshot.selected_icp_id,
        }
        data = await self._generate("angles", GenerationAction.GET_ANGLES, payload, snapshot)
        if data is None:
            return self.store.get_snapshot()

        result = self._parse(lambda: AnglesResult.model_validate(data), "angles")
        patch: Dict[str, Any] = {
            "angle_candidates": result.angle_candidates,
            "context_bundle": result.context,
            "phase": PipelinePhase.ANGLES,
        }
        if result.tracking_id:
            patch["tracking_id"] = result.tracking_id
        if result.session_record_id and not snapshot.session_record_id:
            patch["session_record_id"] = result.session_record_id

        self.log.info("Received %d angle candidates", len(result.angle_candidates))
        return self.store.commit(patch)

    def select_angle(self, angle: Union[int, str, ContentAngle]) -> PipelineSnapshot:
        """angles → context. Picking a different angle later discards its work."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, ANGLE_SELECTION_PHASES, "select an angle")

        chosen = self._find_angle(snapshot, angle)
        patch: Dict[str, Any] = {"selected_angle": chosen, "phase": PipelinePhase.CONTEXT}
        previous = snapshot.selected_angle
        if previous is None or previous.identity_key() != chosen.identity_key():
            patch.update(_DOWNSTREAM_OF_ANGLE)

        self.log.info("Selected angle %r", chosen.identity_key())
        return self.store.commit(patch)

    def _find_angle(self, snapshot: PipelineSnapshot, angle) -> ContentAngle:
        candidates = snapshot.angle_candidates
        if isinstance(angle, int):
            if not 0 <= angle < len(candidates):
                raise InvalidTransitionError(
                    f"Angle {angle} does not exist ({len(candidates)} candidates)"
                )
            return candidates[angle]

        key = angle.identity_key() if isinstance(angle, ContentAngle) else angle
        for candidate in candidates:
            if candidate.identity_key() == key:
                return candidate
        raise InvalidTransitionError(f"Angle {key!r} is not among the candidates")

    # ========================================================================
    # Context
    # ========================================================================

    def set_insight_selected(self, insight_id: str, selected: bool) -> PipelineSnapshot:
        """Toggle one insight. Withdraws an earlier approval."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, {PipelinePhase.CONTEXT}, "change the context")
        if snapshot.context_bundle is None:
            raise InvalidTransitionError("There is no context to curate")

        try:
            bundle = snapshot.context_bundle.with_insight_selected(insight_id, selected)
        except KeyError:
            raise InvalidTransitionError(f"Insight {insight_id!r} is not in the context") from None

        if snapshot.approved_context is not None:
            self.log.info("Context changed after approval, approval withdrawn")
        return self.store.commit({"context_bundle": bundle, "approved_context": None})

    def approve_context(self) -> PipelineSnapshot:
        """Freeze the insight selection that the outline request will send."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, {PipelinePhase.CONTEXT}, "approve the context")
        if snapshot.selected_angle is None:
            raise InvalidTransitionError("Select an angle before approving the context")

        bundle = (snapshot.context_bundle or ContextBundle()).frozen()
        self.log.info(
            "Context approved with %d of %d insights",
            len(bundle.selected_insights()),
            len(bundle.key_insights),
        )
        return self.store.commit({"approved_context": bundle})

    # ========================================================================
    # Outline, hook and template
    # ========================================================================

    async def request_outline(self) -> PipelineSnapshot:
        """context → outline. Requires an approved context."""
        snapshot = self._snapshot_when_idle()
        # writing → outline is the revision loop, not a regeneration
        self._require_phase(snapshot, {PipelinePhase.CONTEXT}, "request an outline")
        validate_transition(snapshot.phase, PipelinePhase.OUTLINE, VALID_PHASE_TRANSITIONS)
        if snapshot.selected_angle is None:
            raise InvalidTransitionError("Select an angle before requesting an outline")
        if snapshot.approved_context is None:
            raise InvalidTransitionError("Approve the context before requesting an outline")

        payload = {
            "selected_angle": snapshot.selected_angle.model_dump(mode="json"),
            "context": snapshot.approved_context.model_dump(mode="json"),
            "content_type": snapshot.content_type.value,
            "author_id": snapshot.author_id,
            "session_record_id": snapshot.session_record_id,
            "tracking_id": snapshot.tracking_id,
        }
        data = await self._generate(
            "outline", GenerationAction.GENERATE_OUTLINE, payload, snapshot
        )
        if data is None:
            return self.store.get_snapshot()

        outline = self._parse(lambda: Outline.model_validate(data), "outline")
        self.log.info(
            "Outline ready: %d hooks, %d recommendations",
            len(outline.hooks),
            len(outline.recommendations),
        )
        return self.store.commit({
            "canonical_outline": outline,
            "outline_overlay": None,
            "selected_hook": None,
            "selected_template": None,
            "phase": PipelinePhase.OUTLINE,
        })

    def select_hook(self, hook: Optional[Union[int, str, OutlineHook]]) -> PipelineSnapshot:
        """Pick a hook from the effective outline, or clear it with None."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, HOOK_SELECTION_PHASES, "select a hook")
        if hook is None:
            return self.store.commit({"selected_hook": None})

        hooks = self._effective_outline_or_raise(snapshot).hooks
        chosen = self._find_by_key(hooks, hook, "Hook")
        return self.store.commit({"selected_hook": chosen})

    def select_template(
        self, template: Optional[Union[int, str, TemplateRecommendation]]
    ) -> PipelineSnapshot:
        """Pick a recommended template, or clear it with None."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, HOOK_SELECTION_PHASES, "select a template")
        if template is None:
            return self.store.commit({"selected_template": None})

        templates = self._effective_outline_or_raise(snapshot).recommendations
        chosen = self._find_by_key(templates, template, "Template")
        return self.store.commit({"selected_template": chosen})

    @staticmethod
    def _find_by_key(items, wanted, label: str):
        if isinstance(wanted, int):
            if not 0 <= wanted < len(items):
                raise InvalidTransitionError(f"{label} {wanted} does not exist")
            return items[wanted]
        key = wanted if isinstance(wanted, str) else wanted.identity_key()
        for item in items:
            if item.identity_key() == key:
                return item
        raise InvalidTransitionError(f"{label} {key!r} is not in the outline")

    async def advance_from_outline(self) -> PipelineSnapshot:
        """outline → hook_selection, or straight to writing when there are no hooks."""
        snapshot = self._snapshot_when_idle()
        self._require_phase(snapshot, {PipelinePhase.OUTLINE}, "leave the outline")
        outline = self._effective_outline_or_raise(snapshot)

        if outline.has_hooks():
            validate_transition(
                snapshot.phase, PipelinePhase.HOOK_SELECTION, VALID_PHASE_TRANSITIONS
            )
            return self.store.commit({"phase": PipelinePhase.HOOK_SELECTION})

        self.log.info("Outline has no hooks, skipping hook selection")
        return await self.request_draft()

    # ========================================================================
    # Draft
    # ========================================================================

    async def request_draft(self) -> PipelineSnapshot:
        """(outline | hook_selection) → writing. Sends the effective outline."""
        snapshot = self._snapshot_when_idle()
        validate_transition(snapshot.phase, PipelinePhase.WRITING, VALID_PHASE_TRANSITIONS)
        outline = self._effective_outline_or_raise(snapshot)

        action = (
            GenerationAction.WRITE_ARTICLE
            if snapshot.content_type.is_article
            else GenerationAction.WRITE_POST
        )
        payload = {
            "outline": outline.model_dump(mode="json"),
            "selected_hook": (
                snapshot.selected_hook.model_dump(mode="json") if snapshot.selected_hook else None
            ),
            "selected_template": (
                snapshot.selected_template.model_dump(mode="json")
                if snapshot.selected_template else None
            ),
            "selected_angle": (
                snapshot.selected_angle.model_dump(mode="json") if snapshot.selected_angle else None
            ),
            "context": (
                snapshot.approved_context.model_dump(mode="json")
                if snapshot.approved_context else None
            ),
            "content_type": snapshot.content_type.value,
            "author_id": snapshot.author_id,
            "session_record_id": snapshot.session_record_id,
            "tracking_id": snapshot.tracking_id,
        }
        data = await self._generate("draft", action, payload, snapshot)
        if data is None:
            return self.store.get_snapshot()

        draft = self._parse(lambda: Draft.from_response(data), "draft")
        if not draft.body:
            raise GenerationError(f"{action.value} returned an empty draft")

        self.log.info("Draft ready (%d words)", len(draft.body.split()))
        return self.store.commit({
            "canonical_draft": draft,
            "draft_overlay": None,
            "phase": PipelinePhase.WRITING,
        })

    def edit_draft(self, text: str) -> PipelineSnapshot:
        snapshot = self.store.get_snapshot()
        self._require_phase(snapshot, DRAFT_PHASES, "edit the draft")
        if snapshot.canonical_draft is None:
            raise InvalidTransitionError("There is no draft to edit")
        return draft_overlay(self.store).set(text)

    def reset_draft(self) -> PipelineSnapshot:
        return draft_overlay(self.store).reset()

    def revise_outline(self) -> PipelineSnapshot:
        """writing → outline. Keeps angle, context and outline edits; drops the draft."""
        snapshot = self._snapshot_when_idle()
        validate_transition(snapshot.phase, PipelinePhase.OUTLINE, ALLOWED_BACKWARD_TRANSITIONS)

        self.log.info("Returning to outline, discarding the current draft")
        return self.store.commit({
            "phase": PipelinePhase.OUTLINE,
            "canonical_draft": None,
            "draft_overlay": None,
        })

    # ========================================================================
    # Save and lifecycle
    # ========================================================================

    async def save(self, new_content_record: bool = True) -> SaveResult:
        """Persist the effective snapshot.

        Allowed in any phase. Moves to saved only from writing (or saved).
        If the session record was written but the content record was not,
        the session id is still committed before the error propagates.
        """
        snapshot = self._snapshot_when_idle()
        completes = snapshot.phase in DRAFT_PHASES
        if completes:
            validate_transition(snapshot.phase, PipelinePhase.SAVED, VALID_PHASE_TRANSITIONS)
        status = SessionStatus.COMPLETED if completes else SessionStatus.IN_PROGRESS

        ticket = self._begin("save", snapshot.phase)
        try:
            result = await self.gateway.save(snapshot, new_content_record, status)
        except PersistenceError as e:
            if e.session_record_id and self._is_current(ticket):
                self.store.commit({"session_record_id": e.session_record_id})
            raise
        finally:
            self._end(ticket)

        if not self._is_current(ticket):
            self.log.warning("Discarding save result for a session that was replaced")
            return result

        patch: Dict[str, Any] = {"session_record_id": result.session_record_id}
        if result.content_record_id:
            patch["content_record_ids"] = snapshot.content_record_ids + [result.content_record_id]
        if completes:
            patch["phase"] = PipelinePhase.SAVED
        self.store.commit(patch)
        return result

    def reset(self) -> PipelineSnapshot:
        """Drop the session. A response still in flight will be discarded."""
        if self._in_flight is not None:
            self.log.info("Reset while %s request in flight", self._in_flight.slot)
        self._in_flight = None
        return self.store.reset()

    def hydrate(self, snapshot: PipelineSnapshot) -> PipelineSnapshot:
        """Replace the session with a restored one."""
        self._in_flight = None
        restored = self.store.hydrate(snapshot)
        self.log.info("Restored session at phase %s", restored.phase.value)
        return restored

    # ========================================================================
    # Helpers
    # ========================================================================

    def _snapshot_when_idle(self) -> PipelineSnapshot:
        if self._in_flight is not None:
            raise TransitionInFlightError(
                f"A {self._in_flight.slot} request is already in progress"
            )
        return self.store.get_snapshot()

    @staticmethod
    def _require_phase(snapshot: PipelineSnapshot, phases: Set[PipelinePhase], action: str):
        if snapshot.phase not in phases:
            raise InvalidTransitionError(
                f"Cannot {action} in phase {snapshot.phase.value}"
            )

    @staticmethod
    def _effective_outline_or_raise(snapshot: PipelineSnapshot) -> Outline:
        outline = snapshot.effective_outline()
        if outline is None:
            raise InvalidTransitionError("There is no outline")
        return outline

    def _parse(self, build, label: str):
        try:
            return build()
        except ValidationError as e:
            self.log.error("Malformed %s response: %s", label, e)
            raise GenerationError(f"Malformed {label} response") from e

    def _begin(self, slot: str, phase: PipelinePhase) -> _RequestTicket:
        if self._in_flight is not None:
            raise TransitionInFlightError(
                f"A {self._in_flight.slot} request is already in progress"
            )
        self._seq += 1
        ticket = _RequestTicket(slot=slot, seq=self._seq, epoch=self.store.epoch, phase=phase)
        self._latest[slot] = ticket.seq
        self._in_flight = ticket
        return ticket

    def _end(self, ticket: _RequestTicket) -> None:
        if self._in_flight == ticket:
            self._in_flight = None

    def _is_current(self, ticket: _RequestTicket) -> bool:
        return (
            ticket.epoch == self.store.epoch
            and self._latest.get(ticket.slot) == ticket.seq
            and self.store.get_snapshot().phase == ticket.phase
        )

    async def _generate(
        self,
        slot: str,
        action: GenerationAction,
        payload: Dict[str, Any],
        origin: PipelineSnapshot,
    ) -> Optional[Dict[str, Any]]:
        """Run one generation call. Returns None when the response is stale."""
        ticket = self._begin(slot, origin.phase)
        self.log.info("Requesting %s", action.value)
        try:
            data = await asyncio.wait_for(
                self.generation.orchestrate(action, payload),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            if not self._is_current(ticket):
                self.log.warning("Ignoring timeout of stale %s request", action.value)
                return None
            self.log.error("%s timed out after %ss", action.value, self.timeout_seconds)
            raise GenerationError(
                f"{action.value} timed out after {self.timeout_seconds}s"
            ) from e
        except TransportError as e:
            if not self._is_current(ticket):
                self.log.warning("Ignoring failure of stale %s request: %s", action.value, e)
                return None
            self.log.error("%s failed: %s", action.value, e)
            raise GenerationError(f"{action.value} failed: {e}") from e
        finally:
            self._end(ticket)

        if not self._is_current(ticket):
            self.log.warning("Discarding stale %s response", action.value)
            return None
        if not isinstance(data, dict):
            raise GenerationError(f"{action.value} returned {type(data).__name__}, expected object")
        return data
