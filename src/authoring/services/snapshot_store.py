"""Snapshot store: the single owned state container for an authoring session.

commit() is total. Unknown keys and values that fail validation are
dropped with a warning instead of raising, and stale selections (an angle,
hook or template that no longer exists among its candidates) are cleared
after every write.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from src.authoring.models.snapshot import PipelineSnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[PipelineSnapshot], None]

_FIELD_ADAPTERS: Dict[str, TypeAdapter] = {}


def _adapter_for(field_name: str) -> TypeAdapter:
    adapter = _FIELD_ADAPTERS.get(field_name)
    if adapter is None:
        annotation = PipelineSnapshot.model_fields[field_name].annotation
        adapter = TypeAdapter(annotation)
        _FIELD_ADAPTERS[field_name] = adapter
    return adapter


def clear_stale_selections(snapshot: PipelineSnapshot) -> PipelineSnapshot:
    """Drop selections that no longer point at a member of their candidates."""
    updates: Dict[str, Any] = {}

    if snapshot.selected_angle is not None:
        keys = {a.identity_key() for a in snapshot.angle_candidates}
        if snapshot.selected_angle.identity_key() not in keys:
            updates["selected_angle"] = None

    outline = snapshot.effective_outline()
    if snapshot.selected_hook is not None:
        keys = {h.identity_key() for h in outline.hooks} if outline else set()
        if snapshot.selected_hook.identity_key() not in keys:
            updates["selected_hook"] = None

    if snapshot.selected_template is not None:
        keys = {t.identity_key() for t in outline.recommendations} if outline else set()
        if snapshot.selected_template.identity_key() not in keys:
            updates["selected_template"] = None

    if not updates:
        return snapshot

    logger.info("Clearing stale selections: %s", sorted(updates))
    return snapshot.model_copy(update=updates)


class SnapshotStore:
    """Holds the current PipelineSnapshot and notifies subscribers on change.

    One store per authoring session; it is passed to the controller, the
    outline editor and the overlay helpers rather than shared globally.
    """

    def __init__(self, snapshot: Optional[PipelineSnapshot] = None):
        self._snapshot = snapshot or PipelineSnapshot()
        self._listeners: List[SnapshotListener] = []
        self._epoch = 0

    @property
    def epoch(self) -> int:
        """Bumped whenever the session is replaced (reset or hydrate)."""
        return self._epoch

    def get_snapshot(self) -> PipelineSnapshot:
        """Return a deep copy of the current snapshot."""
        return self._snapshot.model_copy(deep=True)

    def commit(self, patch: Dict[str, Any]) -> PipelineSnapshot:
        """Apply a partial update and return the new snapshot."""
        fields = PipelineSnapshot.model_fields
        accepted: Dict[str, Any] = {}

        for key, value in patch.items():
            if key not in fields:
                logger.warning("Ignoring unknown snapshot field %r", key)
                continue
            try:
                validated = _adapter_for(key).validate_python(value)
            except ValidationError as e:
                logger.warning(
                    "Ignoring invalid value for snapshot field %r: %s",
                    key,
                    e.errors()[0].get("msg") if e.errors() else e,
                )
                continue
            accepted[key] = copy.deepcopy(validated)

        if accepted:
            updated = self._snapshot.model_copy(update=accepted)
            self._snapshot = clear_stale_selections(updated)
            self._notify()

        return self.get_snapshot()

    def reset(self) -> PipelineSnapshot:
        """Discard the session and start from an empty snapshot."""
        self._epoch += 1
        self._snapshot = PipelineSnapshot()
        self._notify()
        return self.get_snapshot()

    def hydrate(self, snapshot: PipelineSnapshot) -> PipelineSnapshot:
        """Replace the session with one restored from a saved record."""
        self._epoch += 1
        self._snapshot = clear_stale_selections(snapshot.model_copy(deep=True))
        self._notify()
        return self.get_snapshot()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.get_snapshot())
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)
