"""Authoring Session Registry.

Holds the transient authoring sessions served by the API, one
SnapshotStore + PhaseController + OutlineEditor per session, in process
memory. Sessions are dropped on delete or restart; anything worth keeping
is saved through the persistence gateway.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.authoring.services.outline_editor import OutlineEditor
from src.authoring.services.overlay import draft_overlay, outline_overlay
from src.authoring.services.persistence import PersistenceGateway
from src.authoring.services.snapshot_store import SnapshotStore
from src.authoring.services.state_machine import DEFAULT_GENERATION_TIMEOUT, PhaseController
from src.authoring.services.transport import GenerationTransport, PersistenceTransport

logger = logging.getLogger(__name__)

MAX_SESSIONS = 500


@dataclass
class AuthoringSession:
    id: str
    store: SnapshotStore
    controller: PhaseController
    editor: OutlineEditor
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    """Creates, finds and drops authoring sessions."""

    def __init__(
        self,
        generation: GenerationTransport,
        persistence: PersistenceTransport,
        timeout_seconds: float = DEFAULT_GENERATION_TIMEOUT,
        max_sessions: int = MAX_SESSIONS,
    ):
        self.generation = generation
        self.gateway = PersistenceGateway(persistence)
        self.timeout_seconds = timeout_seconds
        self.max_sessions = max_sessions
        self._sessions: Dict[str, AuthoringSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> AuthoringSession:
        """Start an empty session, dropping the oldest one when the registry is full."""
        while self._sessions and len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            logger.warning(
                "Session limit %d reached, dropping oldest session %s", self.max_sessions, oldest
            )
            self.delete(oldest)
        session_id = uuid.uuid4().hex
        store = SnapshotStore()
        session = AuthoringSession(
            id=session_id,
            store=store,
            controller=PhaseController(
                store,
                self.generation,
                self.gateway,
                timeout_seconds=self.timeout_seconds,
                session_label=session_id[:8],
            ),
            editor=OutlineEditor(store),
        )
        self._sessions[session_id] = session
        logger.info("Created authoring session %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[AuthoringSession]:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.controller.reset()
        logger.info("Dropped authoring session %s", session_id)
        return True

    async def restore(self, session_record_id: str) -> AuthoringSession:
        """Start a session from a saved session record.

        Raises:
            PersistenceError: the record could not be loaded
        """
        snapshot = await self.gateway.load(session_record_id)
        session = self.create()
        session.controller.hydrate(snapshot)
        return session

    @staticmethod
    def describe(session: AuthoringSession) -> Dict[str, Any]:
        """Snapshot plus the resolved effective artifacts."""
        snapshot = session.store.get_snapshot()
        outline = outline_overlay(session.store).resolve(snapshot)
        draft = draft_overlay(session.store).resolve(snapshot)
        return {
            "session_id": session.id,
            "phase": snapshot.phase.value,
            "in_flight": session.controller.in_flight,
            "snapshot": snapshot.model_dump(mode="json"),
            "effective_outline": (
                outline.effective.model_dump(mode="json") if outline.effective is not None else None
            ),
            "outline_edited": outline.is_edited,
            "effective_draft": draft.effective,
            "draft_edited": draft.is_edited,
        }
