"""Transport protocols for the remote generation and persistence backend.

The controller, persistence gateway and reorder protocol depend on these
protocols, not on any specific implementation. ContentApiClient
(src/content_api_client.py) is the HTTP implementation; the in-memory
transports below are for tests and local development.
"""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

from src.authoring.models.enums import GenerationAction

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A call to the remote backend failed."""

    pass


class GenerationTransport(Protocol):
    """Remote generation service (angles, outlines, drafts)."""

    async def orchestrate(self, action: GenerationAction, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run one orchestrator action and return its response body."""
        ...


class PersistenceTransport(Protocol):
    """Remote storage for session records and derived content records."""

    async def upsert_session(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Create or update a session record. Returns the stored record with its id."""
        ...

    async def create_content_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Create a derived content record. Returns the stored record with its id."""
        ...

    async def load_session(self, session_record_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a stored session record, or None if it does not exist."""
        ...


class OrderTransport(Protocol):
    """Remote write confirming the display order of a user-sortable list."""

    async def confirm_order(self, owner_id: str, ordered_ids: List[str]) -> None:
        """Persist the full ordered id sequence. Raises TransportError on failure."""
        ...

    async def load_order(self, owner_id: str) -> List[str]:
        """Current server-side order of the owner's items."""
        ...


ScriptedResponse = Union[Dict[str, Any], Exception, Callable[[Dict[str, Any]], Dict[str, Any]]]


class InMemoryGenerationTransport:
    """Scripted generation service for testing.

    Each action answers with a dict, raises an exception, or calls a
    function of the payload. hold(action) returns an event that the call
    waits on, so tests can keep a request in flight.
    """

    def __init__(self, responses: Optional[Dict[GenerationAction, ScriptedResponse]] = None):
        self.responses: Dict[GenerationAction, ScriptedResponse] = dict(responses or {})
        self.calls: List[Tuple[GenerationAction, Dict[str, Any]]] = []
        self._gates: Dict[GenerationAction, asyncio.Event] = {}

    def respond(self, action: GenerationAction, response: ScriptedResponse) -> None:
        self.responses[action] = response

    def hold(self, action: GenerationAction) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[action] = gate
        return gate

    def release(self, action: GenerationAction) -> None:
        gate = self._gates.pop(action, None)
        if gate is not None:
            gate.set()

    async def orchestrate(self, action: GenerationAction, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append((action, copy.deepcopy(payload)))

        gate = self._gates.get(action)
        if gate is not None:
            await gate.wait()

        response = self.responses.get(action)
        if response is None:
            raise TransportError(f"No response scripted for {action.value}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(payload)
        return copy.deepcopy(response)

    def calls_for(self, action: GenerationAction) -> List[Dict[str, Any]]:
        return [payload for a, payload in self.calls if a == action]


class InMemoryPersistenceTransport:
    """Dict-backed session and content record storage for testing."""

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.content_records: Dict[str, Dict[str, Any]] = {}
        self.fail_upsert: Optional[Exception] = None
        self.fail_content: Optional[Exception] = None

    async def upsert_session(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_upsert is not None:
            raise self.fail_upsert

        now = datetime.now(timezone.utc).isoformat()
        session_id = record.get("id") or str(uuid.uuid4())
        stored = self.sessions.get(session_id)
        if stored is None:
            stored = {"id": session_id, "created_at": now}
            self.sessions[session_id] = stored
        stored.update({k: copy.deepcopy(v) for k, v in record.items() if k != "id"})
        stored["updated_at"] = now
        return copy.deepcopy(stored)

    async def create_content_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_content is not None:
            raise self.fail_content

        record_id = str(uuid.uuid4())
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        stored["created_at"] = datetime.now(timezone.utc).isoformat()
        self.content_records[record_id] = stored
        return copy.deepcopy(stored)

    async def load_session(self, session_record_id: str) -> Optional[Dict[str, Any]]:
        stored = self.sessions.get(session_record_id)
        return copy.deepcopy(stored) if stored is not None else None

    def content_for_session(self, session_record_id: str) -> List[Dict[str, Any]]:
        return [
            r for r in self.content_records.values()
            if r.get("session_id") == session_record_id
        ]


class InMemoryOrderTransport:
    """Stores confirmed orders per owner. Can fail or hold writes for tests."""

    def __init__(self):
        self.orders: Dict[str, List[str]] = {}
        self.calls: List[Tuple[str, List[str]]] = []
        self.failures: List[Exception] = []
        self._gate: Optional[asyncio.Event] = None

    def fail_next(self, error: Optional[Exception] = None) -> None:
        self.failures.append(error or TransportError("order write rejected"))

    def hold(self) -> asyncio.Event:
        self._gate = asyncio.Event()
        return self._gate

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    async def confirm_order(self, owner_id: str, ordered_ids: List[str]) -> None:
        self.calls.append((owner_id, list(ordered_ids)))

        gate = self._gate
        if gate is not None:
            await gate.wait()

        if self.failures:
            raise self.failures.pop(0)
        self.orders[owner_id] = list(ordered_ids)

    async def load_order(self, owner_id: str) -> List[str]:
        return list(self.orders.get(owner_id, []))
