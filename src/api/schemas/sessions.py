"""
Authoring Session API Schemas

Pydantic models for authoring session requests and responses.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from src.authoring.models.enums import ContentStrategy, ContentType


class InputRequest(BaseModel):
    """What the session should write about."""

    raw_input: str = Field(min_length=1)
    strategy: Optional[ContentStrategy] = None
    content_type: Optional[ContentType] = None
    author_id: Optional[str] = None
    selected_icp_id: Optional[str] = None


class SelectionRequest(BaseModel):
    """Pick a candidate by position or by identity key (id, title or text).

    Sending neither clears the selection where clearing is allowed.
    """

    index: Optional[int] = Field(default=None, ge=0)
    key: Optional[str] = None

    @model_validator(mode="after")
    def check_one_target(self):
        if self.index is not None and self.key is not None:
            raise ValueError("Give either index or key, not both")
        return self

    def target(self):
        return self.index if self.index is not None else self.key


class InsightSelectionRequest(BaseModel):
    selected: bool


OutlineOperation = Literal[
    "rename_section",
    "move_section",
    "add_section",
    "remove_section",
    "add_key_point",
    "update_key_point",
    "remove_key_point",
]


class OutlineEditRequest(BaseModel):
    """One structured outline edit."""

    op: OutlineOperation
    section_index: Optional[int] = None
    point_index: Optional[int] = None
    direction: Optional[Literal[-1, 1]] = None
    heading: Optional[str] = None
    text: Optional[str] = None

    @model_validator(mode="after")
    def check_arguments(self):
        required = {
            "rename_section": ("section_index", "heading"),
            "move_section": ("section_index", "direction"),
            "add_section": (),
            "remove_section": ("section_index",),
            "add_key_point": ("section_index",),
            "update_key_point": ("section_index", "point_index", "text"),
            "remove_key_point": ("section_index", "point_index"),
        }[self.op]
        missing = [name for name in required if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{self.op} requires {', '.join(missing)}")
        return self


class DraftEditRequest(BaseModel):
    text: str


class SaveRequest(BaseModel):
    new_content_record: bool = True


class RestoreRequest(BaseModel):
    session_record_id: str = Field(min_length=1)


class SessionResponse(BaseModel):
    """A session's snapshot plus its resolved effective artifacts."""

    session_id: str
    phase: str
    in_flight: Optional[str] = None
    snapshot: Dict[str, Any]
    effective_outline: Optional[Dict[str, Any]] = None
    outline_edited: bool = False
    effective_draft: Optional[str] = None
    draft_edited: bool = False


class SaveResponse(BaseModel):
    session_record_id: str
    content_record_id: Optional[str] = None
    session: SessionResponse


class ReorderRequest(BaseModel):
    """Either a full new order or a single move."""

    ordered_ids: Optional[List[str]] = None
    from_index: Optional[int] = Field(default=None, ge=0)
    to_index: Optional[int] = Field(default=None, ge=0)
    drag_epoch: Optional[int] = None

    @model_validator(mode="after")
    def check_shape(self):
        is_move = self.from_index is not None or self.to_index is not None
        if self.ordered_ids is None and not is_move:
            raise ValueError("Give ordered_ids or from_index/to_index")
        if self.ordered_ids is not None and is_move:
            raise ValueError("Give ordered_ids or from_index/to_index, not both")
        if is_move and (self.from_index is None or self.to_index is None):
            raise ValueError("A move needs both from_index and to_index")
        return self


class ServerOrderRequest(BaseModel):
    ordered_ids: List[str]


class OrderResponse(BaseModel):
    owner_id: str
    displayed_order: List[str]
    confirmed_order: List[str]
    pending: bool
    drag_epoch: int
