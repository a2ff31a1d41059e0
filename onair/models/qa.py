"""Pydantic models for Q&A sessions and submitted questions.

Sessions and submissions share the ``qa`` collection. New documents carry an
explicit ``kind``; legacy documents without one are classified by which of
``name``/``question`` is set.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from onair.errors import InvalidState
from onair.models.base import StoredModel, utc_now_iso

# Session id written into submissions that predate session linking.
DEFAULT_SESSION_ID = "default"


class DocumentKind(str, Enum):
    SESSION = "session"
    SUBMISSION = "submission"


class QAStatus(str, Enum):
    """Triage status of a submitted question."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ModerationPosition(str, Enum):
    """On-air sequencing slot. A submission holds at most one."""
    QUEUED = "queued"
    NEXT = "next"
    ACTIVE = "active"
    DONE = "done"


# Legacy flag → position, checked in this order.
_LEGACY_FLAGS = (
    ("isActive", ModerationPosition.ACTIVE),
    ("isQueued", ModerationPosition.QUEUED),
    ("isNext", ModerationPosition.NEXT),
    ("isDone", ModerationPosition.DONE),
)


class Session(StoredModel):
    """A named collection point for public questions."""
    id: str = ""
    event_id: str
    kind: DocumentKind = DocumentKind.SESSION
    name: str
    collect_name: bool = False
    collect_email: bool = False
    allow_anonymous: bool = True
    enable_public_submission: bool = True
    is_active_for_public: bool = False
    display: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class Submission(StoredModel):
    """A single public question moving through moderation."""
    id: str = ""
    event_id: str
    kind: DocumentKind = DocumentKind.SUBMISSION
    session_id: Optional[str] = None
    question: str
    answer: Optional[str] = None
    status: QAStatus = QAStatus.PENDING
    position: Optional[ModerationPosition] = None
    queue_order: Optional[int] = None
    submitter_name: Optional[str] = None
    submitter_email: Optional[str] = None
    moderator_notes: Optional[str] = None
    collect_name: bool = False
    collect_email: bool = False
    allow_anonymous: bool = True
    enable_public_submission: bool = False
    display: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @model_validator(mode="before")
    @classmethod
    def _position_from_legacy_flags(cls, data: Any) -> Any:
        if isinstance(data, dict) and "position" not in data:
            for flag, position in _LEGACY_FLAGS:
                if data.get(flag):
                    return {**data, "position": position}
        return data

    # Derived flags are stored alongside ``position`` for external readers.
    @computed_field(alias="isActive")
    @property
    def is_active(self) -> bool:
        return self.position == ModerationPosition.ACTIVE

    @computed_field(alias="isNext")
    @property
    def is_next(self) -> bool:
        return self.position == ModerationPosition.NEXT

    @computed_field(alias="isQueued")
    @property
    def is_queued(self) -> bool:
        return self.position == ModerationPosition.QUEUED

    @computed_field(alias="isDone")
    @property
    def is_done(self) -> bool:
        return self.position == ModerationPosition.DONE


def position_fields(position: Optional[ModerationPosition]) -> dict:
    """Store fields for a position change, derived flags included."""
    return {
        "position": position.value if position else None,
        "isActive": position == ModerationPosition.ACTIVE,
        "isNext": position == ModerationPosition.NEXT,
        "isQueued": position == ModerationPosition.QUEUED,
        "isDone": position == ModerationPosition.DONE,
    }


def classify_document(doc: dict) -> DocumentKind:
    """Return the kind of a ``qa`` document, inferring it for legacy records."""
    kind = doc.get("kind")
    if kind:
        return DocumentKind(kind)

    has_name = bool(doc.get("name"))
    has_question = bool(doc.get("question"))
    if has_question and not has_name:
        return DocumentKind.SUBMISSION
    if has_name and not has_question:
        return DocumentKind.SESSION
    raise InvalidState(f"Document {doc.get('id', '?')} is neither a session nor a submission.")


# --- API request bodies ---

class QuestionSubmission(BaseModel):
    """Incoming question from the public submission page."""
    session_id: str
    question: str
    submitter_name: Optional[str] = None
    submitter_email: Optional[str] = None
    anonymous: bool = False


class SessionCreate(BaseModel):
    event_id: str
    name: str
    collect_name: bool = False
    collect_email: bool = False
    allow_anonymous: bool = True
    enable_public_submission: bool = True
    is_active_for_public: bool = False
    display: dict[str, Any] = Field(default_factory=dict)


class SessionUpdate(BaseModel):
    name: Optional[str] = None
    collect_name: Optional[bool] = None
    collect_email: Optional[bool] = None
    allow_anonymous: Optional[bool] = None
    enable_public_submission: Optional[bool] = None
    is_active_for_public: Optional[bool] = None
    display: Optional[dict[str, Any]] = None


class SubmissionEdit(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    moderator_notes: Optional[str] = None


class QueueOrderUpdate(BaseModel):
    order: int


class ResetConfirmation(BaseModel):
    confirm: bool = False
