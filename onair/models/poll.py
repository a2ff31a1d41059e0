"""Pydantic models for audience polls."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from onair.models.base import StoredModel, utc_now_iso


class PollType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    RATING_SCALE = "rating_scale"
    YES_NO = "yes_no"


class PollOption(StoredModel):
    id: str
    text: str
    votes: int = Field(default=0, ge=0)
    image_url: Optional[str] = None


class Poll(StoredModel):
    id: str = ""
    event_id: str
    type: PollType
    title: str
    options: list[PollOption] = Field(default_factory=list)
    is_active: bool = False
    is_active_for_public: bool = False
    google_sheet_tab: Optional[str] = None
    display: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @property
    def total_votes(self) -> int:
        return sum(option.votes for option in self.options)


# --- API request bodies ---

class PollOptionInput(BaseModel):
    text: str
    image_url: Optional[str] = None


class PollCreate(BaseModel):
    event_id: str
    type: PollType
    title: str
    options: list[PollOptionInput] = Field(default_factory=list)
    google_sheet_tab: Optional[str] = None
    display: dict[str, Any] = Field(default_factory=dict)


class VoteSubmission(BaseModel):
    option_ids: list[str]


class ToggleRequest(BaseModel):
    enabled: bool
