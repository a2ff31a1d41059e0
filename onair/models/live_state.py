"""Models for the per-event live snapshot and the event record it reads from."""

from typing import Optional

from pydantic import BaseModel, Field

from onair.models.base import StoredModel, utc_now_iso
from onair.models.poll import PollOption


class ActivePollSnapshot(StoredModel):
    id: str
    title: str
    type: str
    options: list[PollOption] = Field(default_factory=list)
    google_sheet_tab: Optional[str] = None


class ActiveQASnapshot(StoredModel):
    question: str
    answer: str = ""
    submitter_name: str = ""


class LiveState(StoredModel):
    """What is on air right now, as read by outputs and CSV consumers."""
    event_id: str
    active_poll: Optional[ActivePollSnapshot] = None
    active_qa: Optional[ActiveQASnapshot] = Field(default=None, alias="activeQA")
    csv_source_session_id: Optional[str] = None
    csv_source_poll_id: Optional[str] = None
    poll_sheet_name: Optional[str] = None
    qa_sheet_name: Optional[str] = None
    qa_cell: Optional[str] = None
    event_name: Optional[str] = None
    updated_at: Optional[str] = None


class Event(StoredModel):
    """An event and its spreadsheet mirror configuration."""
    id: str = ""
    name: str
    date: str = ""
    google_sheet_url: Optional[str] = None
    google_sheet_web_app_url: Optional[str] = None
    active_qa_sheet_name: Optional[str] = Field(default=None, alias="activeQASheetName")
    active_qa_cell: Optional[str] = Field(default=None, alias="activeQACell")
    qa_backup_sheet_name: Optional[str] = None
    qa_backup_per_session: bool = False
    qa_backup_sheet_prefix: Optional[str] = None
    qa_backup_sheet_names: dict[str, str] = Field(default_factory=dict)
    poll_backup_sheet_name: Optional[str] = None
    poll_backup_per_poll: bool = False
    poll_backup_sheet_prefix: Optional[str] = None
    public_link: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @property
    def web_app_url(self) -> Optional[str]:
        url = (self.google_sheet_web_app_url or "").strip()
        return url or None

    def qa_backup_sheet(self, session_id: str) -> Optional[str]:
        """Sheet that receives Q&A backups for a session, if any."""
        named = (self.qa_backup_sheet_names.get(session_id) or "").strip()
        if named:
            return named
        prefix = (self.qa_backup_sheet_prefix or "").strip()
        if self.qa_backup_per_session and prefix:
            return f"{prefix}{session_id}"
        return (self.qa_backup_sheet_name or "").strip() or None

    def poll_backup_sheet(self, poll_id: str) -> Optional[str]:
        """Sheet that receives poll backups, if any."""
        prefix = (self.poll_backup_sheet_prefix or "").strip()
        if self.poll_backup_per_poll and prefix:
            return f"{prefix}{poll_id}"
        return (self.poll_backup_sheet_name or "").strip() or None


# --- API request bodies ---

class EventCreate(BaseModel):
    name: str
    date: str = ""
    google_sheet_url: Optional[str] = None
    google_sheet_web_app_url: Optional[str] = None
    active_qa_sheet_name: Optional[str] = None
    active_qa_cell: Optional[str] = None
    qa_backup_sheet_name: Optional[str] = None
    qa_backup_per_session: bool = False
    qa_backup_sheet_prefix: Optional[str] = None
    qa_backup_sheet_names: dict[str, str] = Field(default_factory=dict)
    poll_backup_sheet_name: Optional[str] = None
    poll_backup_per_poll: bool = False
    poll_backup_sheet_prefix: Optional[str] = None
    public_link: Optional[str] = None


class CsvSourceSelection(BaseModel):
    session_id: Optional[str] = None
    poll_id: Optional[str] = None
