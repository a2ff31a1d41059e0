"""CSV projections of the live state for spreadsheets and broadcast tools.

Every document starts with a byte-order mark so spreadsheet imports detect
UTF-8, and rows are joined with CRLF.
"""

import math
import time
from typing import Any, Optional

from onair.models.live_state import LiveState
from onair.models.poll import Poll
from onair.models.qa import ModerationPosition, Submission

BOM = "\ufeff"
LIVE_QA_HEADER = "Question,Answer,Submitter,Event,Updated"
LIVE_QUEUE_HEADER = "Question ACTIVE,Name ACTIVE,Question Cue,Name Cue,Question Next,Name Next"
POLL_HEADER = "Option,Votes,Percentage,PercentRounded"
SESSION_HEADER = "Question,Name,Status,IsActive,IsQueued,IsNext,IsDone"
DEFAULT_PLACEHOLDER = "No active question"


def escape_csv(value: Any) -> str:
    """Quote a field, doubling inner quotes, when it holds a comma, quote or line break."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in ',"\n\r'):
        return '"' + text.replace('"', '""') + '"'
    return text


def _document(rows: list[str]) -> str:
    return BOM + "\r\n".join(rows)


def _row(*values: Any) -> str:
    return ",".join(escape_csv(v) for v in values)


def build_live_qa_csv(live_state: Optional[LiveState], placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """Header plus one row for the event's active Q&A.

    With nothing on air the Question column holds ``placeholder`` so sheet
    formulas show readable text instead of a blank cell.
    """
    active = live_state.active_qa if live_state else None
    event_name = (live_state.event_name if live_state else None) or ""
    updated = (live_state.updated_at if live_state else None) or ""

    if active is None or not active.question:
        row = _row(placeholder, "", "", event_name, updated)
    else:
        row = _row(active.question, active.answer, active.submitter_name, event_name, updated)
    return _document([LIVE_QA_HEADER, row])


def pick_queue_slots(
    submissions: list[Submission], session_id: str
) -> tuple[Optional[Submission], Optional[Submission], Optional[Submission]]:
    """The (active, queued, next) submissions of one session."""
    in_session = [s for s in submissions if s.session_id == session_id]

    def first(position: ModerationPosition) -> Optional[Submission]:
        return next((s for s in in_session if s.position == position), None)

    return first(ModerationPosition.ACTIVE), first(ModerationPosition.QUEUED), first(ModerationPosition.NEXT)


def build_live_queue_csv(
    active: Optional[Submission],
    cue: Optional[Submission],
    next_up: Optional[Submission],
) -> str:
    """Six columns: question and name for the active, queued (cue) and next slots."""
    values = []
    for submission in (active, cue, next_up):
        values.append(submission.question if submission else "")
        values.append((submission.submitter_name or "") if submission else "")
    return _document([LIVE_QUEUE_HEADER, _row(*values)])


def _percent(votes: int, total: int) -> tuple[str, str]:
    if total <= 0:
        return "0%", "0%"
    share = votes / total * 100
    return f"{share:.1f}%", f"{math.floor(share + 0.5)}%"


def build_live_poll_csv(poll: Optional[Poll]) -> str:
    """Poll title row, header, then one row per option with its share of the votes."""
    if poll is None:
        return _document(["Title", POLL_HEADER])

    total = poll.total_votes
    rows = [escape_csv(poll.title), POLL_HEADER]
    for option in poll.options:
        pct, pct_rounded = _percent(option.votes, total)
        rows.append(_row(option.text, option.votes, pct, pct_rounded))
    return _document(rows)


def build_session_csv(submissions: list[Submission]) -> str:
    """Every question of a session with its status and position flags as 1/0."""
    rows = [SESSION_HEADER]
    for s in submissions:
        flags = ["1" if flag else "0" for flag in (s.is_active, s.is_queued, s.is_next, s.is_done)]
        rows.append(",".join([escape_csv(s.question), escape_csv(s.submitter_name or ""), escape_csv(s.status.value), *flags]))
    return _document(rows)


class CsvCache:
    """Short-lived cache of rendered CSV documents, keyed by endpoint and id.

    Spreadsheet IMPORTDATA timers poll aggressively; caching keeps store reads
    bounded. A TTL of zero disables caching.
    """

    def __init__(self, ttl_seconds: float = 15.0):
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires, value = entry
        if time.monotonic() >= expires:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: str):
        if self._ttl > 0:
            self._entries[key] = (time.monotonic() + self._ttl, value)

    def clear(self):
        self._entries.clear()
