"""Tests for the CSV projections."""

import pytest

from onair.models.live_state import ActiveQASnapshot, LiveState
from onair.models.poll import Poll, PollOption, PollType
from onair.models.qa import ModerationPosition, QAStatus, Submission
from onair.services.csv_export import (
    BOM,
    CsvCache,
    build_live_poll_csv,
    build_live_qa_csv,
    build_live_queue_csv,
    build_session_csv,
    escape_csv,
    pick_queue_slots,
)


def _rows(csv: str) -> list[str]:
    assert csv.startswith(BOM)
    return csv[len(BOM):].split("\r\n")


def _submission(question, session_id="s1", position=None, name=None, status=QAStatus.APPROVED):
    return Submission(
        id=question, event_id="ev1", session_id=session_id, question=question,
        position=position, submitter_name=name, status=status,
    )


class TestEscape:
    @pytest.mark.parametrize("value", ["plain", "", "Olá", "semi;colon", "tab\there"])
    def test_plain_values_unchanged(self, value):
        assert escape_csv(value) == value

    @pytest.mark.parametrize("value, expected", [
        ("a,b", '"a,b"'),
        ('say "hi"', '"say ""hi"""'),
        ("line\nbreak", '"line\nbreak"'),
        ("carriage\rreturn", '"carriage\rreturn"'),
        ('"', '""""'),
    ])
    def test_special_values_quoted(self, value, expected):
        assert escape_csv(value) == expected

    def test_none_and_numbers(self):
        assert escape_csv(None) == ""
        assert escape_csv(3) == "3"


class TestLiveQACsv:
    def test_placeholder_when_nothing_on_air(self):
        rows = _rows(build_live_qa_csv(LiveState(event_id="ev1", event_name="Launch")))
        assert rows[0] == "Question,Answer,Submitter,Event,Updated"
        assert rows[1].startswith("No active question,")
        assert rows[1].split(",")[3] == "Launch"

    def test_placeholder_without_live_state(self):
        rows = _rows(build_live_qa_csv(None, placeholder="Waiting"))
        assert rows[1] == "Waiting,,,,"

    def test_active_row_is_escaped(self):
        state = LiveState(
            event_id="ev1",
            active_qa=ActiveQASnapshot(question='Is "this", on?', answer="Yes", submitter_name="Ana"),
            event_name="Launch",
            updated_at="2026-01-01T00:00:00+00:00",
        )
        rows = _rows(build_live_qa_csv(state))
        assert rows == [
            "Question,Answer,Submitter,Event,Updated",
            '"Is ""this"", on?",Yes,Ana,Launch,2026-01-01T00:00:00+00:00',
        ]


class TestQueueCsv:
    def test_slots_for_session(self):
        submissions = [
            _submission("Active?", position=ModerationPosition.ACTIVE, name="A"),
            _submission("Cue?", position=ModerationPosition.QUEUED),
            _submission("Next?", position=ModerationPosition.NEXT, name="N"),
            _submission("Other session?", session_id="s2", position=ModerationPosition.QUEUED),
        ]
        rows = _rows(build_live_queue_csv(*pick_queue_slots(submissions, "s1")))
        assert rows[0] == "Question ACTIVE,Name ACTIVE,Question Cue,Name Cue,Question Next,Name Next"
        assert rows[1] == "Active?,A,Cue?,,Next?,N"

    def test_empty(self):
        rows = _rows(build_live_queue_csv(None, None, None))
        assert rows[1] == ",,,,,"


class TestPollCsv:
    def test_percentages(self):
        poll = Poll(id="p1", event_id="ev1", type=PollType.SINGLE_CHOICE, title="Best, ever?", options=[
            PollOption(id="a", text="A", votes=1),
            PollOption(id="b", text="B", votes=2),
            PollOption(id="c", text="C", votes=0),
        ])
        rows = _rows(build_live_poll_csv(poll))
        assert rows == [
            '"Best, ever?"',
            "Option,Votes,Percentage,PercentRounded",
            "A,1,33.3%,33%",
            "B,2,66.7%,67%",
            "C,0,0.0%,0%",
        ]

    def test_no_votes(self):
        poll = Poll(id="p1", event_id="ev1", type=PollType.YES_NO, title="Q", options=[
            PollOption(id="y", text="Yes"),
        ])
        assert _rows(build_live_poll_csv(poll))[2] == "Yes,0,0%,0%"

    def test_no_poll(self):
        assert _rows(build_live_poll_csv(None)) == ["Title", "Option,Votes,Percentage,PercentRounded"]


class TestSessionCsv:
    def test_flags(self):
        rows = _rows(build_session_csv([
            _submission("One?", position=ModerationPosition.ACTIVE, name="Ana"),
            _submission("Two?", status=QAStatus.PENDING),
            _submission("Three?", position=ModerationPosition.DONE),
        ]))
        assert rows == [
            "Question,Name,Status,IsActive,IsQueued,IsNext,IsDone",
            "One?,Ana,approved,1,0,0,0",
            "Two?,,pending,0,0,0,0",
            "Three?,,approved,0,0,0,1",
        ]


class TestCsvCache:
    def test_zero_ttl_disables(self):
        cache = CsvCache(ttl_seconds=0)
        cache.set("qa:ev1", "csv")
        assert cache.get("qa:ev1") is None

    def test_caches_until_cleared(self):
        cache = CsvCache(ttl_seconds=60)
        cache.set("qa:ev1", "csv")
        assert cache.get("qa:ev1") == "csv"
        cache.clear()
        assert cache.get("qa:ev1") is None
