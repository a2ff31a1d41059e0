"""Tests for polls and vote counting."""

import asyncio
from unittest.mock import MagicMock

import pytest

from onair.dependencies import build_services
from onair.errors import InvalidState, NotFound, ValidationError
from onair.models.live_state import Event
from onair.models.poll import PollCreate, PollOptionInput, PollType
from onair.services.document_store import LIVE_STATE, POLLS, MemoryDocumentStore

from conftest import WEB_APP_URL


async def _setup(services, poll_type=PollType.SINGLE_CHOICE, options=("A", "B"), event_fields=None, **poll_fields):
    event = await services.events.create_event(Event(name="Launch", **(event_fields or {})))
    poll = await services.polls.create_poll(PollCreate(
        event_id=event.id,
        type=poll_type,
        title="Best moment?",
        options=[PollOptionInput(text=text) for text in options],
        **poll_fields,
    ))
    return event, poll


class TestCreatePoll:
    def test_votes_start_at_zero(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)

            assert [o.text for o in poll.options] == ["A", "B"]
            assert all(o.votes == 0 for o in poll.options)
            assert len({o.id for o in poll.options}) == 2
            assert poll.is_active is False
            assert poll.is_active_for_public is False

        asyncio.run(_run())

    def test_yes_no_defaults(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services, poll_type=PollType.YES_NO, options=())
            assert [o.text for o in poll.options] == ["Yes", "No"]

        asyncio.run(_run())

    @pytest.mark.parametrize("options", [(), ("1", "2", "3", "4", "5", "6", "7"), ("A", " ")])
    def test_option_limits(self, make_services, options):
        async def _run():
            services = make_services()
            with pytest.raises(ValidationError):
                await _setup(services, options=options)

        asyncio.run(_run())


class TestVoting:
    """Test vote increments and their guards."""

    def test_sequential_votes_accumulate(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            await services.polls.set_poll_public(poll.id, True)
            option_a = poll.options[0].id

            await services.polls.submit_votes(poll.id, [option_a])
            result = await services.polls.submit_votes(poll.id, [option_a])

            assert result.options[0].votes == 2
            assert result.options[1].votes == 0
            stored = await services.polls.get_poll(poll.id)
            assert stored.options[0].votes == 2

        asyncio.run(_run())

    def test_concurrent_votes_are_not_lost(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            await services.polls.set_poll_public(poll.id, True)
            option_b = poll.options[1].id

            await asyncio.gather(*(services.polls.submit_votes(poll.id, [option_b]) for _ in range(10)))

            stored = await services.polls.get_poll(poll.id)
            assert stored.options[1].votes == 10

        asyncio.run(_run())

    def test_closed_poll(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            with pytest.raises(InvalidState):
                await services.polls.submit_votes(poll.id, [poll.options[0].id])

        asyncio.run(_run())

    def test_unknown_poll(self, make_services):
        async def _run():
            services = make_services()
            with pytest.raises(NotFound):
                await services.polls.submit_votes("missing", ["a"])

        asyncio.run(_run())

    def test_bad_selections(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            await services.polls.set_poll_public(poll.id, True)
            a, b = (o.id for o in poll.options)

            with pytest.raises(ValidationError):
                await services.polls.submit_votes(poll.id, [])
            with pytest.raises(ValidationError):
                await services.polls.submit_votes(poll.id, ["nope"])
            with pytest.raises(ValidationError):
                await services.polls.submit_votes(poll.id, [a, b])

            stored = await services.polls.get_poll(poll.id)
            assert stored.total_votes == 0

        asyncio.run(_run())

    def test_multiple_choice(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services, poll_type=PollType.MULTIPLE_CHOICE, options=("A", "B", "C"))
            await services.polls.set_poll_active(poll.id, True)
            a, _, c = (o.id for o in poll.options)

            result = await services.polls.submit_votes(poll.id, [a, c, a])

            assert [o.votes for o in result.options] == [1, 0, 1]

        asyncio.run(_run())


class TestOnAir:
    """Test live poll publication."""

    def test_activating_takes_other_polls_off_air(self, make_services):
        async def _run():
            services = make_services()
            event, first = await _setup(services)
            second = await services.polls.create_poll(PollCreate(
                event_id=event.id, type=PollType.YES_NO, title="Again?",
            ))

            await services.polls.set_poll_active(first.id, True)
            await services.polls.set_poll_active(second.id, True)

            assert (await services.polls.get_poll(first.id)).is_active is False
            assert (await services.polls.get_poll(second.id)).is_active is True
            state = await services.live.get_live_state(event.id)
            assert state.active_poll.id == second.id
            assert state.active_poll.title == "Again?"

        asyncio.run(_run())

    def test_deactivating_clears_live_poll(self, make_services):
        async def _run():
            services = make_services()
            event, poll = await _setup(services)

            await services.polls.set_poll_active(poll.id, True)
            await services.polls.set_poll_active(poll.id, False)

            state = await services.live.get_live_state(event.id)
            assert state.active_poll is None

        asyncio.run(_run())

    def test_vote_updates_live_counts(self, make_services):
        async def _run():
            services = make_services()
            event, poll = await _setup(services)
            await services.polls.set_poll_active(poll.id, True)

            await services.polls.submit_votes(poll.id, [poll.options[1].id])

            state = await services.live.get_live_state(event.id)
            assert [o.votes for o in state.active_poll.options] == [0, 1]

        asyncio.run(_run())

    def test_delete_live_poll(self, make_services):
        async def _run():
            services = make_services()
            event, poll = await _setup(services)
            await services.polls.set_poll_active(poll.id, True)

            await services.polls.delete_poll(poll.id)

            assert (await services.live.get_live_state(event.id)).active_poll is None
            with pytest.raises(NotFound):
                await services.polls.get_poll(poll.id)

        asyncio.run(_run())

    def test_vote_backup(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services, event_fields={
                "google_sheet_web_app_url": WEB_APP_URL,
                "poll_backup_sheet_name": "Poll Backup",
            })
            await services.polls.set_poll_public(poll.id, True)
            services.dispatcher.dispatch_backup = MagicMock()

            await services.polls.submit_votes(poll.id, [poll.options[0].id])

            url, sheet, backup_type, record = services.dispatcher.dispatch_backup.call_args.args
            assert (url, sheet, backup_type) == (WEB_APP_URL, "Poll Backup", "poll_backup")
            assert record["id"] == poll.id
            assert record["title"] == "Best moment?"
            assert record["options"] == [{"text": "A", "votes": 1}, {"text": "B", "votes": 0}]

        asyncio.run(_run())


class SlowLiveStore(MemoryDocumentStore):
    """Delays the live-state write that carries the first vote."""

    async def upsert(self, collection, doc_id, fields):
        active_poll = fields.get("activePoll") if collection == LIVE_STATE else None
        if active_poll and sum(o["votes"] for o in active_poll["options"]) == 1:
            await asyncio.sleep(0.05)
        await super().upsert(collection, doc_id, fields)


class TestStoredPolls:
    """Test that polls and live snapshots survive a round trip through the store."""

    def test_option_ids_survive_a_vote(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            await services.polls.set_poll_public(poll.id, True)

            await services.polls.submit_votes(poll.id, [poll.options[0].id])

            doc = await services.store.get(POLLS, poll.id)
            assert [o["id"] for o in doc["options"]] == [o.id for o in poll.options]
            stored = await services.polls.get_poll(poll.id)
            assert [o.votes for o in stored.options] == [1, 0]

        asyncio.run(_run())

    def test_live_snapshot_keeps_ids(self, make_services):
        async def _run():
            services = make_services()
            event, poll = await _setup(services)
            await services.polls.set_poll_active(poll.id, True)

            doc = await services.store.get(LIVE_STATE, event.id)
            assert doc["activePoll"]["id"] == poll.id
            assert [o["id"] for o in doc["activePoll"]["options"]] == [o.id for o in poll.options]

        asyncio.run(_run())

    def test_poll_webhook_sends_option_ids(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(
                services,
                event_fields={"google_sheet_web_app_url": WEB_APP_URL},
                google_sheet_tab="Poll1",
            )
            services.dispatcher.dispatch = MagicMock()

            await services.polls.set_poll_active(poll.id, True)

            envelope = services.dispatcher.dispatch.call_args.args[1]
            assert [o["id"] for o in envelope["poll"]["options"]] == [o.id for o in poll.options]

        asyncio.run(_run())

    def test_live_counts_never_go_backwards(self, settings):
        async def _run():
            services = build_services(settings, SlowLiveStore())
            event, poll = await _setup(services)
            await services.polls.set_poll_active(poll.id, True)
            option_a = poll.options[0].id

            await asyncio.gather(
                services.polls.submit_votes(poll.id, [option_a]),
                services.polls.submit_votes(poll.id, [option_a]),
            )

            stored = await services.polls.get_poll(poll.id)
            state = await services.live.get_live_state(event.id)
            assert stored.options[0].votes == 2
            assert state.active_poll.options[0].votes == 2

        asyncio.run(_run())

    def test_vote_locks_are_released(self, make_services):
        async def _run():
            services = make_services()
            _, poll = await _setup(services)
            await services.polls.set_poll_public(poll.id, True)

            await services.polls.submit_votes(poll.id, [poll.options[0].id])
            await services.polls.delete_poll(poll.id)

            assert poll.id not in services.polls._locks

        asyncio.run(_run())
