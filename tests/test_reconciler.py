"""Tests for the moderator view reconciler."""

import asyncio

from onair.models.qa import ModerationPosition, QAStatus, Submission
from onair.services.reconciler import ModerationReconciler, build_views, has_structural_change


def _submission(sid, created_at, status=QAStatus.PENDING, position=None, question="Q?"):
    return Submission(
        id=sid, event_id="ev1", question=question, status=status,
        position=position, created_at=created_at,
    )


class TestBuildViews:
    def test_ordering(self):
        old = _submission("old", "2026-01-01T10:00:00", status=QAStatus.APPROVED)
        mid = _submission("mid", "2026-01-01T11:00:00", status=QAStatus.APPROVED, position=ModerationPosition.QUEUED)
        new = _submission("new", "2026-01-01T12:00:00", status=QAStatus.APPROVED)
        pending = _submission("pending", "2026-01-01T13:00:00")

        view = build_views([old, mid, new, pending])

        assert [s.id for s in view.pending] == ["pending", "new", "mid", "old"]
        assert [s.id for s in view.approved] == ["mid", "new", "old"]


class TestStructuralChange:
    def test_first_fetch_is_a_change(self):
        assert has_structural_change(None, [])

    def test_text_edit_is_not_structural(self):
        before = [_submission("a", "t1", question="Old wording?")]
        after = [_submission("a", "t1", question="New wording?")]
        assert not has_structural_change(before, after)

    def test_flag_and_membership_changes(self):
        base = [_submission("a", "t1", status=QAStatus.APPROVED)]
        assert has_structural_change(base, [_submission("a", "t1", status=QAStatus.APPROVED, position=ModerationPosition.NEXT)])
        assert has_structural_change(base, [_submission("a", "t1", status=QAStatus.REJECTED)])
        assert has_structural_change(base, base + [_submission("b", "t2")])
        assert has_structural_change(base, [])


class TestReconciler:
    def test_refresh_replaces_view_on_change(self):
        async def _run():
            responses = [
                [_submission("a", "t1")],
                [_submission("a", "t1", question="Edited?")],
                [_submission("a", "t1", status=QAStatus.APPROVED)],
            ]
            changes = []

            async def fetch():
                return responses.pop(0)

            reconciler = ModerationReconciler(fetch, on_change=changes.append)

            assert await reconciler.refresh() is True
            assert await reconciler.refresh() is False
            assert await reconciler.refresh() is True
            assert len(changes) == 2
            assert [s.id for s in reconciler.view.approved] == ["a"]

        asyncio.run(_run())

    def test_fetch_error_keeps_view(self):
        async def _run():
            calls = []

            async def fetch():
                calls.append(1)
                if len(calls) > 1:
                    raise ConnectionError("backend down")
                return [_submission("a", "t1")]

            reconciler = ModerationReconciler(fetch)
            await reconciler.refresh()

            assert await reconciler.refresh() is False
            assert [s.id for s in reconciler.view.pending] == ["a"]
            assert reconciler.in_flight is False

        asyncio.run(_run())

    def test_overlapping_refresh_is_skipped(self):
        async def _run():
            release = asyncio.Event()
            calls = []

            async def fetch():
                calls.append(1)
                await release.wait()
                return []

            reconciler = ModerationReconciler(fetch)
            first = asyncio.create_task(reconciler.refresh())
            await asyncio.sleep(0)

            assert reconciler.in_flight is True
            assert await reconciler.refresh() is False

            release.set()
            assert await first is True
            assert len(calls) == 1

        asyncio.run(_run())

    def test_start_and_stop(self):
        async def _run():
            calls = []

            async def fetch():
                calls.append(1)
                return []

            reconciler = ModerationReconciler(fetch, interval=0.01)
            reconciler.start()
            await asyncio.sleep(0.05)
            await reconciler.stop()

            count = len(calls)
            assert count >= 2
            await asyncio.sleep(0.03)
            assert len(calls) == count

        asyncio.run(_run())
