# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Commitment lifecycle — create, daily check-in, archive, reload."""

import asyncio
from datetime import datetime

import pytest

from core.app import CommitApp
from ritual.events import Events
from ritual.schemas import (
    Category,
    CommitDay,
    Commitment,
    CommitmentStats,
    CompletionType,
    ReminderTime,
)
from ritual.storage import MemoryBlobStore, StorageKeys

SEVEN = ReminderTime(hour=7, minute=30)


class ReentrantStore(MemoryBlobStore):
    """Runs `hook` once while the active commitment is being written."""

    def __init__(self):
        super().__init__()
        self.hook = None

    def set(self, key, value):
        super().set(key, value)
        if key == StorageKeys.ACTIVE_COMMITMENT and self.hook is not None:
            hook, self.hook = self.hook, None
            hook()


@pytest.fixture
def lifecycle(app):
    return app.commitments


def _create(lifecycle, title="Run 2km", category=Category.MOVEMENT, **kw):
    return lifecycle.create(title, category, SEVEN, **kw)


class TestCreate:

    def test_create_sets_active(self, lifecycle, clock, store):
        c = _create(lifecycle, identity_statement="  I am a runner  ")
        assert c is not None
        assert lifecycle.has_active
        assert c.title == "Run 2km"
        assert c.identity_statement == "I am a runner"
        assert c.start_date == clock.now
        assert c.stats == CommitmentStats()
        assert c.history == []
        assert StorageKeys.ACTIVE_COMMITMENT in store.keys()

    def test_blank_identity_stored_as_none(self, lifecycle):
        assert _create(lifecycle, identity_statement="   ").identity_statement is None

    @pytest.mark.parametrize("title", ["", "   "])
    def test_empty_title_refused(self, lifecycle, title):
        assert _create(lifecycle, title=title) is None
        assert not lifecycle.has_active

    def test_unset_category_refused(self, lifecycle):
        assert _create(lifecycle, category=Category.UNSET) is None

    def test_raw_category_value_accepted(self, app, delivery):
        c = _create(app.commitments, category="movement")
        assert c.category is Category.MOVEMENT
        assert app.bus.history(Events.COMMITMENT_CREATED)[-1].data["category"] == "movement"
        assert "dailyCommitReminder-primary" in delivery.scheduled

    @pytest.mark.parametrize("raw", ["unknown", "juggling"])
    def test_bad_raw_category_refused(self, lifecycle, store, raw):
        assert _create(lifecycle, category=raw) is None
        assert not lifecycle.has_active
        assert StorageKeys.ACTIVE_COMMITMENT not in store.keys()

    def test_identity_too_long_refused(self, lifecycle):
        assert _create(lifecycle, identity_statement="x" * 201) is None
        assert _create(lifecycle, identity_statement="x" * 200) is not None

    def test_second_create_refused(self, lifecycle):
        first = _create(lifecycle)
        assert _create(lifecycle, title="Meditate", category=Category.MIND) is None
        assert lifecycle.active.id == first.id

    def test_create_enables_and_schedules_primary(self, app, delivery):
        _create(app.commitments)
        assert app.reminders.notifications_enabled
        assert app.reminders.preferred_time == SEVEN
        assert delivery.scheduled == {
            "dailyCommitReminder-primary": (SEVEN, "Time to Commit", "Run 2km"),
        }

    def test_create_emits_event(self, app):
        _create(app.commitments)
        events = app.bus.history(Events.COMMITMENT_CREATED)
        assert len(events) == 1
        assert events[0].data["category"] == "movement"

    def test_active_is_a_copy(self, lifecycle):
        _create(lifecycle)
        snapshot = lifecycle.active
        snapshot.stats.current_streak = 99
        assert lifecycle.current_streak == 0


class TestCheckIn:

    def test_consecutive_then_skip(self, lifecycle, clock):
        _create(lifecycle)
        for _ in range(3):
            assert lifecycle.check_in_today() is not None
            clock.advance(days=1)
        stats = lifecycle.stats
        assert (stats.current_streak, stats.longest_streak, stats.total_committed_days) == (3, 3, 3)

        clock.advance(days=1)  # day 3 skipped, now day 4
        stats = lifecycle.check_in_today()
        assert stats.current_streak == 1
        assert stats.longest_streak == 3
        assert stats.total_committed_days == 4

    def test_idempotent_within_day(self, lifecycle, clock, app):
        _create(lifecycle)
        first = lifecycle.check_in_today()
        clock.advance(hours=10)
        assert lifecycle.check_in_today() is None
        assert lifecycle.stats == first
        assert len(lifecycle.active.history) == 1
        assert len(app.bus.history(Events.CHECKED_IN)) == 1

    def test_has_committed_today_rolls_over(self, lifecycle, clock):
        _create(lifecycle)
        assert not lifecycle.has_committed_today
        lifecycle.check_in_today()
        assert lifecycle.has_committed_today
        clock.set(datetime(2026, 3, 3, 0, 1))
        assert not lifecycle.has_committed_today

    def test_without_active(self, lifecycle):
        assert lifecycle.check_in_today() is None
        assert lifecycle.current_streak == 0
        assert lifecycle.stats is None

    def test_reentrant_check_in_ignored(self, delivery, clock):
        store = ReentrantStore()
        app = CommitApp(store, delivery, clock=clock)
        _create(app.commitments)

        nested = []
        store.hook = lambda: nested.append(app.commitments.check_in_today())
        stats = app.commitments.check_in_today()
        assert nested == [None]
        assert stats.total_committed_days == 1
        assert len(app.commitments.active.history) == 1


class TestArchive:

    @pytest.mark.parametrize("action,completion", [
        ("finish", CompletionType.FINISHED),
        ("reset", CompletionType.RESET),
        ("abandon", CompletionType.ABANDONED),
    ])
    def test_moves_snapshot_to_archive(self, app, clock, store, action, completion):
        created = _create(app.commitments)
        app.commitments.check_in_today()
        clock.advance(days=1)
        app.commitments.check_in_today()

        archived = getattr(app.commitments, action)()
        assert archived.completion_type == completion
        assert archived.id == created.id
        assert archived.total_committed_days == 2
        assert archived.longest_streak == 2
        assert archived.end_date == clock.now
        assert not app.commitments.has_active
        assert app.archive.all[0] == archived
        assert StorageKeys.ACTIVE_COMMITMENT not in store.keys()

    def test_archive_cancels_reminders(self, app, delivery):
        _create(app.commitments)
        assert delivery.scheduled
        app.commitments.finish()
        assert delivery.scheduled == {}
        assert len(app.bus.history(Events.REMINDERS_CANCELLED)) == 1

    def test_newest_first(self, app, clock):
        _create(app.commitments, title="First")
        app.commitments.finish()
        clock.advance(days=1)
        _create(app.commitments, title="Second")
        app.commitments.abandon()
        assert [a.title for a in app.archive.all] == ["Second", "First"]

    def test_without_active(self, lifecycle):
        assert lifecycle.finish() is None
        assert lifecycle.reset() is None
        assert lifecycle.abandon() is None

    def test_create_allowed_after_archive(self, lifecycle):
        _create(lifecycle)
        lifecycle.reset()
        assert _create(lifecycle, title="Again") is not None


class TestPersistence:

    def test_survives_restart(self, store, delivery, clock):
        app = CommitApp(store, delivery, clock=clock)
        created = _create(app.commitments)
        app.commitments.check_in_today()

        again = CommitApp(store, delivery, clock=clock)
        assert again.commitments.active.id == created.id
        assert again.commitments.current_streak == 1
        assert again.commitments.has_committed_today
        assert again.reminders.notifications_enabled

    def test_corrupt_record_loads_empty(self, store, delivery, clock):
        store.set(StorageKeys.ACTIVE_COMMITMENT, b"\x00garbage")
        app = CommitApp(store, delivery, clock=clock)
        assert not app.commitments.has_active
        assert _create(app.commitments) is not None

    def test_inconsistent_stats_rebuilt_on_load(self, store, delivery, clock):
        c = Commitment(
            title="Read",
            category=Category.MIND,
            start_date=datetime(2026, 2, 27),
            stats=CommitmentStats(current_streak=9, longest_streak=9,
                                  total_committed_days=9, last_commit_date=datetime(2026, 3, 1)),
            history=[CommitDay(date=datetime(2026, 2, 28)), CommitDay(date=datetime(2026, 3, 1))],
        )
        store.set(StorageKeys.ACTIVE_COMMITMENT, c.model_dump_json().encode())

        app = CommitApp(store, delivery, clock=clock)
        stats = app.commitments.stats
        assert stats.total_committed_days == 2
        assert stats.current_streak == 2
        assert stats.longest_streak == 2

        # Next day continues the rebuilt streak
        assert app.commitments.check_in_today().current_streak == 3


class TestResume:

    def test_resume_reschedules(self, app, delivery):
        _create(app.commitments)
        delivery.scheduled.clear()
        app.on_foreground()
        assert "dailyCommitReminder-primary" in delivery.scheduled

    def test_resume_respects_disabled(self, app, delivery):
        _create(app.commitments)
        asyncio.run(app.reminders.set_notifications_enabled(False))
        app.on_foreground()
        assert delivery.scheduled == {}

    def test_resume_without_active(self, app, delivery):
        app.on_foreground()
        assert delivery.cancel_calls == 0
