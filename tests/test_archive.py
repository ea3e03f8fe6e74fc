# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Archive — 30-day free window, cascade delete into the journal."""

from uuid import uuid4

from core.app import CommitApp
from ritual.events import Events
from ritual.schemas import Category, PersistenceError, ReminderTime
from ritual.storage import MemoryBlobStore, StorageKeys


def _archive_one(app, title="Run", note=None):
    app.commitments.create(title, Category.MOVEMENT, ReminderTime(hour=8))
    active = app.commitments.active
    if note:
        app.journal.set_todays_entry(active.id, note)
    return app.commitments.finish()


class ArchiveWriteFails(MemoryBlobStore):
    def __init__(self):
        super().__init__()
        self.broken = False

    def set(self, key, value):
        if self.broken and key == StorageKeys.ARCHIVED_COMMITMENTS:
            raise PersistenceError("disk full")
        super().set(key, value)


class TestWindow:

    def test_free_tier_hides_older_than_thirty_days(self, app, clock):
        _archive_one(app, "Old")
        clock.advance(days=31)
        _archive_one(app, "Recent")
        assert [a.title for a in app.archive.visible()] == ["Recent"]
        assert app.archive.hidden_count() == 1
        assert len(app.archive) == 2

    def test_boundary_is_an_instant(self, app, clock):
        _archive_one(app)
        clock.advance(days=30)
        assert app.archive.hidden_count() == 0
        clock.advance(minutes=1)
        assert app.archive.hidden_count() == 1

    def test_unlocked_sees_all(self, premium_app, clock):
        _archive_one(premium_app)
        clock.advance(days=400)
        assert len(premium_app.archive.visible()) == 1
        assert premium_app.archive.hidden_count() == 0

    def test_purchase_reveals_hidden(self, app, clock):
        _archive_one(app)
        clock.advance(days=60)
        assert app.archive.visible() == []
        app.provider.complete_purchase()
        assert len(app.archive.visible()) == 1


class TestInsertFront:

    def test_newest_first_in_memory_and_on_disk(self, app, store, delivery, clock):
        first = _archive_one(app, "First")
        clock.advance(days=1)
        second = _archive_one(app, "Second")
        assert [a.id for a in app.archive.all] == [second.id, first.id]

        again = CommitApp(store, delivery, clock=clock)
        assert [a.id for a in again.archive.all] == [second.id, first.id]

    def test_all_is_a_snapshot(self, app):
        _archive_one(app)
        snapshot = app.archive.all
        snapshot.clear()
        assert len(app.archive) == 1


class TestDelete:

    def test_cascades_to_journal(self, app):
        archived = _archive_one(app, note="tough day")
        keep = uuid4()
        app.journal.set_todays_entry(keep, "unrelated")

        assert app.commitments.delete_archived(archived.id) is True
        assert app.archive.get(archived.id) is None
        assert not app.journal.has_entries(archived.id)
        assert app.journal.has_entries(keep)

        event = app.bus.history(Events.ARCHIVE_DELETED)[-1]
        assert event.data["journal_entries_removed"] == 1

    def test_unknown_id(self, app):
        _archive_one(app)
        assert app.archive.delete(uuid4()) is False
        assert len(app.archive) == 1

    def test_persisted(self, app, store, delivery, clock):
        first = _archive_one(app, "First")
        _archive_one(app, "Second")
        app.archive.delete(first.id)

        again = CommitApp(store, delivery, clock=clock)
        assert [a.title for a in again.archive.all] == ["Second"]

    def test_failed_save_keeps_memory_state(self, delivery, clock):
        store = ArchiveWriteFails()
        app = CommitApp(store, delivery, clock=clock)
        archived = _archive_one(app, note="note")

        store.broken = True
        assert app.archive.delete(archived.id) is True
        assert len(app.archive) == 0
        assert not app.journal.has_entries(archived.id)

        # Journal purge reached disk; the archive record did not
        again = CommitApp(store, delivery, clock=clock)
        assert len(again.archive) == 1
        assert not again.journal.has_entries(archived.id)
