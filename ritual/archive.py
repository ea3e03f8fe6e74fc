# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Archive of ended commitments, newest first.

Entries arrive only through the lifecycle store's finish/reset/abandon and
are never edited afterwards. Deletion cascades into the journal: entries
whose commitment_id matches go first, then the archived snapshot, so a
crash between the two can leave an archived commitment without notes but
never notes without a commitment.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional
from uuid import UUID

from core.calendar import Clock, history_cutoff
from core.entitlements import EntitlementGate, Feature
from ritual.events import EventBus, Events
from ritual.journal import JournalStore
from ritual.schemas import ArchivedCommitment
from ritual.storage import Repository

logger = logging.getLogger("commit.archive")


class ArchiveStore:

    def __init__(self, repo: Repository, journal: JournalStore, gate: EntitlementGate,
                 bus: EventBus, clock: Clock = datetime.now):
        self._repo = repo
        self._journal = journal
        self._gate = gate
        self._bus = bus
        self._clock = clock
        # Newest first; appendleft keeps insert_front O(1)
        self._items: Deque[ArchivedCommitment] = deque(repo.load())

    @property
    def all(self) -> List[ArchivedCommitment]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, archived_id: UUID) -> Optional[ArchivedCommitment]:
        for a in self._items:
            if a.id == archived_id:
                return a
        return None

    def insert_front(self, archived: ArchivedCommitment) -> bool:
        self._items.appendleft(archived)
        return self._repo.save(list(self._items))

    def visible(self) -> List[ArchivedCommitment]:
        """Full archive when unlocked, otherwise entries ended in the last 30 days."""
        if self._gate.has_access(Feature.UNLIMITED_HISTORY):
            return self.all
        cutoff = history_cutoff(self._clock())
        return [a for a in self._items if a.end_date >= cutoff]

    def hidden_count(self) -> int:
        return len(self._items) - len(self.visible())

    def delete(self, archived_id: UUID) -> bool:
        """Remove an archived commitment and every journal entry that points at it."""
        archived = self.get(archived_id)
        if archived is None:
            logger.debug("Archived commitment %s not found", archived_id)
            return False

        removed_notes = self._journal.delete_entries_for(archived_id)
        self._items = deque(a for a in self._items if a.id != archived_id)
        if not self._repo.save(list(self._items)):
            logger.warning("Archive delete of %s not persisted; journal already purged", archived_id)

        logger.info("Deleted archived commitment %s (%s, %d notes)",
                    archived_id, archived.title, removed_notes)
        self._bus.emit(Events.ARCHIVE_DELETED, {
            "id": str(archived_id),
            "title": archived.title,
            "journal_entries_removed": removed_notes,
        }, source="archive")
        return True
