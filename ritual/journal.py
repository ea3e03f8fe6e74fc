# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Micro-journal — one short reflection per commitment per calendar day.

Storage: microJournal record, newest first.

Tier rules
----------
  Free      : entries older than 30 days hidden; 10 entries per commitment,
              after which a teaser is offered on milestone streaks instead
              of the journal prompt.
  Unlocked  : full history, unlimited entries.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from core.calendar import Clock, history_cutoff, same_day
from core.entitlements import EntitlementGate, Feature
from ritual.events import EventBus, Events
from ritual.schemas import MicroJournal, MicroJournalEntry
from ritual.storage import Repository

logger = logging.getLogger("commit.journal")

FREE_ENTRY_LIMIT = 10
_INTRODUCTION_DAYS = (1, 3, 5)
_MILESTONE_DAYS = (7, 14, 21, 30)
_MILESTONE_PERIOD = 30


class JournalPrompt(str, Enum):
    """What to offer after a successful check-in."""
    PROMPT = "prompt"    # open the journal editor
    TEASER = "teaser"    # soft upsell, nothing is written
    NONE = "none"


def teaser_milestone(streak: int) -> bool:
    """Days 1, 3, 5, 7, 14, 21, 30, then every 30 days."""
    if streak in _INTRODUCTION_DAYS or streak in _MILESTONE_DAYS:
        return True
    return streak > _MILESTONE_PERIOD and streak % _MILESTONE_PERIOD == 0


def teaser_subtitle(remaining: Optional[int]) -> str:
    if remaining is not None:
        if remaining == 0:
            return "Unlock unlimited journaling"
        if remaining <= 3:
            return f"{remaining} free entries remaining"
    return "Reflect deeper with journaling"


class JournalStore:
    """Owns every MicroJournalEntry. Write-through to the microJournal record."""

    def __init__(self, repo: Repository, gate: EntitlementGate, bus: EventBus,
                 clock: Clock = datetime.now):
        self._repo = repo
        self._gate = gate
        self._bus = bus
        self._clock = clock
        self.journal = MicroJournal(entries=repo.load())
        self.journal.sort()

    @property
    def entries(self) -> List[MicroJournalEntry]:
        return list(self.journal.entries)

    def _persist(self) -> bool:
        return self._repo.save(self.journal.entries)

    # --- Writes ---

    def set_todays_entry(self, commitment_id: UUID, text: str) -> Optional[MicroJournalEntry]:
        """
        Write (or replace) today's entry for a commitment.

        Returns None without touching anything when text is blank, or when a
        free-tier commitment already has FREE_ENTRY_LIMIT entries and today
        has none to replace.
        """
        if not text or not text.strip():
            logger.debug("Blank journal text ignored for %s", commitment_id)
            return None

        now = self._clock()
        existing = self.journal.entry_for(now, commitment_id)
        if existing is None and self.entries_remaining(commitment_id) == 0:
            logger.info("Free journal limit reached for %s", commitment_id)
            return None

        self.journal.entries = [
            e for e in self.journal.entries
            if not (e.commitment_id == commitment_id and same_day(e.date, now))
        ]
        entry = MicroJournalEntry(date=now, text=text, commitment_id=commitment_id)
        self.journal.entries.append(entry)
        self.journal.sort()
        self._persist()

        self._bus.emit(Events.JOURNAL_SAVED, {
            "commitment_id": str(commitment_id),
            "entry_id": str(entry.id),
            "replaced": existing is not None,
        }, source="journal")
        return entry

    def delete_entries_for(self, commitment_id: UUID) -> int:
        before = len(self.journal.entries)
        self.journal.entries = [e for e in self.journal.entries if e.commitment_id != commitment_id]
        removed = before - len(self.journal.entries)
        if removed:
            self._persist()
            logger.info("Deleted %d journal entries for %s", removed, commitment_id)
            self._bus.emit(Events.JOURNAL_DELETED, {
                "commitment_id": str(commitment_id),
                "count": removed,
            }, source="journal")
        return removed

    def delete_entry(self, entry_id: UUID) -> bool:
        before = len(self.journal.entries)
        self.journal.entries = [e for e in self.journal.entries if e.id != entry_id]
        if len(self.journal.entries) == before:
            logger.debug("Journal entry %s not found", entry_id)
            return False
        self._persist()
        self._bus.emit(Events.JOURNAL_DELETED, {"entry_id": str(entry_id), "count": 1},
                       source="journal")
        return True

    # --- Reads ---

    def todays_entry(self, commitment_id: UUID) -> Optional[MicroJournalEntry]:
        return self.journal.entry_for(self._clock(), commitment_id)

    def entries_for(self, commitment_id: UUID) -> List[MicroJournalEntry]:
        return self.journal.entries_for(commitment_id)

    def has_entries(self, commitment_id: UUID) -> bool:
        return any(e.commitment_id == commitment_id for e in self.journal.entries)

    def visible_entries_for(self, commitment_id: UUID) -> List[MicroJournalEntry]:
        entries = self.entries_for(commitment_id)
        if self._gate.has_access(Feature.UNLIMITED_HISTORY):
            return entries
        cutoff = history_cutoff(self._clock())
        return [e for e in entries if e.date >= cutoff]

    def hidden_count_for(self, commitment_id: UUID) -> int:
        return len(self.entries_for(commitment_id)) - len(self.visible_entries_for(commitment_id))

    # --- Prompting policy ---

    def entries_remaining(self, commitment_id: UUID) -> Optional[int]:
        """Free entries left, or None when journaling is unlimited."""
        if self._gate.has_access(Feature.UNLIMITED_JOURNAL):
            return None
        return max(0, FREE_ENTRY_LIMIT - len(self.entries_for(commitment_id)))

    def prompt_after_check_in(self, commitment_id: UUID, streak: int) -> JournalPrompt:
        remaining = self.entries_remaining(commitment_id)
        if remaining is None or remaining > 0:
            return JournalPrompt.PROMPT
        if teaser_milestone(streak):
            return JournalPrompt.TEASER
        return JournalPrompt.NONE
