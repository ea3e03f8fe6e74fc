# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commitment lifecycle — the single active slot.

    Empty --create--> Active --finish | reset | abandon--> Empty (+1 archived)

Only this store writes a commitment's stats and history. Every successful
change is persisted before the call returns. Invalid input and calls in the
wrong state return None and change nothing; they never raise.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from core.calendar import Clock
from ritual import streaks
from ritual.archive import ArchiveStore
from ritual.events import EventBus, Events
from ritual.reminders import ReminderScheduler
from ritual.schemas import (
    IDENTITY_MAX_CHARS,
    ArchivedCommitment,
    Category,
    Commitment,
    CommitmentStats,
    CompletionType,
    ReminderTime,
)
from ritual.storage import Repository

logger = logging.getLogger("commit.lifecycle")


class CommitmentStore:

    def __init__(
        self,
        repo: Repository,
        archive: ArchiveStore,
        scheduler: ReminderScheduler,
        bus: EventBus,
        clock: Clock = datetime.now,
    ):
        self._repo = repo
        self._archive = archive
        self._scheduler = scheduler
        self._bus = bus
        self._clock = clock
        self._committing = False
        self._active: Optional[Commitment] = self._load()
        scheduler.bind_title_provider(lambda: self._active.title if self._active else None)

    def _load(self) -> Optional[Commitment]:
        commitment = self._repo.load()
        if commitment is None:
            return None
        if not streaks.stats_consistent(commitment.stats, commitment.history):
            stats, history = streaks.rebuild(commitment.history)
            logger.warning(
                "Stats for %s out of sync with history (%d days recorded, %d counted); rebuilt",
                commitment.id, len(commitment.history), commitment.stats.total_committed_days,
            )
            commitment = commitment.model_copy(update={"stats": stats, "history": history})
            self._repo.save(commitment)
        return commitment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def active(self) -> Optional[Commitment]:
        return self._active.model_copy(deep=True) if self._active else None

    @property
    def has_active(self) -> bool:
        return self._active is not None

    @property
    def has_committed_today(self) -> bool:
        if self._active is None:
            return False
        return self._active.stats.has_committed_today(self._clock())

    @property
    def current_streak(self) -> int:
        return self._active.stats.current_streak if self._active else 0

    @property
    def stats(self) -> Optional[CommitmentStats]:
        return self._active.stats.model_copy() if self._active else None

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        category: Category,
        reminder_time: ReminderTime,
        identity_statement: Optional[str] = None,
    ) -> Optional[Commitment]:
        """Start a new commitment. None if input is invalid or one is already active."""
        title = (title or "").strip()
        if not title:
            logger.debug("Create refused: empty title")
            return None
        if category == Category.UNSET:
            logger.debug("Create refused: category unset")
            return None
        if self._active is not None:
            logger.debug("Create refused: %s is still active", self._active.id)
            return None

        identity = (identity_statement or "").strip() or None
        if identity is not None and len(identity) > IDENTITY_MAX_CHARS:
            logger.debug("Create refused: identity statement over %d chars", IDENTITY_MAX_CHARS)
            return None

        try:
            commitment = Commitment(
                title=title,
                identity_statement=identity,
                category=category,
                start_date=self._clock(),
                reminder_time=reminder_time,
            )
        except ValidationError as e:
            logger.debug("Create refused: %s", e)
            return None

        self._active = commitment
        self._repo.save(commitment)
        logger.info("Created commitment %s: %s (%s)", commitment.id, title, commitment.category.value)
        self._bus.emit(Events.COMMITMENT_CREATED, {
            "id": str(commitment.id),
            "title": title,
            "category": commitment.category.value,
        }, source="lifecycle")

        self._scheduler.set_preferred_time(reminder_time, resync=False)
        self._scheduler.request_enable(title)
        return self.active

    # ------------------------------------------------------------------
    # Daily check-in
    # ------------------------------------------------------------------

    def check_in_today(self) -> Optional[CommitmentStats]:
        """Record today. No-op (None) if already done, no active commitment, or re-entered."""
        if self._committing:
            logger.debug("Check-in already in flight, ignored")
            return None
        if self._active is None:
            return None

        self._committing = True
        try:
            now = self._clock()
            result = streaks.check_in(self._active.stats, self._active.history, now)
            if result is None:
                logger.debug("Already checked in today")
                return None

            self._active = self._active.model_copy(update={
                "stats": result.stats,
                "history": result.history,
            })
            self._repo.save(self._active)
        finally:
            self._committing = False

        logger.info("Checked in %s: streak=%d total=%d",
                    self._active.id, result.stats.current_streak,
                    result.stats.total_committed_days)
        self._bus.emit(Events.CHECKED_IN, {
            "id": str(self._active.id),
            "streak": result.stats.current_streak,
            "longest": result.stats.longest_streak,
            "total": result.stats.total_committed_days,
        }, source="lifecycle")
        return result.stats.model_copy()

    # ------------------------------------------------------------------
    # Leaving the active slot
    # ------------------------------------------------------------------

    def finish(self) -> Optional[ArchivedCommitment]:
        return self._archive_active(CompletionType.FINISHED)

    def reset(self) -> Optional[ArchivedCommitment]:
        return self._archive_active(CompletionType.RESET)

    def abandon(self) -> Optional[ArchivedCommitment]:
        return self._archive_active(CompletionType.ABANDONED)

    def _archive_active(self, completion: CompletionType) -> Optional[ArchivedCommitment]:
        if self._active is None:
            logger.debug("%s ignored: no active commitment", completion.value)
            return None

        archived = ArchivedCommitment.from_commitment(self._active, completion, self._clock())
        self._archive.insert_front(archived)
        self._active = None
        self._repo.clear()
        self._scheduler.request_cancel()

        logger.info("Archived %s as %s (%d days, longest %d)",
                    archived.id, completion.value,
                    archived.total_committed_days, archived.longest_streak)
        self._bus.emit(Events.COMMITMENT_ARCHIVED, {
            "id": str(archived.id),
            "completion_type": completion.value,
        }, source="lifecycle")
        return archived

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def resume(self) -> None:
        """Foreground/resume hook: the OS may have dropped our schedule."""
        if self._active is None:
            return
        if not self._scheduler.notifications_enabled:
            return
        self._scheduler.request_resync(self._active.title)

    def delete_archived(self, archived_id: UUID) -> bool:
        return self._archive.delete(archived_id)
