# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Schema Registry — Pydantic models for every persisted record.

Single source of truth for the blobs the engine reads/writes:
    activeCommitment      -> Commitment | absent
    archivedCommitments   -> List[ArchivedCommitment]   (newest first)
    microJournal          -> List[MicroJournalEntry]    (newest first)
    reminderSlots         -> List[ReminderSlot]
    notificationsEnabled  -> bool
    preferredNotificationTime -> ReminderTime
    isPremiumUser         -> bool

All models use extra="allow" so existing data with unknown fields
won't break — we just won't validate those extra fields.
"""

from datetime import datetime, time
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from core.calendar import same_day

IDENTITY_MAX_CHARS = 200
JOURNAL_MAX_CHARS = 140
JOURNAL_MIN_CHARS = 1


# ============================================================================
# Base model
# ============================================================================

class CommitModel(BaseModel):
    """Base for all commit schemas. Allows extra fields for forward compat."""
    model_config = {"extra": "allow"}


# ============================================================================
# Engine errors
# ============================================================================

class CommitError(Exception):
    """Base class for engine errors."""


class PersistenceError(CommitError):
    """Raised by a blob store when a record can't be written or removed."""


# ============================================================================
# ENUMS
# ============================================================================

class Category(str, Enum):
    """Fixed set of commitment categories. UNSET is never valid for creation."""
    MOVEMENT = "movement"
    MIND = "mind"
    SOBRIETY = "sobriety"
    HEALTH = "health"
    DISCIPLINE = "discipline"
    SKILL = "skill"
    PURPOSE = "purpose"
    UNSET = "unknown"

    @property
    def display_name(self) -> str:
        if self is Category.UNSET:
            return "Choose Category"
        return self.value.capitalize()

    @property
    def emoji(self) -> str:
        return _CATEGORY_EMOJI[self]


_CATEGORY_EMOJI = {
    Category.MOVEMENT: "🏃",
    Category.MIND: "🧠",
    Category.SOBRIETY: "🌿",
    Category.HEALTH: "💚",
    Category.DISCIPLINE: "⚡️",
    Category.SKILL: "🎯",
    Category.PURPOSE: "✨",
    Category.UNSET: "❓",
}


class CompletionType(str, Enum):
    """How a commitment left the active slot."""
    FINISHED = "finished"
    RESET = "reset"
    ABANDONED = "abandoned"

    @property
    def display_name(self) -> str:
        return {
            CompletionType.FINISHED: "Completed",
            CompletionType.RESET: "Reset",
            CompletionType.ABANDONED: "Abandoned",
        }[self]


# ============================================================================
# TIME OF DAY
# ============================================================================

class ReminderTime(CommitModel):
    """Hour/minute pair, local time."""
    hour: int = Field(9, ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)

    @classmethod
    def from_time(cls, t: time) -> "ReminderTime":
        return cls(hour=t.hour, minute=t.minute)

    def as_time(self) -> time:
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


# ============================================================================
# COMMITMENT
# ============================================================================

class CommitDay(CommitModel):
    """A successful check-in. Only positive days are ever recorded."""
    id: UUID = Field(default_factory=uuid4)
    date: datetime  # start of the local day
    did_commit: bool = True


class CommitmentStats(CommitModel):
    """Derived from history — only the streak engine writes these."""
    current_streak: int = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    total_committed_days: int = Field(0, ge=0)
    last_commit_date: Optional[datetime] = None

    def has_committed_today(self, now: datetime) -> bool:
        if self.last_commit_date is None:
            return False
        return same_day(self.last_commit_date, now)


class Commitment(CommitModel):
    """The single active commitment."""
    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1)
    identity_statement: Optional[str] = Field(None, max_length=IDENTITY_MAX_CHARS)
    category: Category
    start_date: datetime
    reminder_time: ReminderTime = Field(default_factory=ReminderTime)
    stats: CommitmentStats = Field(default_factory=CommitmentStats)
    history: List[CommitDay] = Field(default_factory=list)


class ArchivedCommitment(CommitModel):
    """Immutable snapshot taken when a commitment leaves the active slot."""
    model_config = {"extra": "allow", "frozen": True}

    id: UUID
    title: str
    identity_statement: Optional[str] = None
    category: Category
    start_date: datetime
    end_date: datetime
    total_committed_days: int = 0
    longest_streak: int = 0
    completion_type: CompletionType

    @classmethod
    def from_commitment(
        cls,
        commitment: Commitment,
        completion_type: CompletionType,
        end_date: datetime,
    ) -> "ArchivedCommitment":
        return cls(
            id=commitment.id,
            title=commitment.title,
            identity_statement=commitment.identity_statement,
            category=commitment.category,
            start_date=commitment.start_date,
            end_date=end_date,
            total_committed_days=commitment.stats.total_committed_days,
            longest_streak=commitment.stats.longest_streak,
            completion_type=completion_type,
        )


# ============================================================================
# MICRO-JOURNAL
# ============================================================================

class MicroJournalEntry(CommitModel):
    """Short reflection for one commitment on one calendar day."""
    id: UUID = Field(default_factory=uuid4)
    date: datetime
    text: str = Field(..., min_length=JOURNAL_MIN_CHARS)
    commitment_id: UUID

    @field_validator("text", mode="before")
    @classmethod
    def _clip_text(cls, v):
        if isinstance(v, str):
            return v.strip()[:JOURNAL_MAX_CHARS]
        return v


class MicroJournal(CommitModel):
    """Every journal entry across active and archived commitments."""
    entries: List[MicroJournalEntry] = Field(default_factory=list)

    def entry_for(self, day: datetime, commitment_id: Optional[UUID] = None) -> Optional[MicroJournalEntry]:
        for e in self.entries:
            if not same_day(e.date, day):
                continue
            if commitment_id is None or e.commitment_id == commitment_id:
                return e
        return None

    def entries_for(self, commitment_id: UUID) -> List[MicroJournalEntry]:
        return [e for e in self.entries if e.commitment_id == commitment_id]

    def sort(self) -> None:
        self.entries.sort(key=lambda e: e.date, reverse=True)


# ============================================================================
# REMINDERS
# ============================================================================

PRIMARY_SLOT_ID = "primary"


class ReminderSlot(CommitModel):
    """A named, independently configurable reminder time."""
    id: str  # "morning", "midday", "evening"
    time: ReminderTime
    is_enabled: bool = False
    label: str

    @classmethod
    def default_slots(cls) -> List["ReminderSlot"]:
        return [
            cls(id="morning", time=ReminderTime(hour=7, minute=0), is_enabled=True, label="Morning"),
            cls(id="midday", time=ReminderTime(hour=12, minute=0), is_enabled=False, label="Midday"),
            cls(id="evening", time=ReminderTime(hour=19, minute=0), is_enabled=False, label="Evening"),
        ]


class ScheduledReminder(CommitModel):
    """One repeating daily notification request handed to delivery."""
    id: str
    time: ReminderTime
    title: str
    body: str
