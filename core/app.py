# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit App
Builds every component once and wires them together. No module-level
instances: whoever embeds the engine calls build_app() and keeps the result.

    app = build_app()
    app.commitments.create("Run 2km", Category.MOVEMENT, ReminderTime(hour=7))
    app.commitments.check_in_today()
    app.journal.prompt_after_check_in(app.commitments.active.id, app.commitments.current_streak)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.calendar import Clock
from core.entitlements import EntitlementGate, EntitlementProvider, LocalEntitlementProvider
from core.paths import CommitPaths, get_paths
from interface.notify import LocalNotificationCenter
from ritual.archive import ArchiveStore
from ritual.commitments import CommitmentStore
from ritual.events import EventBus, Events
from ritual.journal import JournalStore
from ritual.reminders import NotificationDelivery, ReminderScheduler
from ritual.schemas import (
    ArchivedCommitment,
    Commitment,
    MicroJournalEntry,
    ReminderSlot,
    ReminderTime,
)
from ritual.storage import BlobStore, FileBlobStore, Repository, StorageKeys

logger = logging.getLogger("commit.app")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_file: Optional[Path] = None, level: int = logging.INFO,
                  stderr: bool = False) -> logging.Logger:
    """Route every commit.* logger to a file (and optionally stderr). Idempotent."""
    root = logging.getLogger("commit")
    root.setLevel(level)
    if getattr(root, "_commit_configured", False):
        return root

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), mode="a")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(fh)

    if stderr:
        sh = logging.StreamHandler()
        sh.setLevel(level)
        sh.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        root.addHandler(sh)

    root._commit_configured = True
    return root


class CommitApp:
    """The wired engine: one bus, one gate, four stores."""

    def __init__(
        self,
        store: BlobStore,
        delivery: NotificationDelivery,
        provider: Optional[EntitlementProvider] = None,
        clock: Clock = datetime.now,
    ):
        self.bus = EventBus()
        self.clock = clock

        self.premium_repo = Repository(store, StorageKeys.IS_PREMIUM_USER, bool, False)
        if provider is None:
            provider = LocalEntitlementProvider(self.premium_repo, self.bus)
        self.provider = provider
        self.gate = EntitlementGate(provider, self.bus)

        self.journal = JournalStore(
            Repository(store, StorageKeys.MICRO_JOURNAL, List[MicroJournalEntry], list),
            self.gate, self.bus, clock,
        )
        self.archive = ArchiveStore(
            Repository(store, StorageKeys.ARCHIVED_COMMITMENTS, List[ArchivedCommitment], list),
            self.journal, self.gate, self.bus, clock,
        )
        self.reminders = ReminderScheduler(
            delivery, self.gate, self.bus,
            slots_repo=Repository(store, StorageKeys.REMINDER_SLOTS, List[ReminderSlot],
                                  ReminderSlot.default_slots),
            enabled_repo=Repository(store, StorageKeys.NOTIFICATIONS_ENABLED, bool, False),
            time_repo=Repository(store, StorageKeys.PREFERRED_NOTIFICATION_TIME, ReminderTime,
                                 ReminderTime),
        )
        self.commitments = CommitmentStore(
            Repository(store, StorageKeys.ACTIVE_COMMITMENT, Optional[Commitment], None),
            self.archive, self.reminders, self.bus, clock,
        )

    def entitlements_changed(self) -> None:
        """Feed for an external provider's change stream."""
        self.bus.emit(Events.ENTITLEMENT_CHANGED, {}, source="provider")

    def on_foreground(self) -> None:
        """App came to the foreground: defend against the OS dropping our schedule."""
        self.commitments.resume()

    def status(self) -> Dict[str, Any]:
        active = self.commitments.active
        return {
            "active": None if active is None else {
                "id": str(active.id),
                "title": active.title,
                "category": active.category.value,
                "current_streak": active.stats.current_streak,
                "longest_streak": active.stats.longest_streak,
                "total_committed_days": active.stats.total_committed_days,
                "committed_today": self.commitments.has_committed_today,
            },
            "archived": len(self.archive),
            "archived_hidden": self.archive.hidden_count(),
            "journal_entries": len(self.journal.entries),
            "notifications_enabled": self.reminders.notifications_enabled,
            "entitlements": self.gate.tier_info()["features"],
        }


def build_app(
    data_dir: Optional[Path] = None,
    delivery: Optional[NotificationDelivery] = None,
    provider: Optional[EntitlementProvider] = None,
    clock: Clock = datetime.now,
    log: bool = True,
) -> CommitApp:
    """File-backed engine rooted at data_dir (or COMMIT_DATA_DIR / ~/.commit)."""
    paths = CommitPaths(data_dir) if data_dir is not None else get_paths()
    paths.ensure_dirs()
    if log:
        setup_logging(paths.log_file)
    if delivery is None:
        delivery = LocalNotificationCenter(paths.data_dir)
    app = CommitApp(FileBlobStore(paths.store_dir), delivery, provider, clock)
    logger.info("Engine ready at %s", paths.data_dir)
    return app
