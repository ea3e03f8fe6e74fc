# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Entitlements — feature gating for the free vs. unlocked tier.

One place answers "may the user have this?":

  MULTI_SLOT_REMINDERS   morning/midday/evening slots on top of the primary
  UNLIMITED_HISTORY      archive and journal beyond the last 30 days
  UNLIMITED_JOURNAL      more than 10 journal entries per commitment
  MULTIPLE_COMMITMENTS   declared, never exercised (one active slot)

The gate caches one boolean per feature and drops the cache whenever the
provider signals ENTITLEMENT_CHANGED on the bus. It never touches domain
state.

Usage:
    gate = EntitlementGate(provider, bus)
    gate.has_access(Feature.UNLIMITED_HISTORY)   # False on free tier

COMMIT_UNLOCK_ALL=1 forces every feature on (development bypass).
"""

import logging
import os
from enum import Enum
from typing import Dict, Optional, Protocol

from ritual.events import EventBus, Events
from ritual.storage import Repository

logger = logging.getLogger("commit.entitlements")


class Feature(str, Enum):
    MULTI_SLOT_REMINDERS = "multi_slot_reminders"
    UNLIMITED_HISTORY = "unlimited_history"
    UNLIMITED_JOURNAL = "unlimited_journal"
    MULTIPLE_COMMITMENTS = "multiple_commitments"

    @property
    def description(self) -> str:
        return FEATURE_DESCRIPTIONS[self]


FEATURE_DESCRIPTIONS = {
    Feature.MULTI_SLOT_REMINDERS: "Set reminders for challenging moments",
    Feature.UNLIMITED_HISTORY: "Access your complete commitment history",
    Feature.UNLIMITED_JOURNAL: "Capture your thoughts after each daily ritual",
    Feature.MULTIPLE_COMMITMENTS: "Work on multiple identity goals",
}


class EntitlementProvider(Protocol):
    def is_entitled(self, feature: Feature) -> bool: ...


def _resolve_unlock_all() -> bool:
    """Read COMMIT_UNLOCK_ALL env var."""
    return os.environ.get("COMMIT_UNLOCK_ALL", "").strip().lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Local provider: persisted premium flag
# ---------------------------------------------------------------------------

class LocalEntitlementProvider:
    """
    Provider backed by the isPremiumUser record.

    Purchase verification lives outside the engine; whatever completes a
    purchase calls complete_purchase() and every feature unlocks.
    """

    def __init__(self, repo: Repository, bus: EventBus):
        self._repo = repo
        self._bus = bus
        self._premium = bool(repo.load())

    @property
    def is_premium(self) -> bool:
        return self._premium

    def is_entitled(self, feature: Feature) -> bool:
        return self._premium

    def set_premium(self, value: bool) -> None:
        old = self._premium
        self._premium = bool(value)
        self._repo.save(self._premium)
        if old != self._premium:
            logger.info("Premium changed: %s -> %s", old, self._premium)
            self._bus.emit(Events.ENTITLEMENT_CHANGED, {
                "old": old,
                "new": self._premium,
            }, source="entitlements.local")

    def complete_purchase(self) -> None:
        self.set_premium(True)


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

class EntitlementGate:
    """Cached per-feature lookup over an EntitlementProvider."""

    def __init__(self, provider: EntitlementProvider, bus: EventBus,
                 unlock_all: Optional[bool] = None):
        self._provider = provider
        self._cache: Dict[Feature, bool] = {}
        self._unlock_all = _resolve_unlock_all() if unlock_all is None else unlock_all
        # High priority: cache must be cold before anyone else reacts
        bus.on(Events.ENTITLEMENT_CHANGED, self._on_changed, priority=100,
               source="entitlements.gate")

    def _on_changed(self, event) -> None:
        self.invalidate()

    def invalidate(self) -> None:
        if self._cache:
            logger.debug("Entitlement cache cleared (%d features)", len(self._cache))
        self._cache.clear()

    def has_access(self, feature: Feature) -> bool:
        if self._unlock_all:
            return True
        if feature not in self._cache:
            try:
                self._cache[feature] = bool(self._provider.is_entitled(feature))
            except Exception as e:
                # Provider outage reads as free tier; not cached so it retries
                logger.error("Entitlement lookup failed for %s: %s", feature.value, e)
                return False
        return self._cache[feature]

    def request_access(self, feature: Feature) -> bool:
        """has_access(), logging the refusal so the caller can upsell."""
        granted = self.has_access(feature)
        if not granted:
            logger.info("Access to %s requires unlock", feature.value)
        return granted

    def tier_info(self) -> dict:
        """Full entitlement status for diagnostics."""
        return {
            "unlock_all": self._unlock_all,
            "features": {f.value: self.has_access(f) for f in Feature},
        }
