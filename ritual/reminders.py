# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Reminder scheduling policy.

Slots
-----
  primary   always scheduled, time = preferred time (the commitment's reminder time)
  morning   07:00, enabled by default   \
  midday    12:00, disabled by default   >  only with MULTI_SLOT_REMINDERS
  evening   19:00, disabled by default  /

Resync is full-replace: cancel everything, then (if notifications are on
and authorized) schedule the primary slot plus every enabled extra slot
the tier allows. Call it after creation, on foreground/resume, after any
time or slot change, and when multi-slot access flips.

Authorization is requested lazily, the first time something needs it. A
refusal turns notifications off and installs nothing.

Delivery is an awaitable round trip. Stores never wait on it:
request_resync()/request_cancel() schedule the work on the running loop,
or run it to completion when there is no loop. Failures are logged and
dropped. A cancel always wins: a resync still in flight when the
commitment is archived (or reminders are cancelled) installs nothing.
"""

import asyncio
import logging
from typing import Callable, Coroutine, List, Optional, Protocol, Set

from core.entitlements import EntitlementGate, Feature
from ritual.events import EventBus, Events
from ritual.schemas import (
    PRIMARY_SLOT_ID,
    ReminderSlot,
    ReminderTime,
    ScheduledReminder,
)
from ritual.storage import Repository

logger = logging.getLogger("commit.reminders")

NOTIFICATION_ID = "dailyCommitReminder"
REMINDER_TITLE = "Time to Commit"


class NotificationDelivery(Protocol):
    """What the engine needs from the platform's notification service."""

    async def is_authorized(self) -> bool: ...
    async def request_authorization(self) -> bool: ...
    async def schedule(self, id: str, time: ReminderTime, title: str, body: str) -> None: ...
    async def cancel_all(self) -> None: ...


def request_id(slot_id: str) -> str:
    return f"{NOTIFICATION_ID}-{slot_id}"


class ReminderScheduler:

    def __init__(
        self,
        delivery: NotificationDelivery,
        gate: EntitlementGate,
        bus: EventBus,
        slots_repo: Repository,
        enabled_repo: Repository,
        time_repo: Repository,
    ):
        self._delivery = delivery
        self._gate = gate
        self._bus = bus
        self._slots_repo = slots_repo
        self._enabled_repo = enabled_repo
        self._time_repo = time_repo

        self._slots: List[ReminderSlot] = slots_repo.load()
        self._enabled: bool = bool(enabled_repo.load())
        self._preferred: ReminderTime = time_repo.load()
        self.is_authorized = False

        self._title_provider: Optional[Callable[[], Optional[str]]] = None
        self._multi_slot = gate.has_access(Feature.MULTI_SLOT_REMINDERS)
        self._tasks: Set[asyncio.Task] = set()
        # Bumped by every cancel; a resync started under an older value must not install
        self._generation = 0

        bus.on(Events.ENTITLEMENT_CHANGED, self._on_entitlement_changed, source="reminders")

    def bind_title_provider(self, provider: Callable[[], Optional[str]]) -> None:
        """Source of the active commitment's title, for self-triggered resyncs."""
        self._title_provider = provider

    def _active_title(self) -> Optional[str]:
        return self._title_provider() if self._title_provider else None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def notifications_enabled(self) -> bool:
        return self._enabled

    @property
    def preferred_time(self) -> ReminderTime:
        return self._preferred

    @property
    def slots(self) -> List[ReminderSlot]:
        return [s.model_copy() for s in self._slots]

    def slot(self, slot_id: str) -> Optional[ReminderSlot]:
        for s in self._slots:
            if s.id == slot_id:
                return s.model_copy()
        return None

    def _set_enabled(self, value: bool) -> None:
        self._enabled = value
        self._enabled_repo.save(value)

    def set_preferred_time(self, t: ReminderTime, resync: bool = True) -> None:
        self._preferred = t
        self._time_repo.save(t)
        logger.info("Primary reminder time set to %s", t)
        if resync:
            self._resync_active()

    def update_slot(self, slot_id: str, time: Optional[ReminderTime] = None,
                    enabled: Optional[bool] = None) -> Optional[ReminderSlot]:
        """Change a slot's time and/or enablement. None for an unknown slot id."""
        for s in self._slots:
            if s.id == slot_id:
                break
        else:
            logger.debug("Unknown reminder slot %r", slot_id)
            return None

        if time is not None:
            s.time = time
        if enabled is not None:
            s.is_enabled = enabled
        self._slots_repo.save(self._slots)
        self._resync_active()
        return s.model_copy()

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def desired_schedule(self, title: str) -> List[ScheduledReminder]:
        """Requests a resync would install, ignoring enablement and authorization."""
        wanted = [ScheduledReminder(
            id=request_id(PRIMARY_SLOT_ID),
            time=self._preferred,
            title=REMINDER_TITLE,
            body=title,
        )]
        if self._gate.has_access(Feature.MULTI_SLOT_REMINDERS):
            wanted.extend(
                ScheduledReminder(id=request_id(s.id), time=s.time, title=REMINDER_TITLE, body=title)
                for s in self._slots if s.is_enabled
            )
        return wanted

    async def _ensure_authorized(self) -> bool:
        self.is_authorized = await self._delivery.is_authorized()
        if self.is_authorized:
            return True
        logger.info("Requesting notification authorization")
        self.is_authorized = await self._delivery.request_authorization()
        if not self.is_authorized:
            logger.warning("Notification authorization denied")
            self._set_enabled(False)
            self._bus.emit(Events.AUTHORIZATION_DENIED, {}, source="reminders")
        return self.is_authorized

    def _superseded(self, generation: int, title: str) -> bool:
        """A cancel happened, or the commitment `title` belongs to is no longer active."""
        if generation != self._generation:
            return True
        return self._title_provider is not None and self._active_title() != title

    async def resynchronize(self, title: str) -> List[ScheduledReminder]:
        """Cancel everything, then install the desired schedule. Returns what was installed."""
        return await self._resynchronize(title, self._generation)

    async def _resynchronize(self, title: str, generation: int) -> List[ScheduledReminder]:
        try:
            if self._enabled and not await self._ensure_authorized():
                await self._delivery.cancel_all()
                return []
            if self._superseded(generation, title):
                logger.debug("Resync for %r superseded before install", title)
                return []

            await self._delivery.cancel_all()
            if not self._enabled:
                logger.debug("Notifications disabled, nothing scheduled")
                return []

            installed = []
            for req in self.desired_schedule(title):
                if self._superseded(generation, title):
                    break
                try:
                    await self._delivery.schedule(req.id, req.time, req.title, req.body)
                    installed.append(req)
                except Exception as e:
                    logger.error("Failed to schedule reminder %s: %s", req.id, e)

            if self._superseded(generation, title):
                logger.debug("Resync for %r superseded mid-install", title)
                if installed and self._active_title() is None:
                    # Nothing is active, so nothing may stay installed
                    await self._delivery.cancel_all()
                return []
        except Exception as e:
            logger.error("Reminder resync failed: %s", e)
            return []

        logger.info("Scheduled %d reminder(s) for %r", len(installed), title)
        self._bus.emit(Events.REMINDERS_SCHEDULED, {
            "count": len(installed),
            "ids": [r.id for r in installed],
        }, source="reminders")
        return installed

    async def cancel_all(self) -> None:
        self._generation += 1
        await self._cancel_all()

    async def _cancel_all(self) -> None:
        try:
            await self._delivery.cancel_all()
        except Exception as e:
            logger.error("Failed to cancel reminders: %s", e)
            return
        logger.info("All reminders cancelled")
        self._bus.emit(Events.REMINDERS_CANCELLED, {}, source="reminders")

    async def set_notifications_enabled(self, enabled: bool, title: Optional[str] = None) -> bool:
        """
        Turn reminders on or off. Turning on asks for authorization if needed
        and resyncs for `title` (or the active commitment). Returns the
        resulting enablement.
        """
        return await self._set_enabled_from(enabled, title, self._generation)

    async def _set_enabled_from(self, enabled: bool, title: Optional[str], generation: int) -> bool:
        if not enabled:
            self._set_enabled(False)
            await self.cancel_all()
            return False

        try:
            granted = await self._ensure_authorized()
        except Exception as e:
            logger.error("Authorization check failed: %s", e)
            granted = False
            self._set_enabled(False)
        if not granted:
            return False

        self._set_enabled(True)
        title = title or self._active_title()
        if title:
            await self._resynchronize(title, generation)
        return True

    # ------------------------------------------------------------------
    # Fire-and-forget entry points for the stores
    # ------------------------------------------------------------------

    def _dispatch(self, coro: Coroutine) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # The generation is read here, at request time, not when the task first runs

    def request_resync(self, title: str) -> Optional[asyncio.Task]:
        return self._dispatch(self._resynchronize(title, self._generation))

    def request_enable(self, title: str) -> Optional[asyncio.Task]:
        return self._dispatch(self._set_enabled_from(True, title, self._generation))

    def request_cancel(self) -> Optional[asyncio.Task]:
        self._generation += 1
        return self._dispatch(self._cancel_all())

    async def drain(self) -> None:
        """Wait for every dispatched round trip (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _resync_active(self) -> None:
        title = self._active_title()
        if title:
            self.request_resync(title)

    def _on_entitlement_changed(self, event) -> None:
        multi = self._gate.has_access(Feature.MULTI_SLOT_REMINDERS)
        if multi == self._multi_slot:
            return
        self._multi_slot = multi
        logger.info("Multi-slot reminders %s", "unlocked" if multi else "locked")
        self._resync_active()
