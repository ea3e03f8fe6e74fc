# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Event Bus — pub/sub between the stores, the gate and the scheduler.

Stores never import each other for side effects they don't own:
    bus.emit(Events.CHECKED_IN, {"commitment_id": ..., "streak": 4})

The entitlement provider's change stream arrives here too, as
ENTITLEMENT_CHANGED; the gate drops its cache and the scheduler resyncs.

- Sync handlers run inline; async handlers are scheduled on the running
  loop (or skipped when none is running). emit_async() awaits them.
- Higher priority runs first, equal priority keeps subscription order.
- A failing handler is logged and the rest still run.
- Emit depth is capped so a handler that re-emits can't loop forever.

No global instance: CommitApp builds one bus and injects it.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger("commit.events")

_MAX_EMIT_DEPTH = 3


class Events:
    """Registry of all event types."""

    # --- Lifecycle ---
    COMMITMENT_CREATED = "commitment_created"
    CHECKED_IN = "checked_in"
    COMMITMENT_ARCHIVED = "commitment_archived"

    # --- Archive & journal ---
    ARCHIVE_DELETED = "archive_deleted"
    JOURNAL_SAVED = "journal_saved"
    JOURNAL_DELETED = "journal_deleted"

    # --- Reminders ---
    REMINDERS_SCHEDULED = "reminders_scheduled"
    REMINDERS_CANCELLED = "reminders_cancelled"
    AUTHORIZATION_DENIED = "authorization_denied"

    # --- Entitlements ---
    ENTITLEMENT_CHANGED = "entitlement_changed"


@dataclass
class Event:
    type: str
    data: Dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    source: Optional[str] = None


@dataclass
class Subscriber:
    callback: Callable[[Event], Any]
    priority: int = 0
    once: bool = False
    source: Optional[str] = None
    is_async: bool = False


class EventBus:
    """Priority-ordered dispatch with bounded history. Thread-safe via lock."""

    def __init__(self, history_size: int = 100):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._history: List[Event] = []
        self._history_size = history_size
        self._lock = threading.Lock()
        self._muted: Set[str] = set()
        self._local = threading.local()
        self._tasks: Set[asyncio.Task] = set()

    # --- Subscription ---

    def _subscribe(self, event_type: str, callback: Callable, priority: int,
                   once: bool, source: Optional[str]) -> None:
        sub = Subscriber(
            callback=callback,
            priority=priority,
            once=once,
            source=source,
            is_async=asyncio.iscoroutinefunction(callback),
        )
        with self._lock:
            subs = self._subscribers.setdefault(event_type, [])
            subs.append(sub)
            subs.sort(key=lambda s: -s.priority)

    def on(self, event_type: str, callback: Callable, priority: int = 0,
           source: Optional[str] = None) -> None:
        self._subscribe(event_type, callback, priority, False, source)

    def once(self, event_type: str, callback: Callable, priority: int = 0,
             source: Optional[str] = None) -> None:
        self._subscribe(event_type, callback, priority, True, source)

    def off(self, event_type: str, callback: Callable) -> bool:
        """Unsubscribe a callback. Returns True if found and removed."""
        with self._lock:
            subs = self._subscribers.get(event_type)
            if not subs:
                return False
            kept = [s for s in subs if s.callback is not callback]
            self._subscribers[event_type] = kept
            return len(kept) < len(subs)

    def mute(self, event_type: str) -> None:
        with self._lock:
            self._muted.add(event_type)

    def unmute(self, event_type: str) -> None:
        with self._lock:
            self._muted.discard(event_type)

    # --- Dispatch ---

    def _record(self, event: Event) -> List[Subscriber]:
        """Append to history, return the subscribers to call (empty if muted)."""
        with self._lock:
            self._history.append(event)
            if len(self._history) > self._history_size:
                self._history = self._history[-self._history_size:]
            if event.type in self._muted:
                return []
            return list(self._subscribers.get(event.type, []))

    def _drop_once(self, event_type: str, fired: List[Subscriber]) -> None:
        if not fired:
            return
        with self._lock:
            for sub in fired:
                try:
                    self._subscribers[event_type].remove(sub)
                except (ValueError, KeyError):
                    pass

    def _log_failure(self, event: Event, sub: Subscriber, exc: Exception) -> None:
        logger.error(
            "Event handler error: %s -> %s: %s",
            event.type, sub.source or getattr(sub.callback, "__name__", "handler"), exc,
        )

    def _track(self, task: asyncio.Task, event: Event, sub: Subscriber) -> None:
        """Hold a strong reference until the handler finishes; log what it raised."""
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                self._log_failure(event, sub, t.exception())

        task.add_done_callback(_done)

    def pending(self) -> int:
        """Async handlers scheduled by emit() that haven't finished."""
        return len(self._tasks)

    def emit(self, event_type: str, data: Optional[Dict[str, Any]] = None,
             source: Optional[str] = None) -> Event:
        """Dispatch to sync handlers inline; schedule async ones if a loop runs."""
        event = Event(type=event_type, data=data or {}, source=source)

        self._local.depth = getattr(self._local, "depth", 0) + 1
        try:
            if self._local.depth > _MAX_EMIT_DEPTH:
                logger.warning("Emit depth exceeded for %s, dropping", event_type)
                return event

            fired = []
            for sub in self._record(event):
                try:
                    if sub.is_async:
                        try:
                            loop = asyncio.get_running_loop()
                        except RuntimeError:
                            logger.debug("No event loop for async handler on %s", event_type)
                        else:
                            self._track(loop.create_task(sub.callback(event)), event, sub)
                    else:
                        sub.callback(event)
                except Exception as e:
                    self._log_failure(event, sub, e)
                if sub.once:
                    fired.append(sub)
            self._drop_once(event_type, fired)
            return event
        finally:
            self._local.depth -= 1

    async def emit_async(self, event_type: str, data: Optional[Dict[str, Any]] = None,
                         source: Optional[str] = None) -> Event:
        """Dispatch and await async handlers."""
        event = Event(type=event_type, data=data or {}, source=source)

        self._local.depth = getattr(self._local, "depth", 0) + 1
        try:
            if self._local.depth > _MAX_EMIT_DEPTH:
                logger.warning("Emit depth exceeded for %s, dropping", event_type)
                return event

            fired = []
            for sub in self._record(event):
                try:
                    if sub.is_async:
                        await sub.callback(event)
                    else:
                        sub.callback(event)
                except Exception as e:
                    self._log_failure(event, sub, e)
                if sub.once:
                    fired.append(sub)
            self._drop_once(event_type, fired)
            return event
        finally:
            self._local.depth -= 1

    # --- Introspection ---

    def history(self, event_type: Optional[str] = None, limit: int = 20) -> List[Event]:
        with self._lock:
            events = self._history
            if event_type:
                events = [e for e in events if e.type == event_type]
            return list(events[-limit:])

    def reset(self) -> None:
        """Clear all subscribers and history. For testing."""
        with self._lock:
            self._subscribers.clear()
            self._history.clear()
            self._muted.clear()
