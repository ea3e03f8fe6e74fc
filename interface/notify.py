# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Notifications
Local delivery for reminder schedules, through desktop notifications.
Works on both native Linux and WSL (via PowerShell).

LocalNotificationCenter implements the scheduler's NotificationDelivery:
it keeps the registered daily requests in a small JSON registry and
deliver_due(now) fires each one once per day after its time has passed.
"""

import logging
import re
import shutil
import subprocess
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional

from ritual.schemas import CommitModel, ReminderTime
from ritual.storage import FileBlobStore, Repository

logger = logging.getLogger("commit.interface.notify")

_PS_PATH = "/mnt/c/Windows/System32/WindowsPowerShell/v1.0/powershell.exe"


def is_wsl() -> bool:
    """Check if running in WSL."""
    try:
        with open('/proc/version', 'r') as f:
            return 'microsoft' in f.read().lower()
    except OSError:
        return False


def notify_wsl(title: str, message: str) -> bool:
    """Send notification via Windows PowerShell (for WSL)."""
    try:
        # Strip shell metacharacters, then escape quotes
        safe_title = re.sub(r"[;|&`$\{\}]", "", title)[:100].replace("'", "''")
        safe_message = re.sub(r"[;|&`$\{\}]", "", message)[:500].replace("'", "''")
        ps_script = (
            "Add-Type -AssemblyName System.Windows.Forms; "
            f"[System.Windows.Forms.MessageBox]::Show('{safe_message}', '{safe_title}', 'OK', 'Information')"
        )
        subprocess.Popen(
            [_PS_PATH, '-WindowStyle', 'Hidden', '-Command', ps_script],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return True
    except (OSError, subprocess.SubprocessError) as e:
        logger.error("WSL notification failed: %s", e)
        return False


def notify_linux(title: str, message: str, duration: int = 5000) -> bool:
    """Send notification via notify-send (native Linux)."""
    try:
        result = subprocess.run(
            ['notify-send', '-t', str(duration), title, message],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except FileNotFoundError:
        logger.warning("notify-send not found. Install libnotify-bin.")
        return False
    except (OSError, subprocess.SubprocessError) as e:
        logger.error("Linux notification failed: %s", e)
        return False


def notify(title: str, message: str) -> bool:
    """Send a desktop notification. Detects WSL vs native Linux."""
    if is_wsl():
        return notify_wsl(title, message)
    return notify_linux(title, message)


def desktop_available() -> bool:
    if is_wsl():
        return Path(_PS_PATH).exists()
    return shutil.which("notify-send") is not None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class PendingReminder(CommitModel):
    """A registered repeating daily notification."""
    id: str
    time: ReminderTime
    title: str
    body: str
    last_fired: Optional[date] = None


class LocalNotificationCenter:
    """
    Desktop-backed NotificationDelivery.

    Desktop sessions have no permission prompt: authorization means a
    notification backend exists. Pass `available`/`sender` to override
    (tests, headless boxes).
    """

    REGISTRY_KEY = "pending-reminders"

    def __init__(
        self,
        registry_dir: Path,
        sender: Callable[[str, str], bool] = notify,
        available: Optional[Callable[[], bool]] = None,
    ):
        self._repo = Repository(FileBlobStore(registry_dir), self.REGISTRY_KEY,
                                List[PendingReminder], list)
        self._pending: List[PendingReminder] = self._repo.load()
        self._send = sender
        self._available = available or desktop_available

    def pending(self) -> List[PendingReminder]:
        return [p.model_copy() for p in self._pending]

    async def is_authorized(self) -> bool:
        return self._available()

    async def request_authorization(self) -> bool:
        granted = self._available()
        if not granted:
            logger.warning("No desktop notification backend available")
        return granted

    async def schedule(self, id: str, time: ReminderTime, title: str, body: str) -> None:
        self._pending = [p for p in self._pending if p.id != id]
        self._pending.append(PendingReminder(id=id, time=time, title=title, body=body))
        self._repo.save(self._pending)
        logger.debug("Registered %s at %s", id, time)

    async def cancel_all(self) -> None:
        self._pending = []
        self._repo.save(self._pending)

    def deliver_due(self, now: datetime) -> List[str]:
        """Fire every request whose time has passed today and hasn't fired yet."""
        fired = []
        today = now.date()
        for p in self._pending:
            if p.last_fired == today or now.time() < p.time.as_time():
                continue
            if self._send(p.title, p.body):
                p.last_fired = today
                fired.append(p.id)
            else:
                logger.warning("Delivery of %s failed, will retry", p.id)
        if fired:
            self._repo.save(self._pending)
        return fired
