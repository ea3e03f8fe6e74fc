# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Commit Paths — single source of truth for all data file locations.

Resolution order:
  1. Explicit data_dir (tests, embedding apps)
  2. COMMIT_DATA_DIR environment variable
  3. Default: ~/.commit/

Usage:
    from core.paths import get_paths
    p = get_paths()
    p.store_dir             # ~/.commit/store/
    p.data_dir              # ~/.commit/  (pending-reminders.json lives here)
    p.log_file              # ~/.commit/commit.log

For tests:
    from core.paths import configure
    configure(tmp_path)  # all paths now rooted under tmp_path
"""

import os
from pathlib import Path
from typing import Optional


class CommitPaths:
    """Central registry of every file and directory the engine uses."""

    def __init__(self, data_dir: Optional[Path] = None):
        if data_dir is not None:
            self._root = Path(data_dir)
        else:
            env = os.environ.get("COMMIT_DATA_DIR")
            if env:
                self._root = Path(env).expanduser()
            else:
                self._root = Path.home() / ".commit"

    # ------------------------------------------------------------------
    # Root
    # ------------------------------------------------------------------
    @property
    def data_dir(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Key-value blob store (one JSON file per key)
    # ------------------------------------------------------------------
    @property
    def store_dir(self) -> Path:
        return self._root / "store"

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------
    @property
    def log_file(self) -> Path:
        return self._root / "commit.log"

    # ------------------------------------------------------------------
    # Directory creation
    # ------------------------------------------------------------------
    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for d in (self.data_dir, self.store_dir):
            d.mkdir(parents=True, exist_ok=True)


# ===========================================================================
# Singleton
# ===========================================================================

_instance: Optional[CommitPaths] = None


def get_paths() -> CommitPaths:
    """Return the global CommitPaths singleton (lazy-init)."""
    global _instance
    if _instance is None:
        _instance = CommitPaths()
    return _instance


def configure(data_dir: Path) -> CommitPaths:
    """
    Override the global paths singleton. Used by tests and embedding apps.

    Returns the new instance for convenience.
    """
    global _instance
    _instance = CommitPaths(data_dir=data_dir)
    return _instance


def reset() -> None:
    """Reset singleton so next get_paths() re-reads env."""
    global _instance
    _instance = None
