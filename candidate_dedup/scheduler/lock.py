"""Self-scan concurrency lock.

Only one scan of the population may run at a time, whether it was started
by the scheduler or by ``POST /duplicates/scan``.  The lock remembers which
run holds it (run id, trigger, start time) so the API can report it.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

_scan_lock = threading.Lock()
_current_scan: dict[str, Any] | None = None


def acquire_scan_lock(run_id: UUID, trigger: str = "scheduler") -> bool:
    """Try to take the lock for *run_id*; False if another scan holds it."""
    global _current_scan
    if not _scan_lock.acquire(blocking=False):
        return False
    _current_scan = {
        "run_id": run_id,
        "trigger": trigger,
        "started_at": datetime.now(timezone.utc),
    }
    return True


def release_scan_lock() -> None:
    """Release the lock.  Safe to call when it is not held."""
    global _current_scan
    _current_scan = None
    try:
        _scan_lock.release()
    except RuntimeError:
        pass


def get_current_scan() -> dict[str, Any] | None:
    """Run id, trigger and start time of the scan in progress, or None."""
    return dict(_current_scan) if _current_scan else None


def is_scan_running() -> bool:
    return _current_scan is not None
