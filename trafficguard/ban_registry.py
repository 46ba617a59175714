# -*- coding: utf-8 -*-
"""
Accounts currently disabled by the daemon.

Keyed by email only, so a ban applies to every monitored server that has a
client with that email. Shared by all monitor threads and cooldown timers;
every change is written to disk while the lock is still held.
"""
import logging
import threading
from typing import List, Optional

from .storage import atomic_write_json, read_json

log = logging.getLogger("trafficguard.bans")


class BanRegistry:
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._banned = {}
        self._lock = threading.Lock()

    def __contains__(self, email) -> bool:
        with self._lock:
            return bool(self._banned.get(email))

    def __len__(self):
        with self._lock:
            return sum(1 for v in self._banned.values() if v)

    def members(self) -> List[str]:
        with self._lock:
            return sorted(e for e, v in self._banned.items() if v)

    def add(self, email: str) -> bool:
        """Returns False (and writes nothing) when ``email`` is already banned."""
        with self._lock:
            if self._banned.get(email):
                return False
            self._banned[email] = True
            self._write()
        return True

    def discard(self, email: str) -> bool:
        with self._lock:
            if email not in self._banned:
                return False
            del self._banned[email]
            self._write()
        return True

    def snapshot(self):
        with self._lock:
            return dict(self._banned)

    def restore(self, data) -> None:
        with self._lock:
            self._banned = {str(k): bool(v) for k, v in (data or {}).items()}

    def load(self) -> "BanRegistry":
        if self.path:
            data = read_json(self.path, default={})
            if not isinstance(data, dict):
                log.warning("ban file %s is not a JSON object; starting empty", self.path)
                data = {}
            self.restore(data)
            log.info("loaded %d banned accounts from %s", len(self), self.path)
        return self

    def save(self) -> bool:
        with self._lock:
            return self._write()

    def _write(self) -> bool:
        # caller holds the lock
        if not self.path:
            return False
        try:
            atomic_write_json(self.path, self._banned, indent=2)
        except (OSError, TypeError, ValueError) as e:
            log.error("failed to save ban list %s: %s", self.path, e)
            return False
        return True
