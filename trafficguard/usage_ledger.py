# -*- coding: utf-8 -*-
"""
Last-seen cumulative traffic per account.

Keys look like ``server|email|id`` so the same email on two servers (or a
re-created client with a new numeric id) gets its own counter series.
The whole map is rewritten on every save.
"""
import logging
import threading
from typing import Dict, Optional

from .storage import atomic_write_json, read_json

log = logging.getLogger("trafficguard.ledger")


def key_for(server: str, email: str, client_id: int) -> str:
    return f"{server}|{email}|{client_id}"


def _valid_total(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


class UsageLedger:
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._totals: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> int:
        with self._lock:
            return self._totals.get(key, 0)

    def set(self, key: str, total: int) -> None:
        with self._lock:
            self._totals[key] = int(total)

    def __len__(self):
        with self._lock:
            return len(self._totals)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._totals)

    def restore(self, data) -> None:
        totals = {}
        for k, v in (data or {}).items():
            if _valid_total(v):
                totals[str(k)] = v
            else:
                log.warning("dropping ledger entry %s with bad total %r", k, v)
        with self._lock:
            self._totals = totals

    def load(self) -> "UsageLedger":
        if self.path:
            data = read_json(self.path, default={})
            if not isinstance(data, dict):
                log.warning("ledger file %s is not a JSON object; starting empty", self.path)
                data = {}
            self.restore(data)
            log.info("loaded %d ledger entries from %s", len(self), self.path)
        return self

    def save(self) -> bool:
        if not self.path:
            return False
        # snapshot and write under one lock so two monitors never interleave a save
        with self._lock:
            try:
                atomic_write_json(self.path, dict(self._totals))
            except (OSError, TypeError, ValueError) as e:
                log.error("failed to save ledger %s: %s", self.path, e)
                return False
        return True
