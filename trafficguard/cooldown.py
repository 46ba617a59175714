# -*- coding: utf-8 -*-
"""
Delayed re-enable of disabled accounts.

Each enforcement attempt arms one timer; when it fires the account is
re-enabled on its server with a fresh login. Timers live in memory only.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

import requests

from .panel_client import AccountSecret, AccountStat, PanelClient, PanelError
from .settings import COOLDOWN_SECONDS, ServerConfig

log = logging.getLogger("trafficguard.cooldown")


class CooldownHandle:
    def __init__(self, server: ServerConfig, secret: AccountSecret, stat: AccountStat, due_at: float,
                 banned: bool = False):
        self.server = server
        self.secret = secret
        self.stat = stat
        self.due_at = due_at
        # True only when this enforcement put the email into the ban list
        self.banned = banned
        self.timer: Optional[threading.Timer] = None

    @property
    def email(self):
        return self.stat.email

    def cancel(self):
        if self.timer is not None:
            self.timer.cancel()


class CooldownScheduler:
    def __init__(self, registry=None, delay=COOLDOWN_SECONDS, release_on_restore=False,
                 client_factory: Callable = PanelClient, notifier=None):
        self.registry = registry
        self.delay = delay
        self.release_on_restore = release_on_restore
        self.client_factory = client_factory
        self.notifier = notifier
        self._pending: Dict[int, CooldownHandle] = {}
        self._lock = threading.Lock()

    def schedule(self, server: ServerConfig, secret: AccountSecret, stat: AccountStat,
                 banned: bool = False) -> CooldownHandle:
        handle = CooldownHandle(server, secret, stat, time.time() + self.delay, banned=banned)
        timer = threading.Timer(self.delay, self._fire, args=(handle,))
        timer.daemon = True
        timer.name = f"cooldown-{server.name}-{stat.email}"
        handle.timer = timer
        with self._lock:
            self._pending[id(handle)] = handle
        timer.start()
        log.info("[%s] %s will be re-enabled in %ss", server.name, stat.email, self.delay)
        return handle

    def pending(self):
        with self._lock:
            return list(self._pending.values())

    def cancel(self, email) -> int:
        """Cancel every pending restore for ``email``; returns how many were dropped."""
        with self._lock:
            dropped = [h for h in self._pending.values() if h.email == email]
            for h in dropped:
                del self._pending[id(h)]
        for h in dropped:
            h.cancel()
        return len(dropped)

    def cancel_all(self) -> int:
        with self._lock:
            dropped = list(self._pending.values())
            self._pending.clear()
        for h in dropped:
            h.cancel()
        return len(dropped)

    def _fire(self, handle: CooldownHandle):
        with self._lock:
            self._pending.pop(id(handle), None)
        self.restore(handle.server, handle.secret, handle.stat, release=handle.banned)

    def restore(self, server: ServerConfig, secret: AccountSecret, stat: AccountStat,
                release: bool = True) -> bool:
        """
        Re-enable ``stat`` on ``server``. With ``release_on_restore`` the email also
        leaves the ban list, but only when ``release`` says this enforcement banned it.
        """
        client = self.client_factory(server)
        try:
            try:
                client.login()
            except (requests.RequestException, PanelError) as e:
                # the enable below is still attempted; the session may not need a fresh login
                log.warning("[%s] login before restore of %s failed: %s", server.name, stat.email, e)
            client.set_enabled(secret, stat, True)
        except (requests.RequestException, PanelError) as e:
            log.error("[%s] restore of %s failed: %s", server.name, stat.email, e)
            return False
        finally:
            client.close()

        log.info("[%s] %s re-enabled after cooldown", server.name, stat.email)
        if release and self.release_on_restore and self.registry is not None:
            if self.registry.discard(stat.email):
                log.info("%s removed from ban list", stat.email)
        if self.notifier is not None:
            self.notifier.restored(server.name, stat.email)
        return True
