# -*- coding: utf-8 -*-
"""
Per-server poll loop.

Every cycle: login, read the inbound's client stats, compare each client's
up+down total with the ledger, disable clients whose growth since the last
cycle is over the threshold, then save the ledger and sleep.
"""
import logging
import time
from typing import Callable, Dict

import requests

from .panel_client import AccountSecret, AccountStat, PanelClient, PanelError, parse_secrets
from .settings import RETRY_BACKOFF, ServerConfig
from .usage_ledger import key_for

log = logging.getLogger("trafficguard.monitor")


class ServerMonitor:
    def __init__(self, server: ServerConfig, ledger, registry, scheduler,
                 threshold_bytes: int, interval: float,
                 client_factory: Callable = PanelClient, notifier=None,
                 backoff: float = RETRY_BACKOFF, sleep: Callable = time.sleep):
        self.server = server
        self.ledger = ledger
        self.registry = registry
        self.scheduler = scheduler
        self.threshold_bytes = threshold_bytes
        self.interval = interval
        self.client = client_factory(server)
        self.notifier = notifier
        self.backoff = backoff
        self.sleep = sleep

    @property
    def name(self):
        return self.server.name

    def run_forever(self):
        log.info("[%s] monitoring inbound %s every %ss", self.name, self.server.inbound_id, self.interval)
        while True:
            try:
                ok = self.run_cycle()
            except Exception:
                log.exception("[%s] unexpected error in poll cycle", self.name)
                ok = False
            self.sleep(self.interval if ok else self.backoff)

    def run_cycle(self) -> bool:
        """One poll. False means login or fetch failed and nothing was evaluated."""
        try:
            self.client.login()
        except (requests.RequestException, PanelError) as e:
            log.error("[%s] login err: %s", self.name, e)
            return False

        try:
            stats, settings_blob = self.client.list_inbound()
        except (requests.RequestException, PanelError) as e:
            log.error("[%s] fetch stats err: %s", self.name, e)
            return False

        secrets = self.load_secrets(settings_blob)
        for stat in stats:
            self.evaluate(stat, secrets)
        self.ledger.save()
        return True

    def load_secrets(self, settings_blob) -> Dict[str, AccountSecret]:
        try:
            secrets = parse_secrets(settings_blob)
        except ValueError as e:
            log.warning("[%s] failed to parse settings JSON, no client can be disabled this cycle: %s",
                        self.name, e)
            return {}
        log.debug("[%s] loaded %d client uuids", self.name, len(secrets))
        return secrets

    def evaluate(self, stat: AccountStat, secrets: Dict[str, AccountSecret]) -> bool:
        """Returns True when the ban policy fired for ``stat``."""
        if not stat.enable or stat.email in self.registry:
            return False

        key = key_for(self.name, stat.email, stat.id)
        total = stat.total
        prev = self.ledger.get(key)
        delta = total - prev
        if delta < 0:
            log.warning("[%s] %s (ID:%d) counter went back from %d to %d; treating as reset",
                        self.name, stat.email, stat.id, prev, total)
            delta = 0
        log.info("[%s] %s (ID:%d) ∆ %d", self.name, stat.email, stat.id, delta)

        fired = False
        if delta > self.threshold_bytes:
            log.info("[%s] %s exceeded", self.name, stat.email)
            self.enforce(stat, secrets.get(stat.email), delta)
            fired = True
        self.ledger.set(key, total)
        return fired

    def enforce(self, stat: AccountStat, secret, delta: int) -> bool:
        """Disable ``stat``'s client. True if the panel accepted it and the email was newly banned."""
        if secret is None:
            log.warning("[%s] no uuid for %s", self.name, stat.email)
            return False

        added = False
        try:
            self.client.set_enabled(secret, stat, False)
        except (requests.RequestException, PanelError) as e:
            log.error("[%s] disable err: %s", self.name, e)
        else:
            log.info("[%s] %s banned", self.name, stat.email)
            added = self.registry.add(stat.email)
            try:
                self.client.restart_panel()
            except (requests.RequestException, PanelError) as e:
                log.warning("[%s] restart after ban failed: %s", self.name, e)
            if self.notifier is not None:
                self.notifier.banned(self.name, stat.email, delta)

        self.scheduler.schedule(self.server, secret, stat, banned=added)
        return added
