# -*- coding: utf-8 -*-
import logging
import threading
import time
from typing import Dict, List

from .server_monitor import ServerMonitor
from .settings import ServerConfig

log = logging.getLogger("trafficguard")


class Supervisor:
    """Runs one ServerMonitor thread per configured server; no coordination between them."""

    def __init__(self, servers: Dict[str, ServerConfig], ledger, registry, scheduler,
                 threshold_bytes, interval, notifier=None, monitor_factory=ServerMonitor):
        self.scheduler = scheduler
        self.monitors: List[ServerMonitor] = [
            monitor_factory(cfg, ledger, registry, scheduler, threshold_bytes, interval, notifier=notifier)
            for cfg in servers.values()
        ]
        self.threads: List[threading.Thread] = []

    def start(self):
        for m in self.monitors:
            t = threading.Thread(target=m.run_forever, name=f"monitor-{m.name}", daemon=True)
            t.start()
            self.threads.append(t)
        log.info("started %d server monitors", len(self.threads))

    def wait(self):
        try:
            while True:
                time.sleep(3600)
        except KeyboardInterrupt:
            dropped = self.scheduler.cancel_all()
            log.info("interrupted; dropped %d pending restores", dropped)
