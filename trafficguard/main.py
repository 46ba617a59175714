#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import logging
import os
import sys

from . import settings
from .ban_registry import BanRegistry
from .cooldown import CooldownScheduler
from .notify import Notifier
from .supervisor import Supervisor
from .usage_ledger import UsageLedger

log = logging.getLogger("trafficguard")


def setup_logging(log_file, debug=False):
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
    root = logging.getLogger("trafficguard")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.handlers.clear()

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return root


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Disable panel clients that use too much traffic between checks")
    p.add_argument("--threshold", type=int, default=settings.DEFAULT_THRESHOLD_MB,
                   help="Traffic limit MB per check interval")
    p.add_argument("--interval", type=int, default=settings.DEFAULT_INTERVAL,
                   help="Check interval sec")
    p.add_argument("--config", default=settings.CONFIG_FILE, help="server config JSON")
    p.add_argument("--state-dir", default=".", help="where prev_usage.json, ban.json and monitor.log live")
    p.add_argument("--release-on-restore", action="store_true",
                   help="remove an account from ban.json once its cooldown restore succeeds")
    p.add_argument("--debug", action="store_true")
    args = p.parse_args(argv)
    if args.threshold < 0:
        p.error("--threshold must be >= 0")
    if args.interval <= 0:
        p.error("--interval must be > 0")
    return args


def main(argv=None):
    args = parse_args(argv)
    os.makedirs(args.state_dir, exist_ok=True)
    setup_logging(os.path.join(args.state_dir, settings.LOG_FILE), debug=args.debug)

    try:
        servers = settings.load_servers(args.config)
    except settings.ConfigError as e:
        log.error("%s", e)
        return 1
    if not servers:
        log.error("no servers configured in %s", args.config)
        return 1

    ledger = UsageLedger(os.path.join(args.state_dir, settings.USAGE_DATA_FILE)).load()
    registry = BanRegistry(os.path.join(args.state_dir, settings.BAN_FILE)).load()
    notifier = Notifier()
    scheduler = CooldownScheduler(registry, release_on_restore=args.release_on_restore, notifier=notifier)

    threshold_bytes = settings.mb_to_bytes(args.threshold)
    log.info("threshold %d MB, interval %ss, %d servers", args.threshold, args.interval, len(servers))
    sup = Supervisor(servers, ledger, registry, scheduler, threshold_bytes, args.interval, notifier=notifier)
    sup.start()
    sup.wait()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
