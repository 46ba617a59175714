# -*- coding: utf-8 -*-
import json
import logging
import os
import tempfile

log = logging.getLogger("trafficguard.storage")


def atomic_write_json(path, data, indent=None):
    """
    Write ``data`` next to ``path`` and move it into place, so a crash mid-write
    leaves the previous file intact.
    """
    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=d, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def read_json(path, default=None):
    """Missing file -> ``default``; unreadable or corrupt file -> ``default`` plus a warning."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        log.warning("ignoring unreadable state file %s: %s", path, e)
        return default
