# -*- coding: utf-8 -*-
import json
import os
from dataclasses import dataclass
from typing import Dict

# ---------- Files ----------
CONFIG_FILE = "config.json"
USAGE_DATA_FILE = "prev_usage.json"
BAN_FILE = "ban.json"
LOG_FILE = "monitor.log"

# ---------- Defaults ----------
DEFAULT_THRESHOLD_MB = 10
DEFAULT_INTERVAL = 60           # seconds between poll cycles
RETRY_BACKOFF = 10              # seconds after a login/fetch failure
COOLDOWN_SECONDS = 60 * 60      # disabled accounts come back after an hour
HTTP_TIMEOUT = 30               # per panel call

# Telegram alerts are off unless both are set
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID", "")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ServerConfig:
    name: str
    base_url: str
    username: str
    password: str
    inbound_id: int
    verify_tls: bool = False

    def url(self, path: str) -> str:
        return self.base_url.rstrip("/") + path


def mb_to_bytes(mb) -> int:
    return int(mb) * 1024 * 1024


def parse_servers(raw) -> Dict[str, ServerConfig]:
    if not isinstance(raw, dict):
        raise ConfigError("config must be a JSON object of server name -> settings")

    servers = {}
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"server {name!r}: settings must be an object")
        missing = [k for k in ("baseUrl", "username", "password", "inboundId") if k not in entry]
        if missing:
            raise ConfigError(f"server {name!r}: missing {', '.join(missing)}")
        try:
            inbound_id = int(entry["inboundId"])
        except (TypeError, ValueError):
            raise ConfigError(f"server {name!r}: inboundId must be an integer") from None
        servers[name] = ServerConfig(
            name=name,
            base_url=str(entry["baseUrl"]),
            username=str(entry["username"]),
            password=str(entry["password"]),
            inbound_id=inbound_id,
            verify_tls=bool(entry.get("verifyTls", False)),
        )
    return servers


def load_servers(path=CONFIG_FILE) -> Dict[str, ServerConfig]:
    """Read the server map from ``path``. Any problem here is fatal for startup."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    return parse_servers(raw)
