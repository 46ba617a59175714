# -*- coding: utf-8 -*-
"""
Thin client for the 3x-ui panel endpoints the daemon needs:
login, inbound list, client enable/disable and panel restart.
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import requests
import urllib3

from .settings import HTTP_TIMEOUT, ServerConfig

log = logging.getLogger("trafficguard.panel")

DEFAULT_FLOW = "xtls-rprx-vision"


class PanelError(Exception):
    pass


def safe_int(v, default=0):
    try:
        return int(v)
    except (TypeError, ValueError):
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return default


@dataclass(frozen=True)
class AccountStat:
    email: str
    id: int
    up: int
    down: int
    enable: bool
    expiry_time: int = 0

    @property
    def total(self) -> int:
        return self.up + self.down

    @classmethod
    def from_dict(cls, d) -> "AccountStat":
        return cls(
            email=str(d.get("email", "")),
            id=safe_int(d.get("id")),
            up=max(0, safe_int(d.get("up"))),
            down=max(0, safe_int(d.get("down"))),
            enable=bool(d.get("enable", False)),
            expiry_time=safe_int(d.get("expiryTime")),
        )


@dataclass(frozen=True)
class AccountSecret:
    uuid: str
    flow: str = DEFAULT_FLOW


def parse_secrets(settings_blob) -> Dict[str, AccountSecret]:
    """
    Map email -> client uuid from an inbound's ``settings`` JSON string.
    Raises ValueError when the blob is not the expected shape.
    """
    if not isinstance(settings_blob, (str, bytes, bytearray)):
        raise ValueError(f"settings is {type(settings_blob).__name__}, not a JSON string")
    parsed = json.loads(settings_blob or "")
    if not isinstance(parsed, dict):
        raise ValueError("settings is not a JSON object")
    clients = parsed.get("clients") or []
    if not isinstance(clients, list):
        raise ValueError("settings.clients is not a list")

    secrets = {}
    for c in clients:
        if not isinstance(c, dict):
            continue
        email, uuid = c.get("email"), c.get("id")
        if email and uuid:
            secrets[str(email)] = AccountSecret(uuid=str(uuid), flow=str(c.get("flow") or DEFAULT_FLOW))
    return secrets


class PanelClient:
    def __init__(self, server: ServerConfig, timeout=HTTP_TIMEOUT, session=None):
        self.server = server
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.verify = server.verify_tls
        if not server.verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _post(self, path, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        return self.session.post(self.server.url(path), **kwargs)

    def login(self) -> None:
        form = {
            "username": self.server.username,
            "password": self.server.password,
            "twoFactorCode": "",
        }
        resp = self._post("/login", data=form, allow_redirects=False)
        if resp.status_code not in (200, 302):
            raise PanelError(f"login status {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError:
            return
        if isinstance(body, dict) and body.get("success") is False:
            raise PanelError(f"login rejected: {body.get('msg', '')}")

    def list_inbound(self) -> Tuple[List[AccountStat], str]:
        """Client stats and the raw settings blob of the configured inbound."""
        resp = self._post("/panel/inbound/list")
        try:
            body = resp.json()
        except ValueError:
            raise PanelError(f"inbound list: invalid JSON (status {resp.status_code})") from None
        if not isinstance(body, dict) or not body.get("success"):
            msg = body.get("msg", "") if isinstance(body, dict) else ""
            raise PanelError(f"inbound list failed: {msg or resp.status_code}")

        for inbound in body.get("obj") or []:
            if safe_int(inbound.get("id"), -1) == self.server.inbound_id:
                stats = [AccountStat.from_dict(s) for s in inbound.get("clientStats") or []]
                return stats, inbound.get("settings") or ""
        raise PanelError(f"inbound {self.server.inbound_id} not found")

    def set_enabled(self, secret: AccountSecret, stat: AccountStat, enable: bool) -> None:
        client = {
            "id": secret.uuid,
            "flow": secret.flow,
            "email": stat.email,
            "limitIp": 0,
            "totalGB": 0,
            "expiryTime": 0,
            "enable": enable,
            "tgId": "",
            "subId": "",
            "comment": "",
            "reset": 0,
        }
        form = {
            "id": str(self.server.inbound_id),
            "settings": json.dumps({"clients": [client]}),
        }
        path = f"/panel/inbound/updateClient/{secret.uuid}"
        log.info("[%s] POST %s (%s enable=%s)", self.server.name, path, stat.email, enable)
        resp = self._post(path, data=form)
        if resp.status_code != 200:
            raise PanelError(f"update client failed ({resp.status_code}): {resp.text[:200]}")

    def restart_panel(self) -> None:
        resp = self._post(
            "/panel/setting/restartPanel",
            headers={"X-Requested-With": "XMLHttpRequest"},
        )
        if resp.status_code != 200:
            raise PanelError(f"restart failed ({resp.status_code}): {resp.text[:200]}")

    def close(self):
        self.session.close()
