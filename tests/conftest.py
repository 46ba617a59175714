import json
from unittest.mock import MagicMock

import pytest

from trafficguard.ban_registry import BanRegistry
from trafficguard.panel_client import PanelError
from trafficguard.server_monitor import ServerMonitor
from trafficguard.settings import ServerConfig, mb_to_bytes
from trafficguard.usage_ledger import UsageLedger


class FakePanel:
    """Scripted stand-in for PanelClient; records every mutating call."""

    def __init__(self, stats=None, settings_blob=None):
        self.stats = stats or []
        self.settings_blob = settings_blob if settings_blob is not None else "{}"
        self.login_error = None
        self.fetch_error = None
        self.update_error = None
        self.restart_error = None
        self.logins = 0
        self.updates = []
        self.restarts = 0
        self.closed = False

    def login(self):
        self.logins += 1
        if self.login_error:
            raise self.login_error

    def list_inbound(self):
        if self.fetch_error:
            raise self.fetch_error
        return list(self.stats), self.settings_blob

    def set_enabled(self, secret, stat, enable):
        if self.update_error:
            raise self.update_error
        self.updates.append((secret.uuid, stat.email, enable))

    def restart_panel(self):
        self.restarts += 1
        if self.restart_error:
            raise self.restart_error

    def close(self):
        self.closed = True


def settings_for(*emails):
    return json.dumps({"clients": [{"email": e, "id": f"uuid-{e}", "flow": ""} for e in emails]})


@pytest.fixture
def server():
    return ServerConfig(name="de-1", base_url="https://panel.example.com:2053/", username="admin",
                        password="pw", inbound_id=7)


@pytest.fixture
def ledger(tmp_path):
    return UsageLedger(str(tmp_path / "prev_usage.json"))


@pytest.fixture
def registry(tmp_path):
    return BanRegistry(str(tmp_path / "ban.json"))


@pytest.fixture
def panel():
    return FakePanel()


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def monitor(server, ledger, registry, scheduler, panel):
    return ServerMonitor(server, ledger, registry, scheduler,
                         threshold_bytes=mb_to_bytes(10), interval=60,
                         client_factory=lambda cfg: panel, sleep=MagicMock())


@pytest.fixture
def panel_error():
    return PanelError("boom")
