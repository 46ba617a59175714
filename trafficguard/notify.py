# -*- coding: utf-8 -*-
import logging
import threading

import requests

from . import settings

log = logging.getLogger("trafficguard.notify")


class Notifier:
    """Telegram alerts for bans and restores. Does nothing without a token and chat id."""

    def __init__(self, token=None, chat_id=None, timeout=10):
        self.token = settings.TELEGRAM_BOT_TOKEN if token is None else token
        self.chat_id = settings.TELEGRAM_CHAT_ID if chat_id is None else chat_id
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.chat_id)

    def send(self, text, wait=False) -> bool:
        if not self.enabled:
            return False
        if wait:
            return self._send(text)
        t = threading.Thread(target=self._send, args=(text,), daemon=True)
        t.start()
        return True

    def _send(self, text) -> bool:
        try:
            resp = requests.post(
                f"https://api.telegram.org/bot{self.token}/sendMessage",
                data={"chat_id": self.chat_id, "text": text},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning("Failed to send telegram message: %s", e)
            return False
        if resp.status_code != 200:
            log.warning("Telegram answered %s: %s", resp.status_code, resp.text[:200])
            return False
        return True

    def banned(self, server, email, delta):
        self.send(f"🔒 [{server}] {email} disabled: {human_bytes(delta)} since last check")

    def restored(self, server, email):
        self.send(f"🔓 [{server}] {email} re-enabled after cooldown")


def human_bytes(n) -> str:
    if n >= 1024 ** 3:
        return f"{n / 1024 ** 3:.2f} GB"
    if n >= 1024 ** 2:
        return f"{n / 1024 ** 2:.1f} MB"
    if n >= 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n} B"
