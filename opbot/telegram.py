"""
Telegram Bot API client: report delivery and chat membership tracking.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

import requests

TELEGRAM_API_URL = "https://api.telegram.org"
LONG_POLL_TIMEOUT_SECONDS = 60
POLL_ERROR_BACKOFF_SECONDS = 5


class TelegramError(RuntimeError):
    pass


class TelegramBot:
    def __init__(
        self,
        token: str,
        message: str,
        *,
        store,
        api_url: str = TELEGRAM_API_URL,
        logger: Optional[logging.Logger] = None,
    ):
        if not token:
            raise ValueError("telegram bot token is required")

        self.message = message
        self.store = store
        self.logger = logger or logging.getLogger("telegram")
        self.base_url = f"{api_url.rstrip('/')}/bot{token}"
        self.session = requests.Session()
        self.offset = 0

    def _call(self, method: str, *, timeout: float = 30, **kwargs) -> dict:
        try:
            resp = self.session.post(f"{self.base_url}/{method}", timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise TelegramError(f"Telegram {method} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TelegramError(f"Telegram {method} error {resp.status_code}: {resp.text}") from e

        if resp.status_code != 200 or not data.get("ok"):
            raise TelegramError(
                f"Telegram {method} error {resp.status_code}: {data.get('description', resp.text)}"
            )
        return data.get("result")

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def send_file(self, path, stop_event: Optional[threading.Event] = None) -> int:
        """
        Send the file to every stored chat.
        Returns the number of chats it was delivered to; per-chat failures are logged.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"report file not found: {path}")

        chat_ids = self.store.list_chat_ids()
        if not chat_ids:
            self.logger.warning("⚠️ No chats to send the report to")
            return 0

        delivered = 0
        for chat_id in chat_ids:
            if stop_event is not None and stop_event.is_set():
                self.logger.info("⛔ Sending interrupted by shutdown")
                break

            try:
                with path.open("rb") as fh:
                    self._call(
                        "sendDocument",
                        data={"chat_id": chat_id, "caption": self.message},
                        files={"document": (path.name, fh)},
                        timeout=120,
                    )
            except TelegramError as e:
                self.logger.error(f"❌ Failed to send {path.name} to chat {chat_id}: {e}")
                continue

            delivered += 1
            self.logger.info(f"📤 Report {path.name} sent to chat {chat_id}")

        return delivered

    # ------------------------------------------------------------------
    # Membership tracking
    # ------------------------------------------------------------------

    def get_updates(self) -> List[Dict]:
        return self._call(
            "getUpdates",
            json={
                "offset": self.offset + 1,
                "timeout": LONG_POLL_TIMEOUT_SECONDS,
                "allowed_updates": ["my_chat_member"],
            },
            timeout=LONG_POLL_TIMEOUT_SECONDS + 10,
        ) or []

    def handle_update(self, update: Dict) -> None:
        member = update.get("my_chat_member")
        if member:
            self.handle_my_chat_member(member)
        update_id = update.get("update_id", 0)
        if update_id > self.offset:
            self.offset = update_id

    def handle_my_chat_member(self, member: Dict) -> None:
        chat = member.get("chat") or {}
        chat_id = chat.get("id")
        title = chat.get("title") or ""

        # Forum topics arrive as untitled supergroups
        if chat.get("type") == "supergroup" and not title:
            self.logger.debug(f"Ignoring untitled supergroup {chat_id}")
            return

        status = (member.get("new_chat_member") or {}).get("status")
        if status in ("member", "administrator"):
            self.store.save_chat(chat_id, title)
            self.logger.info(f"💬 Chat saved: {chat_id} ({title})")
        elif status in ("left", "kicked"):
            self.store.remove_chat(chat_id)
            self.logger.info(f"🚪 Chat removed: {chat_id}")

    def poll_forever(self, stop_event: threading.Event) -> None:
        self.logger.info("🤖 Telegram long polling started")

        while not stop_event.is_set():
            try:
                updates = self.get_updates()
            except TelegramError:
                if stop_event.is_set():
                    break
                self.logger.error("❌ Long polling failed", exc_info=True)
                stop_event.wait(POLL_ERROR_BACKOFF_SECONDS)
                continue

            for update in updates:
                try:
                    self.handle_update(update)
                except Exception:
                    self.logger.error(f"❌ Failed to handle update {update.get('update_id')}", exc_info=True)
                    self.offset = max(self.offset, update.get("update_id", 0))

        self.logger.info("🤖 Telegram long polling stopped")
