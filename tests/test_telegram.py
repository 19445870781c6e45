from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
import requests

from opbot.telegram import TelegramBot, TelegramError


class MemoryStore:
    def __init__(self, chat_ids=()):
        self.chats = {cid: "" for cid in chat_ids}

    def save_chat(self, chat_id, title):
        self.chats[chat_id] = title

    def remove_chat(self, chat_id):
        self.chats.pop(chat_id, None)

    def list_chat_ids(self):
        return list(self.chats)


def _bot(store=None) -> TelegramBot:
    return TelegramBot("123:abc", "Daily report", store=store or MemoryStore())


def _update(update_id, status, chat_type="group", title="Team", chat_id=-100):
    return {
        "update_id": update_id,
        "my_chat_member": {
            "chat": {"id": chat_id, "type": chat_type, "title": title},
            "new_chat_member": {"status": status},
        },
    }


def test_requires_token() -> None:
    with pytest.raises(ValueError):
        TelegramBot("", "msg", store=MemoryStore())


def test_added_and_removed_chats_are_tracked() -> None:
    store = MemoryStore()
    bot = _bot(store)

    bot.handle_update(_update(10, "member", chat_id=-1))
    bot.handle_update(_update(11, "administrator", chat_id=-2, title="Leads"))
    assert store.chats == {-1: "Team", -2: "Leads"}

    bot.handle_update(_update(12, "kicked", chat_id=-1))
    assert store.chats == {-2: "Leads"}
    assert bot.offset == 12


def test_untitled_supergroup_is_ignored() -> None:
    store = MemoryStore()
    _bot(store).handle_update(_update(1, "member", chat_type="supergroup", title=""))
    assert store.chats == {}


def test_send_file_delivers_to_every_chat_and_skips_failures(tmp_path) -> None:
    report = tmp_path / "report.xlsx"
    report.write_bytes(b"xlsx")
    bot = _bot(MemoryStore([1, 2, 3]))
    bot._call = MagicMock(side_effect=[{}, TelegramError("chat not found"), {}])

    assert bot.send_file(report) == 2
    sent_to = [c.kwargs["data"]["chat_id"] for c in bot._call.call_args_list]
    assert sent_to == [1, 2, 3]
    assert bot._call.call_args.kwargs["data"]["caption"] == "Daily report"


def test_send_file_without_chats(tmp_path) -> None:
    report = tmp_path / "report.xlsx"
    report.write_bytes(b"xlsx")
    bot = _bot()
    bot._call = MagicMock()

    assert bot.send_file(report) == 0
    bot._call.assert_not_called()


def test_send_file_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        _bot(MemoryStore([1])).send_file(tmp_path / "missing.xlsx")


def test_send_file_stops_on_shutdown(tmp_path) -> None:
    report = tmp_path / "report.xlsx"
    report.write_bytes(b"xlsx")
    bot = _bot(MemoryStore([1, 2]))
    bot._call = MagicMock()
    stop = threading.Event()
    stop.set()

    assert bot.send_file(report, stop_event=stop) == 0
    bot._call.assert_not_called()


def test_call_wraps_transport_and_api_errors() -> None:
    bot = _bot()
    bot.session.post = MagicMock(side_effect=requests.ConnectionError("down"))
    with pytest.raises(TelegramError):
        bot._call("getMe")

    resp = MagicMock(status_code=401, text="unauthorized")
    resp.json.return_value = {"ok": False, "description": "Unauthorized"}
    bot.session.post = MagicMock(return_value=resp)
    with pytest.raises(TelegramError, match="Unauthorized"):
        bot._call("getMe")


def test_poll_forever_processes_updates_until_stopped() -> None:
    store = MemoryStore()
    bot = _bot(store)
    stop = threading.Event()

    def get_updates():
        stop.set()
        return [_update(5, "member", chat_id=-7)]

    bot.get_updates = get_updates
    bot.poll_forever(stop)

    assert store.chats == {-7: "Team"}
    assert bot.offset == 5
