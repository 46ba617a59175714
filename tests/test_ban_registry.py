import json
import threading
from unittest.mock import patch

from trafficguard.ban_registry import BanRegistry


def test_add_persists_pretty_json(registry):
    assert registry.add("alice@x") is True
    assert "alice@x" in registry

    with open(registry.path) as f:
        text = f.read()
    assert json.loads(text) == {"alice@x": True}
    assert "\n  " in text


def test_add_existing_member_does_not_write(registry):
    registry.add("alice@x")
    with patch("trafficguard.ban_registry.atomic_write_json") as write:
        assert registry.add("alice@x") is False
    write.assert_not_called()


def test_discard(registry):
    registry.add("alice@x")
    registry.add("bob@x")
    assert registry.discard("alice@x") is True
    assert registry.discard("alice@x") is False
    assert registry.members() == ["bob@x"]

    with open(registry.path) as f:
        assert json.load(f) == {"bob@x": True}


def test_reload_round_trip(registry):
    for email in ("a", "b", "c"):
        registry.add(email)
    again = BanRegistry(registry.path).load()
    assert again.snapshot() == {"a": True, "b": True, "c": True}


def test_false_entries_survive_load_and_save(tmp_path):
    path = tmp_path / "ban.json"
    path.write_text(json.dumps({"a": True, "b": False}))
    reg = BanRegistry(str(path)).load()
    assert "a" in reg
    assert "b" not in reg
    assert reg.members() == ["a"]

    reg.save()
    again = BanRegistry(str(path)).load()
    assert again.snapshot() == {"a": True, "b": False}


def test_adding_a_false_entry_bans_it(tmp_path):
    path = tmp_path / "ban.json"
    path.write_text(json.dumps({"b": False}))
    reg = BanRegistry(str(path)).load()
    assert reg.add("b") is True
    with open(path) as f:
        assert json.load(f) == {"b": True}


def test_concurrent_adds_are_not_lost(registry):
    emails = [f"user{i}@x" for i in range(40)]
    threads = [threading.Thread(target=registry.add, args=(e,)) for e in emails]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    with open(registry.path) as f:
        on_disk = json.load(f)
    assert sorted(on_disk) == sorted(emails)
