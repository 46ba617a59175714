import json
import threading

from trafficguard.usage_ledger import UsageLedger, key_for


def test_key_format():
    assert key_for("de-1", "alice@x", 12) == "de-1|alice@x|12"


def test_unseen_key_defaults_to_zero(ledger):
    assert ledger.get("de-1|nobody|1") == 0


def test_set_then_get(ledger):
    ledger.set("de-1|a|1", 500)
    ledger.set("de-1|a|1", 800)
    assert ledger.get("de-1|a|1") == 800
    assert len(ledger) == 1


def test_save_writes_full_map(ledger):
    ledger.set("de-1|a|1", 10)
    ledger.set("nl-2|a|1", 20)
    assert ledger.save() is True

    with open(ledger.path) as f:
        assert json.load(f) == {"de-1|a|1": 10, "nl-2|a|1": 20}


def test_reload_reproduces_saved_state(ledger):
    data = {"de-1|a|1": 0, "de-1|b|2": 1 << 40, "nl-2|ü@x|3": 17}
    ledger.restore(data)
    ledger.save()

    again = UsageLedger(ledger.path).load()
    assert again.snapshot() == data


def test_missing_file_starts_empty(tmp_path):
    ledger = UsageLedger(str(tmp_path / "nope.json")).load()
    assert ledger.snapshot() == {}


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "prev_usage.json"
    path.write_text("{not json")
    assert UsageLedger(str(path)).load().snapshot() == {}


def test_restore_drops_bad_totals(ledger):
    ledger.restore({"ok": 5, "neg": -1, "str": "12", "flag": True, "float": 1.5})
    assert ledger.snapshot() == {"ok": 5}


def test_save_failure_keeps_memory_state(tmp_path):
    # a directory in place of the file makes the final replace fail
    target = tmp_path / "prev_usage.json"
    target.mkdir()
    ledger = UsageLedger(str(target))
    ledger.set("k", 3)
    assert ledger.save() is False
    assert ledger.get("k") == 3


def test_save_without_path_is_noop():
    ledger = UsageLedger()
    ledger.set("k", 1)
    assert ledger.save() is False


def test_concurrent_saves_leave_a_valid_file(ledger):
    def worker(n):
        for i in range(20):
            ledger.set(f"srv{n}|user{i}|{i}", n * 1000 + i)
            ledger.save()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    with open(ledger.path) as f:
        on_disk = json.load(f)
    assert on_disk == ledger.snapshot()
    assert len(on_disk) == 8 * 20
    assert UsageLedger(ledger.path).load().snapshot() == on_disk
