from history import HistoryStore
from lifecycle import ProductStatus, Role
from models import HistoryEvent
from utils import GENESIS, compute_hash, verify_chain


def make_event(action, status=ProductStatus.HARVESTED, ts=100):
    return HistoryEvent(actor="alice", role=Role.FARMER, timestamp=ts, location="Farm A",
                        action=action, additional_info="", status=status)


def test_unknown_product_has_empty_history(db):
    assert HistoryStore(db).get(7) == []


def test_append_keeps_insertion_order_and_links(db):
    store = HistoryStore(db)
    first = store.append(7, make_event("one", ProductStatus.PLANTED, ts=100))
    second = store.append(7, make_event("two", ts=160))
    store.append(8, make_event("other", ProductStatus.PLANTED))

    events = store.get(7)
    assert [e.action for e in events] == ["one", "two"]
    assert [e.seq for e in events] == [1, 2]
    assert first.prev_hash == GENESIS
    assert second.prev_hash == first.hash
    assert second.hash == compute_hash(first.hash, second.payload(), 160)
    assert store.verify(7)
    assert [e.action for e in store.get(8)] == ["other"]


def test_earlier_entries_untouched_by_append(db):
    store = HistoryStore(db)
    first = store.append(7, make_event("one", ProductStatus.PLANTED))
    before = (first.seq, first.hash, first.action)
    store.append(7, make_event("two"))
    again = store.get(7)[0]
    assert (again.seq, again.hash, again.action) == before


def test_verify_chain_catches_broken_links():
    first = {"prev_hash": GENESIS, "payload": {"action": "Planted"}, "timestamp": 1}
    first["hash"] = compute_hash(GENESIS, first["payload"], 1)
    second = {"prev_hash": first["hash"], "payload": {"action": "Harvested"}, "timestamp": 2}
    second["hash"] = compute_hash(first["hash"], second["payload"], 2)

    assert verify_chain([])
    assert verify_chain([first, second])
    assert not verify_chain([second])
    assert not verify_chain([first, dict(second, timestamp=3)])
    assert not verify_chain([first, dict(second, prev_hash=GENESIS)])
