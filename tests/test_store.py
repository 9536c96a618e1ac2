import json
import threading

import pytest

from core.data import load_seed_visits
from core.store import InMemoryBlobStore, JsonFileBlobStore, VisitStore
from core.visit_form import VisitForm
from core.visits import VisitNotFoundError


def test_load_falls_back_to_seed_when_key_unset(june_visits):
    store = VisitStore(InMemoryBlobStore(), seed=june_visits)
    assert len(store.load()) == 8


def test_load_prefers_stored_collection(june_visits):
    blob = InMemoryBlobStore({"dpc_visits": json.dumps([june_visits[0].to_dict()])})
    store = VisitStore(blob, seed=june_visits)
    assert [v.id for v in store.load()] == [june_visits[0].id]


def test_unreadable_blob_uses_seed(june_visits):
    store = VisitStore(InMemoryBlobStore({"dpc_visits": "{not json"}), seed=june_visits)
    assert len(store.load()) == 8


def test_every_mutation_rewrites_full_collection(june_visits, make_visit):
    blob = InMemoryBlobStore()
    store = VisitStore(blob, seed=june_visits)
    store.load()

    store.add(make_visit(visit_date="2025-06-20"))
    assert len(json.loads(blob.get("dpc_visits"))) == 9

    target = store.all()[0]
    store.delete(target.id)
    saved = json.loads(blob.get("dpc_visits"))
    assert len(saved) == 8
    assert target.id not in {v["id"] for v in saved}


def test_upsert_and_missing_ids(june_visits, make_visit):
    store = VisitStore(InMemoryBlobStore(), seed=june_visits)
    store.load()
    edited = store.all()[0]
    edited.transportation = "follow-up booked"
    assert store.upsert(edited) == "updated"
    assert store.upsert(make_visit()) == "added"
    assert store.get(edited.id).transportation == "follow-up booked"

    with pytest.raises(VisitNotFoundError):
        store.delete(-1)
    with pytest.raises(VisitNotFoundError):
        store.update(make_visit())


def test_json_file_store_round_trip(tmp_path, june_visits):
    store = VisitStore(JsonFileBlobStore(tmp_path), key="visits_test", seed=june_visits)
    store.load()
    store.delete(store.all()[0].id)

    reopened = VisitStore(JsonFileBlobStore(tmp_path), key="visits_test", seed=june_visits)
    assert len(reopened.load()) == 7
    assert (tmp_path / "visits_test.json").exists()


def test_seed_file_loads():
    visits = load_seed_visits()
    assert visits
    assert visits[0].dpc == "Salamone, D"


def test_visits_created_back_to_back_get_distinct_ids(june_visits, rep, today):
    store = VisitStore(InMemoryBlobStore(), seed=june_visits)
    store.load()
    first = VisitForm.new(rep, "2025-06-17", today=today).submit().visit
    second = VisitForm.new(rep, "2025-06-18", today=today).submit().visit
    second.id = first.id

    store.add(first)
    store.add(second)
    assert first.id != second.id
    assert len(store.all()) == 10

    store.delete(first.id)
    remaining = {v.id for v in store.all()}
    assert len(remaining) == 9
    assert second.id in remaining
    assert len(json.loads(store.blob_store.get("dpc_visits"))) == 9


def test_concurrent_writes_are_not_lost(june_visits, make_visit):
    store = VisitStore(InMemoryBlobStore(), seed=june_visits)
    store.load()
    doomed = [v.id for v in store.all()[:4]]
    new_visits = [make_visit(visit_date="2025-06-20") for _ in range(20)]

    threads = [threading.Thread(target=store.add, args=(v,)) for v in new_visits]
    threads += [threading.Thread(target=store.delete, args=(i,)) for i in doomed]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ids = {v.id for v in store.all()}
    assert {v.id for v in new_visits} <= ids
    assert not ids & set(doomed)
    assert len(json.loads(store.blob_store.get("dpc_visits"))) == 8 - 4 + 20
