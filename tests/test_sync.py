"""Tests for call-log batch preparation and sync."""
from unittest.mock import MagicMock

import pytest

from callsync.schemas import CallLogIn
from callsync.store import CallLogFilter
from callsync.sync import create_call_log, new_call_log_id, prepare_call_log, sync_call_logs


class TestPrepareCallLog:

    def test_keeps_client_id(self):
        c = prepare_call_log("A1", CallLogIn(id="log-1", call_date=5))
        assert c.id == "log-1"

    def test_synthesizes_missing_id(self):
        c = prepare_call_log("A1", CallLogIn(phone_number="555"))
        assert c.id
        assert len(c.id) == 36

    def test_device_id_comes_from_batch(self):
        c = prepare_call_log("A1", CallLogIn(device_id="OTHER", phone_number="555"))
        assert c.device_id == "A1"

    def test_missing_timestamp_defaults_to_now(self):
        c = prepare_call_log("A1", CallLogIn(), now=1234)
        assert c.timestamp == 1234

    def test_present_timestamp_is_kept(self):
        c = prepare_call_log("A1", CallLogIn(timestamp=99), now=1234)
        assert c.timestamp == 99

    def test_missing_contact_name_stays_null(self):
        c = prepare_call_log("A1", CallLogIn(phone_number="555"))
        assert c.contact_name is None


def test_new_ids_do_not_collide():
    ids = {new_call_log_id() for _ in range(5000)}
    assert len(ids) == 5000


def test_sync_passes_prepared_batch_to_store():
    store = MagicMock()
    store.bulk_upsert_call_logs.side_effect = lambda logs: len(logs)

    n = sync_call_logs(store, "A1", [CallLogIn(phone_number="1"), CallLogIn(phone_number="2")])

    assert n == 2
    (logs,), _ = store.bulk_upsert_call_logs.call_args
    assert [c.phone_number for c in logs] == ["1", "2"]
    assert all(c.device_id == "A1" for c in logs)
    assert logs[0].id != logs[1].id
    assert logs[0].timestamp == logs[1].timestamp


def test_sync_of_unlabeled_batch_stores_distinct_records(store):
    records = [CallLogIn(phone_number="555", call_date=i) for i in range(25)]

    assert sync_call_logs(store, "A1", records) == 25

    rows = store.get_call_logs(CallLogFilter(), 100)
    assert len(rows) == 25
    assert len({r.id for r in rows}) == 25


def test_rapid_batches_do_not_overwrite_each_other(store):
    for _ in range(3):
        sync_call_logs(store, "A1", [CallLogIn(phone_number="555", call_date=1)])
    assert store.count_call_logs() == 3


def test_empty_batch_syncs_nothing(store):
    assert sync_call_logs(store, "A1", []) == 0
    assert store.count_call_logs() == 0


def test_resync_same_id_replaces_record(store):
    sync_call_logs(store, "A1", [CallLogIn(id="x", phone_number="555", contact_name="Ann", call_date=1)])
    sync_call_logs(store, "A1", [CallLogIn(id="x", phone_number="777", call_date=2)])

    rows = store.get_call_logs(CallLogFilter(), 100)
    assert len(rows) == 1
    assert rows[0].phone_number == "777"
    assert rows[0].contact_name is None
    assert rows[0].call_date == 2


def test_create_call_log_requires_device():
    with pytest.raises(ValueError):
        create_call_log(MagicMock(), CallLogIn(phone_number="555"))


def test_create_call_log_upserts_single_record(store):
    c = create_call_log(store, CallLogIn(device_id="A1", phone_number="555", call_date=7))
    rows = store.get_call_logs(CallLogFilter(device_id="A1"), 10)
    assert [r.id for r in rows] == [c.id]
