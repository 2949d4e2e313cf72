"""
Call-log batch sync.

A device uploads its call history in batches. Each record is stamped with the
batch's device id, given a server identity if it has none, defaulted to the
server clock when it carries no ``timestamp``, then upserted by ``id``.
Re-sending a record with the same id replaces it entirely.
"""
import logging
import time
import uuid
from typing import Iterable

from .models import CallLog
from .schemas import CallLogIn
from .store import RecordStore

log = logging.getLogger("sync")


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def new_call_log_id() -> str:
    return str(uuid.uuid4())


def prepare_call_log(device_id: str, rec: CallLogIn, now: int | None = None) -> CallLog:
    """Build the stored record; ``device_id`` always comes from the batch, not the record."""
    return CallLog(
        id=rec.id or new_call_log_id(),
        device_id=device_id,
        phone_number=rec.phone_number,
        contact_name=rec.contact_name,
        call_type=rec.call_type,
        call_date=rec.call_date,
        call_duration=rec.call_duration,
        timestamp=rec.timestamp if rec.timestamp is not None else (now if now is not None else now_millis()),
    )


def sync_call_logs(store: RecordStore, device_id: str, records: Iterable[CallLogIn]) -> int:
    now = now_millis()
    logs = [prepare_call_log(device_id, r, now) for r in records]
    count = store.bulk_upsert_call_logs(logs)
    log.info("synced %d call logs for device=%s", count, device_id)
    return count


def create_call_log(store: RecordStore, rec: CallLogIn) -> CallLog:
    """Single-record ingest; the record names its own device."""
    if not rec.device_id:
        raise ValueError("deviceId is required")
    c = prepare_call_log(rec.device_id, rec)
    store.upsert_call_log(c)
    return c
