"""
Record store contract shared by the relational and document backends.

Both backends persist devices and call logs with full-replace upsert semantics
and read call logs through a left outer join on ``device_id``. Driver errors
never leak out of a store: they are re-raised as :class:`StoreError`.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .models import Device, CallLog
from .schemas import DeviceOut, CallLogOut, TypeCount, ContactCount


class StoreError(Exception):
    """A storage operation failed (connectivity, constraint, driver error)."""

    def __init__(self, operation: str):
        super().__init__(f"store operation failed: {operation}")
        self.operation = operation


@dataclass
class CallLogFilter:
    device_id: Optional[str] = None
    phone_number: Optional[str] = None
    call_type: Optional[str] = None
    start_date: Optional[int] = None  # inclusive, epoch ms
    end_date: Optional[int] = None    # inclusive, epoch ms


def dedupe_by_id(logs: Sequence[CallLog]) -> list[CallLog]:
    """Collapse repeated ids inside one batch, the last occurrence wins."""
    latest: dict[str, CallLog] = {}
    for log in logs:
        latest.pop(log.id, None)
        latest[log.id] = log
    return list(latest.values())


class RecordStore(Protocol):
    backend: str

    def init(self) -> None: ...
    def close(self) -> None: ...
    def ping(self) -> bool: ...

    def upsert_device(self, device: Device) -> None: ...
    def touch_device(self, device_id: str, ts: int) -> bool: ...
    def get_devices(self) -> list[DeviceOut]: ...

    def upsert_call_log(self, log: CallLog) -> None: ...
    def bulk_upsert_call_logs(self, logs: Sequence[CallLog]) -> int: ...
    def get_call_logs(self, flt: CallLogFilter, limit: int) -> list[CallLogOut]: ...
    def get_call_logs_by_number(self, phone_number: str, limit: int) -> list[CallLogOut]: ...

    def count_devices(self) -> int: ...
    def count_call_logs(self) -> int: ...
    def group_calls_by_type(self) -> list[TypeCount]: ...
    def top_contacts(self, n: int) -> list[ContactCount]: ...

    def clear(self) -> None: ...
