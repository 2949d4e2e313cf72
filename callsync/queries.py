from datetime import timezone

from dateutil import parser as dtparser

from .schemas import INT64_MAX, INT64_MIN, CallLogList, NumberHistory
from .store import CallLogFilter, RecordStore

def parse_millis(value: str | int | None) -> int | None:
    """Epoch milliseconds or an ISO-8601 timestamp (naive = UTC) -> epoch ms."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        ms = value
    elif value.strip().lstrip("-").isdigit():
        ms = int(value.strip())
    else:
        try:
            dt = dtparser.isoparse(value.strip())
        except (ValueError, OverflowError):
            raise ValueError(f"invalid date: {value!r}")
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        ms = int(dt.timestamp() * 1000)
    if not INT64_MIN <= ms <= INT64_MAX:
        raise ValueError(f"date out of range: {value!r}")
    return ms

def clamp_limit(limit: str | int | None, default: int, maximum: int) -> int:
    if limit is None or limit == "":
        return default
    try:
        n = int(limit)
    except (TypeError, ValueError):
        return default
    return max(1, min(maximum, n))

def build_filter(device_id: str | None = None, phone_number: str | None = None,
                 call_type: str | None = None, start_date: str | None = None,
                 end_date: str | None = None) -> CallLogFilter:
    return CallLogFilter(
        device_id=device_id or None,
        phone_number=phone_number or None,
        call_type=call_type or None,
        start_date=parse_millis(start_date),
        end_date=parse_millis(end_date),
    )

def list_call_logs(store: RecordStore, flt: CallLogFilter, limit: int) -> CallLogList:
    rows = store.get_call_logs(flt, limit)
    return CallLogList(call_logs=rows, count=len(rows))

def number_history(store: RecordStore, phone_number: str, limit: int) -> NumberHistory:
    rows = store.get_call_logs_by_number(phone_number, limit)
    return NumberHistory(phone_number=phone_number, call_logs=rows, count=len(rows))
