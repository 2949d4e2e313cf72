from .schemas import Statistics
from .store import RecordStore

TOP_CONTACTS = 10

def compute_statistics(store: RecordStore) -> Statistics:
    """Dashboard summary over every stored call log (no filters)."""
    return Statistics(
        total_devices=store.count_devices(),
        total_call_logs=store.count_call_logs(),
        calls_by_type=store.group_calls_by_type(),
        top_contacts=store.top_contacts(TOP_CONTACTS),
    )
