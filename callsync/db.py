from fastapi import Request

from .settings import Settings
from .store import RecordStore
from .sql_store import SQLRecordStore
from .mongo_store import MongoRecordStore

def create_store(cfg: Settings) -> RecordStore:
    if cfg.storage_backend == "mongo":
        return MongoRecordStore.from_uri(cfg.mongo_uri, cfg.mongo_db, cfg.mongo_timeout_ms)
    if cfg.storage_backend == "sql":
        return SQLRecordStore.from_url(cfg.database_url)
    raise ValueError(f"unknown STORAGE_BACKEND {cfg.storage_backend!r} (expected sql or mongo)")

def get_store(request: Request) -> RecordStore:
    # 👇 set once in create_app, shared by every request
    return request.app.state.store
