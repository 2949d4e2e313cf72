import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

from sqlalchemy import delete, func, text, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from .models import Device, CallLog
from .schemas import DeviceOut, CallLogOut, TypeCount, ContactCount
from .store import CallLogFilter, StoreError, dedupe_by_id

log = logging.getLogger("store.sql")


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # one shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def _log_out(row) -> CallLogOut:
    c, device_name, device_phone = row
    return CallLogOut(
        id=c.id, device_id=c.device_id, phone_number=c.phone_number,
        contact_name=c.contact_name, call_type=c.call_type, call_date=c.call_date,
        call_duration=c.call_duration, timestamp=c.timestamp,
        device_name=device_name, device_phone_number=device_phone,
    )


class SQLRecordStore:
    """Record store over SQLModel; SQLite by default, any SQLAlchemy URL works."""

    backend = "sql"

    def __init__(self, engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SQLRecordStore":
        return cls(make_engine(database_url))

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            log.error("%s failed: %s", operation, e)
            raise StoreError(operation) from e
        finally:
            session.close()

    def init(self) -> None:
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError("init") from e

    def close(self) -> None:
        self.engine.dispose()

    def ping(self) -> bool:
        try:
            with self._session("ping") as s:
                s.execute(text("SELECT 1"))
            return True
        except StoreError:
            return False

    def _upsert(self, session: Session, model, records: Sequence[SQLModel]) -> None:
        """Single-statement insert-or-replace keyed on the primary key.

        Every non-key column is overwritten from the incoming row, so the stored
        record is replaced wholesale and the last statement the database applies wins.
        """
        table = model.__table__
        rows = [r.model_dump() for r in records]
        keys = [c.name for c in table.primary_key.columns]
        values = [c.name for c in table.columns if not c.primary_key]
        dialect = self.engine.dialect.name
        if dialect in ("sqlite", "postgresql"):
            stmt = (sqlite_insert if dialect == "sqlite" else pg_insert)(table)
            stmt = stmt.on_conflict_do_update(
                index_elements=keys, set_={c: stmt.excluded[c] for c in values}
            )
        elif dialect in ("mysql", "mariadb"):
            stmt = mysql_insert(table)
            stmt = stmt.on_duplicate_key_update({c: stmt.inserted[c] for c in values})
        else:
            raise StoreError(f"upsert unsupported on {dialect}")
        session.execute(stmt, rows)

    # ---- devices ----

    def upsert_device(self, device: Device) -> None:
        with self._session("upsert_device") as s:
            self._upsert(s, Device, [device])

    def touch_device(self, device_id: str, ts: int) -> bool:
        stmt = update(Device).where(Device.device_id == device_id).values(last_heartbeat=ts)
        with self._session("touch_device") as s:
            return s.execute(stmt).rowcount > 0

    def get_devices(self) -> list[DeviceOut]:
        with self._session("get_devices") as s:
            rows = s.exec(select(Device).order_by(Device.registered_at.desc())).all()
            return [DeviceOut(**r.model_dump()) for r in rows]

    # ---- call logs ----

    def upsert_call_log(self, call_log: CallLog) -> None:
        with self._session("upsert_call_log") as s:
            self._upsert(s, CallLog, [call_log])

    def bulk_upsert_call_logs(self, logs: Sequence[CallLog]) -> int:
        if not logs:
            return 0
        with self._session("bulk_upsert_call_logs") as s:
            # a repeated id resolves to its last occurrence in the batch
            self._upsert(s, CallLog, dedupe_by_id(logs))
        return len(logs)

    def _joined(self):
        return (
            select(CallLog, Device.device_name, Device.phone_number)
            .select_from(CallLog)
            .outerjoin(Device, CallLog.device_id == Device.device_id)
        )

    def get_call_logs(self, flt: CallLogFilter, limit: int) -> list[CallLogOut]:
        stmt = self._joined()
        if flt.device_id:
            stmt = stmt.where(CallLog.device_id == flt.device_id)
        if flt.phone_number:
            stmt = stmt.where(CallLog.phone_number == flt.phone_number)
        if flt.call_type:
            stmt = stmt.where(CallLog.call_type == flt.call_type)
        if flt.start_date is not None:
            stmt = stmt.where(CallLog.call_date >= flt.start_date)
        if flt.end_date is not None:
            stmt = stmt.where(CallLog.call_date <= flt.end_date)
        stmt = stmt.order_by(CallLog.call_date.desc()).limit(limit)
        with self._session("get_call_logs") as s:
            return [_log_out(r) for r in s.exec(stmt).all()]

    def get_call_logs_by_number(self, phone_number: str, limit: int) -> list[CallLogOut]:
        stmt = (
            self._joined()
            .where(CallLog.phone_number == phone_number)
            .order_by(CallLog.call_date.desc())
            .limit(limit)
        )
        with self._session("get_call_logs_by_number") as s:
            return [_log_out(r) for r in s.exec(stmt).all()]

    # ---- aggregates ----

    def count_devices(self) -> int:
        with self._session("count_devices") as s:
            return s.exec(select(func.count()).select_from(Device)).one()

    def count_call_logs(self) -> int:
        with self._session("count_call_logs") as s:
            return s.exec(select(func.count()).select_from(CallLog)).one()

    def group_calls_by_type(self) -> list[TypeCount]:
        n = func.count(CallLog.id).label("count")
        stmt = select(CallLog.call_type, n).group_by(CallLog.call_type).order_by(n.desc())
        with self._session("group_calls_by_type") as s:
            return [TypeCount(call_type=t, count=c) for t, c in s.exec(stmt).all()]

    def top_contacts(self, n: int) -> list[ContactCount]:
        cnt = func.count(CallLog.id).label("count")
        stmt = (
            select(CallLog.phone_number, func.max(CallLog.contact_name), cnt)
            .group_by(CallLog.phone_number)
            .order_by(cnt.desc())
            .limit(n)
        )
        with self._session("top_contacts") as s:
            return [
                ContactCount(phone_number=p, contact_name=name, count=c)
                for p, name, c in s.exec(stmt).all()
            ]

    def clear(self) -> None:
        with self._session("clear") as s:
            s.execute(delete(CallLog))
            s.execute(delete(Device))
