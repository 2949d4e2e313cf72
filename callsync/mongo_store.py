import logging
from typing import Any, Dict, List, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pydantic.alias_generators import to_camel

from .models import Device, CallLog
from .schemas import DeviceOut, CallLogOut, TypeCount, ContactCount
from .store import CallLogFilter, StoreError, dedupe_by_id

log = logging.getLogger("store.mongo")

_NO_ID = {"_id": 0}


def _doc(record) -> Dict[str, Any]:
    """SQLModel record -> camelCase document (every field present, nulls kept)."""
    return {to_camel(k): v for k, v in record.model_dump().items()}


class MongoRecordStore:
    """Record store over a MongoDB database (collections ``devices`` and ``call_logs``)."""

    backend = "mongo"

    def __init__(self, db: Database, client: MongoClient | None = None):
        self.db = db
        self.client = client
        self.devices = db["devices"]
        self.call_logs = db["call_logs"]

    @classmethod
    def from_uri(cls, uri: str, db_name: str, timeout_ms: int = 5000) -> "MongoRecordStore":
        client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        return cls(client[db_name], client)

    def _fail(self, operation: str, e: Exception) -> StoreError:
        log.error("%s failed: %s", operation, e)
        return StoreError(operation)

    def init(self) -> None:
        try:
            self.devices.create_index([("deviceId", ASCENDING)], unique=True)
            self.devices.create_index([("registeredAt", DESCENDING)])
            self.call_logs.create_index([("id", ASCENDING)], unique=True)
            self.call_logs.create_index([("deviceId", ASCENDING)])
            self.call_logs.create_index([("phoneNumber", ASCENDING)])
            self.call_logs.create_index([("callType", ASCENDING)])
            self.call_logs.create_index([("callDate", DESCENDING)])
        except PyMongoError as e:
            raise self._fail("init", e) from e

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    def ping(self) -> bool:
        try:
            self.db.command("ping")
            return True
        except PyMongoError:
            return False

    # ---- devices ----

    def upsert_device(self, device: Device) -> None:
        try:
            self.devices.replace_one({"deviceId": device.device_id}, _doc(device), upsert=True)
        except PyMongoError as e:
            raise self._fail("upsert_device", e) from e

    def touch_device(self, device_id: str, ts: int) -> bool:
        try:
            res = self.devices.update_one({"deviceId": device_id}, {"$set": {"lastHeartbeat": ts}})
        except PyMongoError as e:
            raise self._fail("touch_device", e) from e
        return res.matched_count > 0

    def get_devices(self) -> list[DeviceOut]:
        try:
            docs = list(self.devices.find({}, _NO_ID).sort("registeredAt", DESCENDING))
        except PyMongoError as e:
            raise self._fail("get_devices", e) from e
        return [DeviceOut.model_validate(d) for d in docs]

    # ---- call logs ----

    def upsert_call_log(self, call_log: CallLog) -> None:
        try:
            self.call_logs.replace_one({"id": call_log.id}, _doc(call_log), upsert=True)
        except PyMongoError as e:
            raise self._fail("upsert_call_log", e) from e

    def bulk_upsert_call_logs(self, logs: Sequence[CallLog]) -> int:
        # applied in order as independent replaces; readers may see a partial batch
        try:
            for c in dedupe_by_id(logs):
                self.call_logs.replace_one({"id": c.id}, _doc(c), upsert=True)
        except PyMongoError as e:
            raise self._fail("bulk_upsert_call_logs", e) from e
        return len(logs)

    def _find_joined(self, query: Dict[str, Any], limit: int, operation: str) -> list[CallLogOut]:
        try:
            docs = list(
                self.call_logs.find(query, _NO_ID).sort("callDate", DESCENDING).limit(limit)
            )
            ids = sorted({d["deviceId"] for d in docs if d.get("deviceId")})
            devices = {
                d["deviceId"]: d
                for d in self.devices.find({"deviceId": {"$in": ids}}, _NO_ID)
            } if ids else {}
        except PyMongoError as e:
            raise self._fail(operation, e) from e

        out: List[CallLogOut] = []
        for d in docs:
            dev = devices.get(d.get("deviceId")) or {}
            out.append(CallLogOut.model_validate({
                **d,
                "deviceName": dev.get("deviceName"),
                "devicePhoneNumber": dev.get("phoneNumber"),
            }))
        return out

    def get_call_logs(self, flt: CallLogFilter, limit: int) -> list[CallLogOut]:
        query: Dict[str, Any] = {}
        if flt.device_id:
            query["deviceId"] = flt.device_id
        if flt.phone_number:
            query["phoneNumber"] = flt.phone_number
        if flt.call_type:
            query["callType"] = flt.call_type
        if flt.start_date is not None or flt.end_date is not None:
            query["callDate"] = {}
            if flt.start_date is not None:
                query["callDate"]["$gte"] = flt.start_date
            if flt.end_date is not None:
                query["callDate"]["$lte"] = flt.end_date
        return self._find_joined(query, limit, "get_call_logs")

    def get_call_logs_by_number(self, phone_number: str, limit: int) -> list[CallLogOut]:
        return self._find_joined({"phoneNumber": phone_number}, limit, "get_call_logs_by_number")

    # ---- aggregates ----

    def count_devices(self) -> int:
        try:
            return self.devices.count_documents({})
        except PyMongoError as e:
            raise self._fail("count_devices", e) from e

    def count_call_logs(self) -> int:
        try:
            return self.call_logs.count_documents({})
        except PyMongoError as e:
            raise self._fail("count_call_logs", e) from e

    def group_calls_by_type(self) -> list[TypeCount]:
        pipeline = [
            {"$group": {"_id": "$callType", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        try:
            rows = list(self.call_logs.aggregate(pipeline))
        except PyMongoError as e:
            raise self._fail("group_calls_by_type", e) from e
        return [TypeCount(call_type=r["_id"], count=r["count"]) for r in rows]

    def top_contacts(self, n: int) -> list[ContactCount]:
        pipeline = [
            {"$group": {
                "_id": "$phoneNumber",
                "contactName": {"$first": "$contactName"},
                "count": {"$sum": 1},
            }},
            {"$sort": {"count": -1}},
            {"$limit": n},
        ]
        try:
            rows = list(self.call_logs.aggregate(pipeline))
        except PyMongoError as e:
            raise self._fail("top_contacts", e) from e
        return [
            ContactCount(phone_number=r["_id"], contact_name=r.get("contactName"), count=r["count"])
            for r in rows
        ]

    def clear(self) -> None:
        try:
            self.call_logs.delete_many({})
            self.devices.delete_many({})
        except PyMongoError as e:
            raise self._fail("clear", e) from e
