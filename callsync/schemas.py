from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

INT64_MIN = -2**63
INT64_MAX = 2**63 - 1

# epoch ms and durations must fit a BIGINT / BSON int64 column
Int64 = Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]

class CamelModel(BaseModel):
    """Snake-case fields, camelCase on the wire."""
    # android hands out numeric row ids and phone numbers; store them as text
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              coerce_numbers_to_str=True)

# ---- requests ----

class DeviceRegister(CamelModel):
    device_id: str
    device_name: str | None = None
    phone_number: str | None = None
    registered_at: Int64 | None = None

class Heartbeat(CamelModel):
    device_id: str
    timestamp: Int64 | None = None

class CallLogIn(CamelModel):
    id: str | None = None
    device_id: str | None = None
    phone_number: str | None = None
    contact_name: str | None = None
    call_type: str | None = None
    call_date: Int64 | None = None
    call_duration: Int64 | None = None
    timestamp: Int64 | None = None

class CallLogCreate(CallLogIn):
    device_id: str

# ---- responses ----

class StatusResponse(CamelModel):
    success: bool
    message: str | None = None

class DeviceOut(CamelModel):
    device_id: str
    device_name: str | None = None
    phone_number: str | None = None
    registered_at: int | None = None
    last_heartbeat: int | None = None

class DeviceList(CamelModel):
    devices: list[DeviceOut]

class CallLogOut(CamelModel):
    id: str
    device_id: str
    phone_number: str | None = None
    contact_name: str | None = None
    call_type: str | None = None
    call_date: int | None = None
    call_duration: int | None = None
    timestamp: int | None = None
    # joined from the device, null when the device is unknown
    device_name: str | None = None
    device_phone_number: str | None = None

class CallLogList(CamelModel):
    call_logs: list[CallLogOut]
    count: int

class NumberHistory(CamelModel):
    phone_number: str
    call_logs: list[CallLogOut]
    count: int

class TypeCount(CamelModel):
    call_type: str | None = None
    count: int

class ContactCount(CamelModel):
    phone_number: str | None = None
    contact_name: str | None = None
    count: int

class Statistics(CamelModel):
    total_devices: int
    total_call_logs: int
    calls_by_type: list[TypeCount]
    top_contacts: list[ContactCount]

class HealthOut(CamelModel):
    status: str
    backend: str
    store: str
