from typing import Optional
from sqlalchemy import BigInteger
from sqlmodel import SQLModel, Field

class Device(SQLModel, table=True):
    __tablename__ = "devices"

    device_id: str = Field(primary_key=True)
    device_name: Optional[str] = None
    phone_number: Optional[str] = None
    registered_at: Optional[int] = Field(default=None, sa_type=BigInteger, index=True)
    last_heartbeat: Optional[int] = Field(default=None, sa_type=BigInteger)

class CallLog(SQLModel, table=True):
    __tablename__ = "call_logs"

    id: str = Field(primary_key=True)
    # soft reference, devices may be registered after their logs arrive
    device_id: str = Field(index=True)
    phone_number: Optional[str] = Field(default=None, index=True)
    contact_name: Optional[str] = None
    call_type: Optional[str] = Field(default=None, index=True)
    call_date: Optional[int] = Field(default=None, sa_type=BigInteger, index=True)
    call_duration: Optional[int] = Field(default=None, sa_type=BigInteger)
    timestamp: Optional[int] = Field(default=None, sa_type=BigInteger)
