import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import create_store, get_store
from .models import Device
from .queries import build_filter, clamp_limit, list_call_logs, number_history
from .schemas import (
    CallLogCreate, CallLogIn, CallLogList, DeviceList, DeviceRegister, HealthOut,
    Heartbeat, NumberHistory, Statistics, StatusResponse,
)
from .settings import Settings, settings as default_settings
from .stats import compute_statistics
from .store import RecordStore, StoreError
from .sync import create_call_log, now_millis, sync_call_logs
from .utils import add_cors

log = logging.getLogger("api")


def _store_failure(message: str, e: StoreError) -> HTTPException:
    log.exception("%s (%s)", message, e.operation)
    return HTTPException(status_code=500, detail=message)


def create_app(settings: Settings | None = None, store: RecordStore | None = None) -> FastAPI:
    cfg = settings or default_settings
    logging.basicConfig(level=cfg.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.init()
        log.info("store ready backend=%s", app.state.store.backend)
        yield
        app.state.store.close()

    app = FastAPI(title="Callsync API", version="0.1.0", lifespan=lifespan)
    app.state.settings = cfg
    app.state.store = store if store is not None else create_store(cfg)
    add_cors(app, cfg.cors_origins)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        """Malformed bodies and query params are 400s, not 422s."""
        detail = [{k: e[k] for k in ("loc", "msg", "type") if k in e} for e in exc.errors()]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": detail})

    # ---- devices ----

    @app.post("/api/devices/register", response_model=StatusResponse)
    def register_device(body: DeviceRegister, store: RecordStore = Depends(get_store)):
        now = now_millis()
        device = Device(
            device_id=body.device_id,
            device_name=body.device_name,
            phone_number=body.phone_number,
            registered_at=body.registered_at if body.registered_at is not None else now,
            last_heartbeat=now,
        )
        try:
            store.upsert_device(device)
        except StoreError as e:
            raise _store_failure("Failed to register device", e)
        return StatusResponse(success=True, message="Device registered successfully")

    @app.post("/api/devices/heartbeat", response_model=StatusResponse, response_model_exclude_none=True)
    def heartbeat(body: Heartbeat, store: RecordStore = Depends(get_store)):
        ts = body.timestamp if body.timestamp is not None else now_millis()
        try:
            found = store.touch_device(body.device_id, ts)
        except StoreError as e:
            raise _store_failure("Failed to update heartbeat", e)
        if not found:
            log.debug("heartbeat from unregistered device=%s", body.device_id)
        return StatusResponse(success=True)

    @app.get("/api/devices", response_model=DeviceList)
    def list_devices(store: RecordStore = Depends(get_store)):
        try:
            return DeviceList(devices=store.get_devices())
        except StoreError as e:
            raise _store_failure("Failed to fetch devices", e)

    # ---- call logs ----

    @app.post("/api/call-logs/sync", response_model=StatusResponse)
    def sync_logs(body: Any = Body(None), store: RecordStore = Depends(get_store)):
        if not isinstance(body, dict) or not isinstance(body.get("callLogs"), list):
            raise HTTPException(status_code=400, detail="Invalid call logs data")
        device_id = body.get("deviceId")
        if not isinstance(device_id, str) or not device_id:
            raise HTTPException(status_code=400, detail="deviceId is required")
        try:
            records = [CallLogIn.model_validate(r) for r in body["callLogs"]]
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid call logs data")
        try:
            count = sync_call_logs(store, device_id, records)
        except StoreError as e:
            raise _store_failure("Failed to sync call logs", e)
        return StatusResponse(success=True, message=f"Synced {count} call logs")

    @app.post("/api/call-logs", response_model=StatusResponse, status_code=201)
    def add_call_log(body: CallLogCreate, store: RecordStore = Depends(get_store)):
        try:
            c = create_call_log(store, body)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StoreError as e:
            raise _store_failure("Failed to save call log", e)
        return StatusResponse(success=True, message=f"Call log {c.id} saved")

    @app.get("/api/call-logs", response_model=CallLogList)
    def get_call_logs(
        request: Request,
        device_id: str | None = Query(None, alias="deviceId"),
        phone_number: str | None = Query(None, alias="phoneNumber"),
        call_type: str | None = Query(None, alias="callType"),
        start_date: str | None = Query(None, alias="startDate"),
        end_date: str | None = Query(None, alias="endDate"),
        limit: str | None = None,
        store: RecordStore = Depends(get_store),
    ):
        cfg: Settings = request.app.state.settings
        try:
            flt = build_filter(device_id, phone_number, call_type, start_date, end_date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            return list_call_logs(store, flt, clamp_limit(limit, cfg.default_limit, cfg.max_limit))
        except StoreError as e:
            raise _store_failure("Failed to fetch call logs", e)

    @app.get("/api/call-logs/number/{phone_number}", response_model=NumberHistory)
    def get_number_history(
        phone_number: str,
        request: Request,
        limit: str | None = None,
        store: RecordStore = Depends(get_store),
    ):
        cfg: Settings = request.app.state.settings
        try:
            return number_history(store, phone_number, clamp_limit(limit, cfg.default_limit, cfg.max_limit))
        except StoreError as e:
            raise _store_failure("Failed to fetch call logs", e)

    # ---- dashboard / admin ----

    @app.get("/api/statistics", response_model=Statistics)
    def statistics(store: RecordStore = Depends(get_store)):
        try:
            return compute_statistics(store)
        except StoreError as e:
            raise _store_failure("Failed to get statistics", e)

    @app.delete("/api/admin/clear-db", response_model=StatusResponse)
    def clear_db(store: RecordStore = Depends(get_store)):
        try:
            store.clear()
        except StoreError as e:
            raise _store_failure("Failed to clear database", e)
        log.warning("database cleared")
        return StatusResponse(success=True, message="Database cleared")

    @app.get("/api/health", response_model=HealthOut)
    def health(store: RecordStore = Depends(get_store)):
        ok = store.ping()
        return HealthOut(status="ok", backend=store.backend, store="connected" if ok else "unavailable")

    return app


app = create_app()
