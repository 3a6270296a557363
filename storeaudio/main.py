import asyncio
import json
import logging
import os
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeaudio.api import analytics, announcement, player, playlist, schedule, store
from storeaudio.db import Base, SessionLocal, engine
from storeaudio.errors import StoreAudioError
from storeaudio.services import presence
from storeaudio.services.presence import STALE_AFTER_SEC
from storeaudio.services.realtime import hub
from storeaudio.services.relay import relay

Base.metadata.create_all(bind=engine)

LOG_LEVEL = os.getenv("STOREAUDIO_LOG_LEVEL", "INFO").strip().upper() or "INFO"
STATUS_SWEEP_SEC = int(os.getenv("STOREAUDIO_STATUS_SWEEP_SEC", "15"))
QUIET_ACCESS_LOG = os.getenv("STOREAUDIO_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}
_status_task: asyncio.Task | None = None

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("storeaudio")

if QUIET_ACCESS_LOG:
    # Players heartbeat every few seconds; keep warnings, drop the 200s.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.protocols.websockets").setLevel(logging.CRITICAL)


async def _store_status_watcher() -> None:
    while True:
        await asyncio.sleep(STATUS_SWEEP_SEC)
        swept: list[tuple[str, str]] = []
        db = SessionLocal()
        try:
            stores = presence.sweep_stale_stores(db, hub.registry.connected_store_ids())
            swept = [(str(s.organization_id), str(s.id)) for s in stores]
        except Exception:
            # Fail open: a broken sweep leaves stores online rather than flapping them.
            logger.exception("Staleness sweep failed")
            db.rollback()
        finally:
            db.close()

        for organization_id, store_id in swept:
            await hub.emit_to_organization(
                organization_id,
                "store:offline",
                {"storeId": store_id, "reason": "stale", "staleAfterSec": STALE_AFTER_SEC},
            )


app = FastAPI(title="storeaudio")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreAudioError)
async def storeaudio_error_handler(request: Request, exc: StoreAudioError):
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse({"detail": message}, status_code=400)


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "storeaudio",
        "timeUtc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }


@app.get("/healthz")
def healthz():
    return {"ok": True, "connections": hub.registry.stats(), "staleAfterSec": STALE_AFTER_SEC}


@app.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
    await websocket.accept()
    socket_id = uuid.uuid4().hex

    db = SessionLocal()
    try:
        client = relay.classify(db, socket_id, websocket.query_params)
        if client is None:
            await websocket.close(code=4401)
            return
        await relay.connect(db, websocket, client)
    finally:
        db.close()

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await hub.send(socket_id, "error", {"message": "Messages must be JSON objects"})
                continue
            if not isinstance(message, dict) or not isinstance(message.get("event"), str):
                await hub.send(socket_id, "error", {"message": "Messages need an event name"})
                continue

            db = SessionLocal()
            try:
                await relay.dispatch(db, client, message["event"], message.get("data"))
            except Exception:
                db.rollback()
                logger.exception("Failed to handle %s from %s", message["event"], socket_id)
                await hub.send(socket_id, "error", {"event": message["event"], "message": "Internal error"})
            finally:
                db.close()
    except WebSocketDisconnect:
        pass
    finally:
        db = SessionLocal()
        try:
            await relay.disconnect(db, socket_id)
        finally:
            db.close()


@app.on_event("startup")
async def startup_events() -> None:
    global _status_task
    if _status_task is None or _status_task.done():
        _status_task = asyncio.create_task(_store_status_watcher())


@app.on_event("shutdown")
async def shutdown_events() -> None:
    global _status_task
    if _status_task is not None:
        _status_task.cancel()
        try:
            await _status_task
        except asyncio.CancelledError:
            pass
        _status_task = None


app.include_router(store.router)
app.include_router(player.router)
app.include_router(schedule.router)
app.include_router(playlist.router)
app.include_router(announcement.router)
app.include_router(analytics.router)
