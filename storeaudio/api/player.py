from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from storeaudio.api.deps import device_id_header
from storeaudio.db import get_db
from storeaudio.schemas.player import AnnouncementEventIn, HeartbeatIn, SyncStateIn, TrackEventIn
from storeaudio.services import player
from storeaudio.services.realtime import hub
from storeaudio.services.snapshot import build_offline_content

router = APIRouter(prefix="/player", tags=["player"])


@router.get("/{store_id}/state")
def get_state(store_id: str, device_id: str = Depends(device_id_header), db: Session = Depends(get_db)):
    return player.get_player_state(db, store_id, device_id)


@router.post("/heartbeat")
def heartbeat(payload: HeartbeatIn, background: BackgroundTasks, db: Session = Depends(get_db)):
    store, ack = player.heartbeat(db, payload)
    report = payload.model_dump(by_alias=True, exclude={"device_id"}, exclude_none=True)
    background.add_task(
        hub.emit_to_organization,
        str(store.organization_id),
        "store:status",
        player.status_event(store, report),
    )
    return ack


@router.post("/{store_id}/offline")
def go_offline(
    store_id: str,
    background: BackgroundTasks,
    device_id: str = Depends(device_id_header),
    db: Session = Depends(get_db),
):
    store, ack = player.go_offline(db, store_id, device_id)
    background.add_task(
        hub.emit_to_organization,
        str(store.organization_id),
        "store:offline",
        {"storeId": str(store.id)},
    )
    return ack


@router.post("/{store_id}/track/start")
def track_start(
    store_id: str,
    payload: TrackEventIn,
    device_id: str = Depends(device_id_header),
    db: Session = Depends(get_db),
):
    return player.track_started(db, store_id, device_id, payload.track_id)


@router.post("/{store_id}/track/end")
def track_end(
    store_id: str,
    payload: TrackEventIn,
    device_id: str = Depends(device_id_header),
    db: Session = Depends(get_db),
):
    return player.track_ended(db, store_id, device_id, payload.track_id, skipped=payload.skipped)


@router.post("/{store_id}/announcement/played")
def announcement_played(
    store_id: str,
    payload: AnnouncementEventIn,
    device_id: str = Depends(device_id_header),
    db: Session = Depends(get_db),
):
    return player.announcement_played(db, store_id, device_id, payload.announcement_id)


@router.get("/{store_id}/offline-content")
def offline_content(store_id: str, device_id: str = Depends(device_id_header), db: Session = Depends(get_db)):
    return build_offline_content(db, store_id, device_id)


@router.post("/{store_id}/sync")
def sync(
    store_id: str,
    payload: SyncStateIn,
    device_id: str = Depends(device_id_header),
    db: Session = Depends(get_db),
):
    return player.sync_state(db, store_id, device_id, payload.state)
