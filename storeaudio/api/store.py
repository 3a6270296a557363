from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from storeaudio.api.deps import get_principal, require_roles
from storeaudio.db import get_db
from storeaudio.schemas.player import ActivateIn
from storeaudio.schemas.store import ActivePlaylistIn, StoreCreateIn, VolumeIn
from storeaudio.services import player, stores
from storeaudio.services.auth import ADMIN_ROLES, Principal
from storeaudio.services.payloads import store_payload
from storeaudio.services.realtime import hub
from storeaudio.services.relay import relay

router = APIRouter(prefix="/stores", tags=["stores"])

require_admin = require_roles(ADMIN_ROLES)


def _with_code(store) -> dict:
    return {**store_payload(store), "activationCode": store.activation_code}


@router.post("", status_code=201)
def create_store(payload: StoreCreateIn, principal: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    return _with_code(stores.create_store(db, principal.organization_id, payload))


@router.get("")
def list_stores(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return [store_payload(store) for store in stores.list_stores(db, principal.organization_id)]


@router.get("/online")
def online_stores(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    connected = hub.registry.connected_store_ids()
    return [
        {**store_payload(store), "connected": str(store.id) in connected}
        for store in stores.online_stores(db, principal.organization_id)
    ]


@router.post("/activate")
def activate(payload: ActivateIn, background: BackgroundTasks, db: Session = Depends(get_db)):
    result = player.activate(db, payload.activation_code)
    background.add_task(relay.revoke_devices, result["state"]["store"]["id"], result["deviceId"])
    return result


@router.get("/{store_id}")
def get_store(store_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    store = stores.get_store_for_org(db, store_id, principal.organization_id)
    if principal.role in ADMIN_ROLES:
        return _with_code(store)
    return store_payload(store)


@router.post("/{store_id}/activation-code")
def regenerate_code(store_id: str, principal: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    store = stores.regenerate_activation_code(db, principal.organization_id, store_id)
    return {"storeId": str(store.id), "activationCode": store.activation_code}


@router.put("/{store_id}/active-playlist")
def set_active_playlist(
    store_id: str,
    payload: ActivePlaylistIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    store = stores.set_active_playlist(db, principal.organization_id, store_id, payload.playlist_id)
    background.add_task(hub.notify_content_update, principal.organization_id, "schedule")
    return store_payload(store)


@router.put("/{store_id}/volume")
def set_volume(
    store_id: str,
    payload: VolumeIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    store = stores.set_volume(db, principal.organization_id, store_id, payload.volume)
    background.add_task(
        hub.emit_to_store,
        str(store.id),
        "command:volume",
        {"storeId": str(store.id), "volume": store.current_volume},
    )
    return store_payload(store)
