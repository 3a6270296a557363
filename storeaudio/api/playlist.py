from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from storeaudio.api.deps import get_principal, require_roles
from storeaudio.db import get_db
from storeaudio.schemas.playlist import PlaylistCreateIn, TrackIn
from storeaudio.services import content
from storeaudio.services.auth import MANAGER_ROLES, Principal
from storeaudio.services.payloads import playlist_payload, track_payload
from storeaudio.services.realtime import hub
from storeaudio.services.stores import get_playlist_for_org

router = APIRouter(prefix="/playlists", tags=["playlists"])

require_manager = require_roles(MANAGER_ROLES)


@router.post("", status_code=201)
def create_playlist(
    payload: PlaylistCreateIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    playlist = content.create_playlist(db, principal.organization_id, payload)
    background.add_task(hub.notify_content_update, principal.organization_id, "playlist")
    return playlist_payload(db, playlist)


@router.get("")
def list_playlists(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return [playlist_payload(db, playlist) for playlist in content.list_playlists(db, principal.organization_id)]


@router.get("/{playlist_id}")
def get_playlist(playlist_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return playlist_payload(db, get_playlist_for_org(db, playlist_id, principal.organization_id))


@router.post("/{playlist_id}/tracks", status_code=201)
def add_track(
    playlist_id: str,
    payload: TrackIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    track = content.add_track(db, principal.organization_id, playlist_id, payload)
    background.add_task(hub.notify_content_update, principal.organization_id, "playlist")
    return track_payload(track)


@router.delete("/{playlist_id}")
def delete_playlist(
    playlist_id: str,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    content.delete_playlist(db, principal.organization_id, playlist_id)
    background.add_task(hub.notify_content_update, principal.organization_id, "playlist")
    return {"ok": True}
