from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from storeaudio.api.deps import get_principal, require_roles
from storeaudio.db import get_db
from storeaudio.schemas.announcement import AnnouncementCreateIn, CartwallIn
from storeaudio.services import content
from storeaudio.services.auth import MANAGER_ROLES, Principal
from storeaudio.services.payloads import announcement_payload
from storeaudio.services.realtime import hub

router = APIRouter(prefix="/announcements", tags=["announcements"])

require_manager = require_roles(MANAGER_ROLES)


@router.post("", status_code=201)
def create_announcement(
    payload: AnnouncementCreateIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    announcement = content.create_announcement(db, principal.organization_id, payload)
    background.add_task(hub.notify_content_update, principal.organization_id, "announcement")
    return announcement_payload(announcement)


@router.get("")
def list_announcements(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return [announcement_payload(a) for a in content.list_announcements(db, principal.organization_id)]


@router.post("/cartwall")
def set_cartwall_item(
    payload: CartwallIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    item = content.set_cartwall_item(db, principal.organization_id, payload)
    background.add_task(hub.notify_content_update, principal.organization_id, "announcement")
    return {
        "id": str(item.id),
        "storeId": str(item.store_id),
        "announcementId": str(item.announcement_id),
        "position": item.position,
    }


@router.get("/cartwall/{store_id}")
def get_cartwall(store_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return content.cartwall(db, principal.organization_id, store_id)


@router.delete("/cartwall/{store_id}/{position}")
def remove_cartwall_item(
    store_id: str,
    position: int,
    background: BackgroundTasks,
    principal: Principal = Depends(require_manager),
    db: Session = Depends(get_db),
):
    content.remove_cartwall_item(db, principal.organization_id, store_id, position)
    background.add_task(hub.notify_content_update, principal.organization_id, "announcement")
    return {"ok": True}
