from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from storeaudio.api.deps import get_principal, require_roles
from storeaudio.db import get_db
from storeaudio.schemas.schedule import BulkCreateIn, CopyScheduleIn, ScheduleRuleIn, ScheduleRuleUpdate
from storeaudio.services import scheduler
from storeaudio.services.auth import ADMIN_ROLES, Principal
from storeaudio.services.payloads import playlist_payload, rule_payload
from storeaudio.services.realtime import hub
from storeaudio.services.stores import get_store_for_org

router = APIRouter(prefix="/schedules", tags=["schedules"])

require_admin = require_roles(ADMIN_ROLES)


def _notify(background: BackgroundTasks, principal: Principal) -> None:
    background.add_task(hub.notify_content_update, principal.organization_id, "schedule")


@router.post("", status_code=201)
def create_rule(
    payload: ScheduleRuleIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rule = scheduler.create_rule(db, principal.organization_id, payload)
    _notify(background, principal)
    return rule_payload(rule)


@router.post("/bulk", status_code=201)
def bulk_create(
    payload: BulkCreateIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rules = scheduler.bulk_create(db, principal.organization_id, payload)
    _notify(background, principal)
    return {"created": len(rules), "rules": [rule_payload(rule) for rule in rules]}


@router.post("/copy")
def copy_schedule(
    payload: CopyScheduleIn,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rules = scheduler.copy_schedule(db, principal.organization_id, payload)
    _notify(background, principal)
    return {"copied": len(rules), "rules": [rule_payload(rule) for rule in rules]}


@router.get("/store/{store_id}")
def list_rules(store_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return [rule_payload(rule) for rule in scheduler.list_rules(db, principal.organization_id, store_id)]


@router.get("/store/{store_id}/weekly")
def weekly(store_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return scheduler.weekly_overview(db, principal.organization_id, store_id)


@router.get("/store/{store_id}/now")
def now_playing(
    store_id: str,
    at: datetime | None = None,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    store = get_store_for_org(db, store_id, principal.organization_id)
    rule, playlist = scheduler.resolve(db, store, at)
    return {
        "storeId": str(store.id),
        "rule": rule_payload(rule) if rule else None,
        "playlist": playlist_payload(db, playlist),
    }


@router.get("/{rule_id}")
def get_rule(rule_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return rule_payload(scheduler.get_rule(db, principal.organization_id, rule_id))


@router.put("/{rule_id}")
def update_rule(
    rule_id: str,
    payload: ScheduleRuleUpdate,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rule = scheduler.update_rule(db, principal.organization_id, rule_id, payload)
    _notify(background, principal)
    return rule_payload(rule)


@router.delete("/{rule_id}")
def delete_rule(
    rule_id: str,
    background: BackgroundTasks,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    scheduler.delete_rule(db, principal.organization_id, rule_id)
    _notify(background, principal)
    return {"ok": True}
