from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storeaudio.api.deps import get_principal
from storeaudio.db import get_db
from storeaudio.services import analytics
from storeaudio.services.auth import Principal
from storeaudio.services.stores import get_store_for_org

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/overview")
def overview(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return analytics.overview(db, principal.organization_id)


@router.get("/stores/{store_id}/events")
def store_events(
    store_id: str,
    limit: int = Query(50, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    store = get_store_for_org(db, store_id, principal.organization_id)
    return analytics.recent_events(db, store.id, limit)
