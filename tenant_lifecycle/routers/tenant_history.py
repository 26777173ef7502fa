# tenant_lifecycle/routers/tenant_history.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_operator
from ..db import get_db
from ..domain.types import DepartureType
from ..schemas import TenantHistoryPageOut
from ..services.history_archiver import list_tenant_history

router = APIRouter(prefix="/tenant-history", tags=["tenant-history"])


@router.get("", response_model=TenantHistoryPageOut)
def tenant_history(
    landlord_id: Optional[int] = Query(default=None),
    unit_id: Optional[int] = Query(default=None),
    property_id: Optional[int] = Query(default=None),
    departure_type: Optional[DepartureType] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None),
    date_to: Optional[datetime] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_operator),
):
    res = list_tenant_history(
        db,
        org_id=p.org_id,
        landlord_id=landlord_id,
        unit_id=unit_id,
        property_id=property_id,
        departure_type=departure_type.value if departure_type else None,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        limit=limit,
    )
    return {"items": res.items, "total": res.total, "page": res.page, "limit": res.limit}
