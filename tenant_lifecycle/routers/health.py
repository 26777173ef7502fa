# tenant_lifecycle/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..domain.errors import store_errors

router = APIRouter(tags=["health"])


@router.get("/health", response_model=dict)
def health(db: Session = Depends(get_db)):
    with store_errors("health check"):
        db.execute(text("SELECT 1"))
    return {"ok": True, "env": settings.app_env, "version": settings.app_version}
