# tenant_lifecycle/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser, OrgMembership, Organization


@dataclass(frozen=True)
class Principal:
    org_id: int
    org_slug: str
    user_id: int
    email: str
    role: str  # owner | operator | analyst


ROLE_ORDER = {"analyst": 1, "operator": 2, "owner": 3}


def _require_role(principal: Principal, min_role: str) -> None:
    if ROLE_ORDER.get(principal.role, 0) < ROLE_ORDER.get(min_role, 999):
        raise HTTPException(status_code=403, detail=f"Requires role >= {min_role}")


# -------------------------
# Org + membership helpers
# -------------------------
def _get_org(db: Session, org_slug: str) -> Organization | None:
    return db.scalar(select(Organization).where(Organization.slug == org_slug))


def _get_user_by_email(db: Session, email: str) -> AppUser | None:
    return db.scalar(select(AppUser).where(AppUser.email == email))


def _get_membership(db: Session, org_id: int, user_id: int) -> OrgMembership | None:
    return db.scalar(select(OrgMembership).where(OrgMembership.org_id == org_id, OrgMembership.user_id == user_id))


def _provision(db: Session, *, org_slug: str, email: str, role_hint: str) -> Principal:
    org = _get_org(db, org_slug)
    if org is None and settings.dev_auto_provision:
        org = Organization(slug=org_slug, name=org_slug, created_at=datetime.utcnow())
        db.add(org)
        db.commit()
        db.refresh(org)

    user = _get_user_by_email(db, email)
    if user is None and settings.dev_auto_provision:
        user = AppUser(email=email, display_name=email.split("@")[0], created_at=datetime.utcnow())
        db.add(user)
        db.commit()
        db.refresh(user)

    if org is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/org")

    mem = _get_membership(db, org_id=int(org.id), user_id=int(user.id))
    if mem is None and settings.dev_auto_provision:
        mem = OrgMembership(
            org_id=int(org.id),
            user_id=int(user.id),
            role=role_hint if role_hint in ROLE_ORDER else "owner",
            created_at=datetime.utcnow(),
        )
        db.add(mem)
        db.commit()
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this org")

    return Principal(org_id=int(org.id), org_slug=str(org.slug), user_id=int(user.id), email=str(user.email), role=str(mem.role))


def _from_gateway(db: Session, *, org_slug: str, email: str) -> Principal:
    org = _get_org(db, org_slug)
    if org is None:
        raise HTTPException(status_code=401, detail="Unknown org")
    user = _get_user_by_email(db, email)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    mem = _get_membership(db, org_id=int(org.id), user_id=int(user.id))
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this org")
    return Principal(org_id=int(org.id), org_slug=str(org.slug), user_id=int(user.id), email=str(user.email), role=str(mem.role))


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_org_slug: Optional[str] = Header(default=None, alias="X-Org-Slug"),
) -> Principal:
    """
    Auth modes:
      - gateway: the upstream auth proxy has already authenticated the caller and
        forwards org + email headers; org, user and membership must already exist.
      - dev: header spoofing with optional auto-provisioning (never in prod, see config).
    """
    org_slug = str(x_org_slug or "").strip()
    if not org_slug:
        raise HTTPException(status_code=401, detail="Missing X-Org-Slug (active org context).")

    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    if not email:
        raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email}")

    mode = (settings.auth_mode or "").strip().lower()
    if mode == "gateway":
        principal = _from_gateway(db, org_slug=org_slug, email=email)
    elif mode == "dev":
        role_hint = (request.headers.get(settings.dev_header_user_role) or "owner").strip().lower()
        principal = _provision(db, org_slug=org_slug, email=email, role_hint=role_hint)
    else:
        raise HTTPException(status_code=401, detail="Not authenticated")

    request.state.org_slug = principal.org_slug
    request.state.user_email = principal.email
    return principal


def require_operator(p: Principal = Depends(get_principal)) -> Principal:
    _require_role(p, "operator")
    return p
