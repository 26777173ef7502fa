# tenant_lifecycle/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Audit rows store the id in a String(64) column
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,64}$")


def get_request_id() -> str | None:
    return request_id_ctx.get()


def accept_request_id(raw: Optional[str]) -> str:
    """
    Reuse the caller's id when it is safe to log and store; otherwise mint one.
    """
    rid = (raw or "").strip()
    if rid and _SAFE_REQUEST_ID.match(rid):
        return rid
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Per-request id, echoed in X-Request-ID.

    The id lands on every JSON log line and on every audit row written while
    the request runs, so an offboarding audit entry can be traced back to the
    HTTP call that produced it.
    """

    header_out = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = accept_request_id(request.headers.get("X-Request-ID") or request.headers.get("X-Request-Id"))

        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
            resp.headers[self.header_out] = rid
            return resp
        finally:
            request_id_ctx.reset(token)
