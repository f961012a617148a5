from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .bridge import SmsBridge, configure_channel
from .channel import BinaryMessenger, ChannelNotFoundError, CodecError
from .config import configure_logging, get_settings
from .db import init_db
from .permissions import (
    PermissionBroker,
    PermissionRequest,
    PermissionRequestAlreadyResolved,
    PermissionRequestNotFound,
)
from .sms import SEND_SMS_PERMISSION
from .telephony import get_sms_manager

messenger = BinaryMessenger()
permissions = PermissionBroker()


def setup_bridge() -> SmsBridge:
    """Create the bridge from settings and bind it to the configured channel."""
    settings = get_settings()
    bridge = SmsBridge(
        permissions=permissions,
        sms_manager=get_sms_manager(settings),
        request_code=settings.permission_request_code,
        wait_timeout=settings.permission_wait_timeout,
    )
    configure_channel(messenger, bridge, name=settings.channel_name)
    return bridge


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: runs once before the app starts serving requests
    configure_logging()
    init_db()
    setup_bridge()
    yield
    # Shutdown: unbind the channel
    messenger.set_message_handler(get_settings().channel_name, None)


app = FastAPI(title="sms-bridge", version="0.1.0", lifespan=lifespan)

# --- Admin protection ---

ALLOWED_ADMIN_IPS = {"127.0.0.1", "::1"}


def verify_admin(request: Request) -> None:
    """
    Simple protection for /admin endpoints:
    - only allow requests from ALLOWED_ADMIN_IPS
    - require X-Admin-Token header that matches ADMIN_TOKEN env var
    """
    client_host = request.client.host if request.client else None

    if client_host not in ALLOWED_ADMIN_IPS:
        raise HTTPException(status_code=403, detail="Forbidden")

    admin_token = os.getenv("ADMIN_TOKEN")
    if not admin_token:
        # Misconfiguration; safer to refuse access than to expose grants.
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")

    header_token = request.headers.get("X-Admin-Token")
    if header_token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


class RevokePayload(BaseModel):
    permission: str = SEND_SMS_PERMISSION


def _request_json(req: PermissionRequest) -> dict[str, object]:
    return {
        "id": req.id,
        "permission": req.permission,
        "request_code": req.request_code,
        "status": str(req.status),
        "created_at": req.created_at.isoformat(),
        "resolved_at": req.resolved_at.isoformat() if req.resolved_at else None,
    }


# --- Routes ---


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/channels/{channel:path}")
async def channel_call(channel: str, request: Request) -> Response:
    """
    Deliver one encoded method call to a channel and return its envelope.

    Example:

      POST /channels/com.example.sms/send
      {"method": "sendSMS", "args": {"phone": "5551234", "message": "hi"}}

    replies ["SMS sent"] or ["PERMISSION_DENIED", "SMS permission not granted", null].
    """
    payload = await request.body()
    try:
        # awaitSmsPermission blocks, so keep calls off the event loop
        reply = await run_in_threadpool(messenger.send, channel, payload)
    except ChannelNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except CodecError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return Response(content=reply, media_type="application/json")


@app.get("/admin/permissions/requests")
def admin_requests(limit: int = 50, _: None = Depends(verify_admin)) -> JSONResponse:
    """
    List recent permission prompts, newest first.

    Example:
      GET /admin/permissions/requests?limit=10
    """
    # Clamp limit to a reasonable range
    safe_limit = max(1, min(limit, 200))
    return JSONResponse([_request_json(r) for r in permissions.list_requests(safe_limit)])


def _resolve(request_id: int, granted: bool) -> JSONResponse:
    try:
        req = permissions.resolve(request_id, granted=granted)
    except PermissionRequestNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PermissionRequestAlreadyResolved as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return JSONResponse(_request_json(req))


@app.post("/admin/permissions/requests/{request_id}/grant")
def admin_grant(request_id: int, _: None = Depends(verify_admin)) -> JSONResponse:
    return _resolve(request_id, granted=True)


@app.post("/admin/permissions/requests/{request_id}/deny")
def admin_deny(request_id: int, _: None = Depends(verify_admin)) -> JSONResponse:
    return _resolve(request_id, granted=False)


@app.post("/admin/permissions/revoke")
def admin_revoke(payload: RevokePayload, _: None = Depends(verify_admin)) -> JSONResponse:
    permissions.revoke(payload.permission)
    return JSONResponse({"permission": payload.permission, "granted": False})
