from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from functools import lru_cache

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .config import get_settings
from .db import SessionLocal, init_db
from .errors import ConfigurationError, DispatchError
from .history import record_batch, recent_messages
from .logging import configure_logging
from .models import BatchResult, RecipientOutcome, ServiceId, sender_from_params
from .service import SmsService
from .sms import BulkSendRequest, SendRequest
from .transport import Transport
from .twilio_client import TwilioTransport

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: runs once before the app starts serving requests
    configure_logging(get_settings().log_level)
    init_db()
    yield


app = FastAPI(title="sms-dispatch", version="0.1.0", lifespan=lifespan)


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    status_code = 500 if isinstance(exc, ConfigurationError) else 422
    logger.info("api.dispatch_error", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.detail})


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

    admin_token = get_settings().admin_token
    if not admin_token:
        # Misconfiguration; safer to refuse access than to expose data.
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")

    header_token = request.headers.get("X-Admin-Token")
    if header_token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


# --- Dependencies ---


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_transport() -> Transport:
    return TwilioTransport()


def get_service(transport: Transport = Depends(get_transport)) -> SmsService:
    return SmsService(transport)


# --- Routes ---


@app.post("/sms/send", response_model=RecipientOutcome)
async def send_single(
    payload: SendRequest,
    service: SmsService = Depends(get_service),
    db: Session = Depends(get_db),
) -> RecipientOutcome:
    """
    Send one SMS from a number or through a messaging service.

    Exactly one of "from" / "service_id" must be given.
    """
    region = payload.region or service.settings.default_region
    sender = sender_from_params(payload.from_, payload.service_id, region)
    batch_id = uuid.uuid4().hex

    if isinstance(sender, ServiceId):
        outcome = await service.send_via_service(
            sender.service_id,
            payload.to,
            payload.message,
            payload.options,
            region=region,
            batch_id=batch_id,
        )
    else:
        outcome = await service.send_from(
            sender.number.e164,
            payload.to,
            payload.message,
            payload.options,
            region=region,
            batch_id=batch_id,
        )

    record_batch(db, BatchResult.from_outcomes([outcome]), sender, batch_id=batch_id)
    return outcome


@app.post("/sms/bulk", response_model=BatchResult)
async def send_bulk(
    payload: BulkSendRequest,
    service: SmsService = Depends(get_service),
    db: Session = Depends(get_db),
) -> BatchResult:
    """
    Send the same SMS to many numbers, or only validate them (validate_only).

    Invalid numbers are reported per recipient and do not stop the batch.
    """
    region = payload.region or service.settings.default_region
    sender = sender_from_params(payload.from_, payload.service_id, region)

    result = await service.engine.dispatch(
        payload.message,
        payload.phone_numbers,
        sender,
        region_hint=region,
        validate_only=payload.validate_only,
        options=payload.options,
    )

    if not payload.validate_only:
        record_batch(db, result, sender)
    return result


@app.get("/admin/messages")
def admin_messages(
    limit: int = 50,
    db: Session = Depends(get_db),
    _: None = Depends(verify_admin),
) -> JSONResponse:
    """
    Recent outbound log rows, newest first.

    Example:
      GET /admin/messages
      GET /admin/messages?limit=10
    """
    # Clamp limit to a reasonable range
    safe_limit = max(1, min(limit, 200))
    rows = recent_messages(db, safe_limit)

    payload = [
        {
            "id": row.id,
            "batch_id": row.batch_id,
            "created_at": row.created_at.isoformat() if row.created_at else None,
            "phone_number": row.phone_number,
            "e164": row.e164,
            "sender": row.sender,
            "success": row.success,
            "attempted": row.attempted,
            "message_id": row.message_id,
            "error_message": row.error_message,
            "error_code": row.error_code,
        }
        for row in rows
    ]
    return JSONResponse(payload)
