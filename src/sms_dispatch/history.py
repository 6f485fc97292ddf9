from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from .db import OutboundMessage
from .models import BatchResult, OriginatingNumber, ServiceId, describe_sender


def record_batch(
    db: Session,
    result: BatchResult,
    sender: OriginatingNumber | ServiceId,
    batch_id: str | None = None,
) -> str:
    """
    Store one row per recipient outcome and return the batch id.

    Dry runs are not recorded; callers only pass real send results here.
    The id defaults to the one the engine logged the batch under.
    """
    batch_id = batch_id or result.batch_id or uuid.uuid4().hex
    sender_label = describe_sender(sender)

    db.add_all(
        OutboundMessage(
            batch_id=batch_id,
            phone_number=outcome.phone_number,
            e164=outcome.normalized.e164 if outcome.normalized else None,
            sender=sender_label,
            success=outcome.success,
            attempted=outcome.attempted,
            message_id=outcome.message_id,
            error_message=outcome.error_message,
            error_code=outcome.error_code,
        )
        for outcome in result.results
    )
    db.commit()
    return batch_id


def recent_messages(db: Session, limit: int) -> list[OutboundMessage]:
    return (
        db.query(OutboundMessage)
        .order_by(OutboundMessage.created_at.desc(), OutboundMessage.id.desc())
        .limit(limit)
        .all()
    )
