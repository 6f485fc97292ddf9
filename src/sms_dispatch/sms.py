from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .models import DeliveryOptions


class _SenderFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # "from" is a keyword, so the attribute is from_ and the JSON key is "from".
    from_: str | None = Field(default=None, alias="from")
    service_id: str | None = None
    region: str | None = None
    options: DeliveryOptions | None = None


class SendRequest(_SenderFields):
    to: str
    message: str


class BulkSendRequest(_SenderFields):
    message: str
    phone_numbers: list[str]
    validate_only: bool = False
