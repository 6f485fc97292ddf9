from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import DeliveryOptions, OriginatingNumber, ServiceId, TransportError
from .phone import PhoneNumber


@runtime_checkable
class Transport(Protocol):
    """
    Sends one message to one recipient through a provider.

    Returns the provider's message id on success, or a TransportError value
    on failure. Implementations must be safe to call concurrently. Retries,
    if any, are the transport's own business.
    """

    async def send(
        self,
        sender: OriginatingNumber | ServiceId,
        to: PhoneNumber,
        body: str,
        options: DeliveryOptions | None,
    ) -> str | TransportError: ...
