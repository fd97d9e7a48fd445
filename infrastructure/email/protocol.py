"""Notifier protocol — the OTP engine depends on this, not the concrete provider."""

from typing import Optional, Protocol


class Notifier(Protocol):
    async def send_code(
        self, identifier: str, display_name: Optional[str], code: str, purpose: str
    ) -> bool: ...
