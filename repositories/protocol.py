"""UserStore protocol — services depend on this, not on MongoDB."""

from typing import Any, Optional, Protocol

from schemas.models.user import UserDoc


class UserStore(Protocol):
    async def find_by_identifier(self, identifier: str) -> Optional[UserDoc]: ...

    async def update_status(self, identifier: str, fields: dict[str, Any]) -> UserDoc: ...

    async def create(self, fields: dict[str, Any]) -> UserDoc: ...
