"""MongoDB-backed durable store for users.

The operations the auth core needs:
  find_by_identifier — by ObjectId string or by (normalized) email
  update_status      — idempotent ``$set`` of status fields, returns the
                       updated document
  create             — insert a new user; a duplicate email or username
                       is a ConflictError

PyMongoError (including timeouts) is converted to UnavailableError: the
durable store is the authoritative path, so its failures fail the request.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConflictError, NotFoundError, UnavailableError
from schemas.models.user import UserDoc
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION = "users"


def _lookup_filter(identifier: str) -> dict:
    if ObjectId.is_valid(identifier):
        return {"_id": ObjectId(identifier)}
    return {"email": identifier.strip().lower()}


class UserRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col: AsyncCollection = db[COLLECTION]

    async def ensure_indexes(self) -> None:
        try:
            await self._col.create_index([("email", ASCENDING)], unique=True)
            await self._col.create_index(
                [("username", ASCENDING)], unique=True, sparse=True
            )
        except PyMongoError as e:
            log.error("user_index_creation_failed", error=str(e))

    async def find_by_identifier(self, identifier: str) -> Optional[UserDoc]:
        try:
            doc = await self._col.find_one(_lookup_filter(identifier))
        except PyMongoError as e:
            log.error(
                "user_lookup_failed",
                identifier=identifier,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("User store unavailable") from e
        return UserDoc.from_mongo(doc)

    async def update_status(self, identifier: str, fields: dict[str, Any]) -> UserDoc:
        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)
        try:
            doc = await self._col.find_one_and_update(
                _lookup_filter(identifier),
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            log.error(
                "user_update_failed",
                identifier=identifier,
                fields=sorted(fields),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("User store unavailable") from e
        if doc is None:
            raise NotFoundError("User not found")
        return UserDoc.from_mongo(doc)

    async def create(self, fields: dict[str, Any]) -> UserDoc:
        now = datetime.now(timezone.utc)
        doc = {**fields, "created_at": now, "updated_at": now}
        try:
            result = await self._col.insert_one(doc)
        except DuplicateKeyError as e:
            key_pattern = (e.details or {}).get("keyPattern") or {}
            if "username" in key_pattern:
                raise ConflictError("Username is already taken", field="username") from e
            raise ConflictError(
                "User already exists with this email", field="identifier"
            ) from e
        except PyMongoError as e:
            log.error(
                "user_create_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("User store unavailable") from e
        doc["_id"] = result.inserted_id
        return UserDoc.from_mongo(doc)
