"""MongoDB-backed store (motor), keyed by the same deterministic ids as Firestore."""
from typing import Any, Iterable, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReplaceOne
from pymongo.errors import DuplicateKeyError

from shaheen.errors import NotFound
from shaheen.store.base import KEY_FIELD, Filter, validate_filters

_MONGO_OPS = {"!=": "$ne", "<": "$lt", "<=": "$lte", ">": "$gt", ">=": "$gte", "in": "$in"}


def to_mongo_filter(filters: Iterable[Filter]) -> dict:
    """Translate store filters into a Mongo filter document."""
    mongo_filter: dict[str, Any] = {}
    for field, op, value in validate_filters(filters):
        if op == "==":
            clause: Any = {"$eq": value}
        else:
            clause = {_MONGO_OPS[op]: list(value) if op == "in" else value}
        mongo_filter.setdefault(field, {}).update(clause)
    return mongo_filter


def _from_mongo(doc: dict) -> dict:
    data = dict(doc)
    data[KEY_FIELD] = data.pop("_id")
    return data


class MongoStore:
    def __init__(self, url: str, db_name: str):
        # tz_aware so stored instants come back as aware UTC datetimes
        self._client = AsyncIOMotorClient(url, tz_aware=True)
        self._db = self._client[db_name]

    async def get(self, collection: str, key: str) -> Optional[dict]:
        doc = await self._db[collection].find_one({"_id": key})
        return _from_mongo(doc) if doc else None

    async def get_many(self, collection: str, keys: Sequence[str]) -> list[Optional[dict]]:
        if not keys:
            return []
        found = {}
        async for doc in self._db[collection].find({"_id": {"$in": list(keys)}}):
            found[doc["_id"]] = _from_mongo(doc)
        return [found.get(k) for k in keys]

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        cursor = self._db[collection].find(to_mongo_filter(filters))
        if order_by:
            cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [_from_mongo(doc) async for doc in cursor]

    async def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        return await self._db[collection].count_documents(to_mongo_filter(filters))

    async def create(self, collection: str, key: str, data: dict) -> bool:
        try:
            await self._db[collection].insert_one({**data, "_id": key})
        except DuplicateKeyError:
            return False
        return True

    async def set(self, collection: str, key: str, data: dict) -> None:
        await self._db[collection].replace_one({"_id": key}, data, upsert=True)

    async def set_many(self, collection: str, docs: dict[str, dict]) -> None:
        if not docs:
            return
        ops = [ReplaceOne({"_id": key}, data, upsert=True) for key, data in docs.items()]
        await self._db[collection].bulk_write(ops, ordered=False)

    async def update(self, collection: str, key: str, changes: dict) -> None:
        result = await self._db[collection].update_one({"_id": key}, {"$set": changes})
        if result.matched_count == 0:
            raise NotFound(collection, key)

    async def update_if(self, collection: str, key: str, expected: dict, changes: dict) -> bool:
        # {"field": None} also matches a missing field
        mongo_filter = {"_id": key, **expected}
        result = await self._db[collection].update_one(mongo_filter, {"$set": changes})
        if result.matched_count:
            return True
        if await self._db[collection].count_documents({"_id": key}, limit=1) == 0:
            raise NotFound(collection, key)
        return False

    async def delete_where(self, collection: str, filters: Iterable[Filter]) -> int:
        result = await self._db[collection].delete_many(to_mongo_filter(filters))
        return result.deleted_count

    async def close(self) -> None:
        self._client.close()
