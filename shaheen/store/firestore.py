"""Firestore-backed store (firebase_admin async client)."""
import logging
from typing import Iterable, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core.exceptions import AlreadyExists, FailedPrecondition
from google.api_core.exceptions import NotFound as FirestoreNotFound
from google.cloud.firestore_v1.base_query import FieldFilter

from shaheen.errors import ConfigurationError, NotFound
from shaheen.store.base import KEY_FIELD, Filter, lookup, validate_filters

logger = logging.getLogger(__name__)

# Firestore rejects batches above 500 writes
BATCH_LIMIT = 500


def _init_firebase_app(credentials_path: str):
    if not credentials_path:
        raise ConfigurationError("FIREBASE_CREDENTIALS_PATH not set; cannot open Firestore.")
    try:
        cred = credentials.Certificate(credentials_path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed to load Firebase credentials: {e}") from e
    return firebase_admin.initialize_app(cred, name="shaheen")


def _to_dict(snap) -> dict:
    data = snap.to_dict() or {}
    data[KEY_FIELD] = snap.id
    return data


class FirestoreStore:
    def __init__(self, credentials_path: str):
        self._app = _init_firebase_app(credentials_path)
        self._client = firestore_async.client(app=self._app)

    def _query(self, collection: str, filters: Iterable[Filter]):
        query = self._client.collection(collection)
        for field, op, value in validate_filters(filters):
            query = query.where(filter=FieldFilter(field, op, value))
        return query

    async def get(self, collection: str, key: str) -> Optional[dict]:
        snap = await self._client.collection(collection).document(key).get()
        return _to_dict(snap) if snap.exists else None

    async def get_many(self, collection: str, keys: Sequence[str]) -> list[Optional[dict]]:
        if not keys:
            return []
        refs = [self._client.collection(collection).document(k) for k in keys]
        found = {}
        async for snap in self._client.get_all(refs):
            if snap.exists:
                found[snap.id] = _to_dict(snap)
        return [found.get(k) for k in keys]

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        query = self._query(collection, filters)
        if order_by:
            query = query.order_by(order_by, direction="DESCENDING" if descending else "ASCENDING")
        if limit is not None:
            query = query.limit(limit)
        return [_to_dict(snap) async for snap in query.stream()]

    async def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        results = await self._query(collection, filters).count(alias="total").get()
        return int(results[0][0].value) if results and results[0] else 0

    async def create(self, collection: str, key: str, data: dict) -> bool:
        try:
            await self._client.collection(collection).document(key).create(data)
        except AlreadyExists:
            return False
        return True

    async def set(self, collection: str, key: str, data: dict) -> None:
        await self._client.collection(collection).document(key).set(data)

    async def set_many(self, collection: str, docs: dict[str, dict]) -> None:
        items = list(docs.items())
        for i in range(0, len(items), BATCH_LIMIT):
            batch = self._client.batch()
            for key, data in items[i:i + BATCH_LIMIT]:
                batch.set(self._client.collection(collection).document(key), data)
            await batch.commit()

    async def update(self, collection: str, key: str, changes: dict) -> None:
        try:
            await self._client.collection(collection).document(key).update(changes)
        except FirestoreNotFound as e:
            raise NotFound(collection, key) from e

    async def update_if(self, collection: str, key: str, expected: dict, changes: dict) -> bool:
        ref = self._client.collection(collection).document(key)
        snap = await ref.get()
        if not snap.exists:
            raise NotFound(collection, key)
        data = snap.to_dict() or {}
        if any(lookup(data, field) != value for field, value in expected.items()):
            return False
        # last_update_time precondition rejects writes that landed after our read
        option = self._client.write_option(last_update_time=snap.update_time)
        try:
            await ref.update(changes, option=option)
        except FailedPrecondition:
            logger.info("Conditional update lost a race on %s/%s", collection, key)
            return False
        return True

    async def delete_where(self, collection: str, filters: Iterable[Filter]) -> int:
        refs = [snap.reference async for snap in self._query(collection, filters).stream()]
        for i in range(0, len(refs), BATCH_LIMIT):
            batch = self._client.batch()
            for ref in refs[i:i + BATCH_LIMIT]:
                batch.delete(ref)
            await batch.commit()
        return len(refs)

    async def close(self) -> None:
        firebase_admin.delete_app(self._app)
