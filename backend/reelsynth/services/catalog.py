import json
from typing import Any, Callable, List, Optional, Tuple

import redis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import WatchError, RedisError

from reelsynth.config import get_settings
from reelsynth.errors import PersistenceError
from reelsynth.models import VideoRecord


class RedisCatalog:
    """
    Per-owner catalog of published videos, stored in Redis.

    Each owner has one key holding a JSON array of VideoRecords. Appends and
    removals are optimistic transactions (WATCH/MULTI) so concurrent publishes
    for the same owner never lose each other's records.
    """

    def __init__(self, client: Optional[redis.Redis] = None, max_retries: int = 10):
        self.settings = get_settings()
        self.redis = client if client is not None else redis.from_url(self.settings.redis_url)
        self.prefix = self.settings.redis.catalog_prefix
        self.max_retries = max_retries

    def _key(self, owner_id: str) -> str:
        return f"{self.prefix}{owner_id}"

    def _decode(self, owner_id: str, raw) -> Tuple[List[VideoRecord], List[Any]]:
        """
        Parse a stored catalog into (records, unreadable entries).

        Malformed JSON or a non-list value counts as an empty catalog. Entries
        that fail validation are skipped for readers but handed back so writers
        can keep them.
        """
        if not raw:
            return [], []
        try:
            items = json.loads(raw)
        except ValueError as e:
            print(f"⚠️ Catalog for owner {owner_id} is unreadable, treating as empty: {e}", flush=True)
            return [], []
        if not isinstance(items, list):
            print(f"⚠️ Catalog for owner {owner_id} is not a list, treating as empty", flush=True)
            return [], []

        records: List[VideoRecord] = []
        invalid: List[Any] = []
        for position, item in enumerate(items):
            try:
                records.append(VideoRecord.model_validate(item))
            except PydanticValidationError as e:
                print(
                    f"⚠️ Catalog for owner {owner_id}: skipping invalid entry {position}: "
                    f"{e.error_count()} validation error(s)",
                    flush=True,
                )
                invalid.append(item)
        return records, invalid

    @staticmethod
    def _encode(records: List[VideoRecord], invalid: Optional[List[Any]] = None) -> str:
        """Serialize records; unreadable entries are written back untouched after them."""
        items: List[Any] = [r.model_dump(mode="json", by_alias=True) for r in records]
        items.extend(invalid or [])
        return json.dumps(items)

    def read(self, owner_id: str) -> List[VideoRecord]:
        try:
            raw = self.redis.get(self._key(owner_id))
        except RedisError as e:
            raise PersistenceError("Could not read video catalog", diagnostic=str(e))
        records, _ = self._decode(owner_id, raw)
        return records

    def _update_atomic(
        self,
        owner_id: str,
        apply_fn: Callable[[List[VideoRecord]], bool],
    ) -> List[VideoRecord]:
        """
        Read-modify-write the owner's catalog under WATCH/MULTI.

        apply_fn mutates the list in place and returns whether anything changed.
        Returns the catalog as written (or as read, if nothing changed).
        """
        key = self._key(owner_id)

        for _ in range(self.max_retries):
            pipe = self.redis.pipeline()
            try:
                pipe.watch(key)
                records, invalid = self._decode(owner_id, pipe.get(key))

                if not apply_fn(records):
                    pipe.unwatch()
                    return records

                pipe.multi()
                pipe.set(key, self._encode(records, invalid))
                pipe.execute()
                return records
            except WatchError:
                # Another writer updated the key; retry.
                continue
            except RedisError as e:
                raise PersistenceError("Could not update video catalog", diagnostic=str(e))
            finally:
                try:
                    pipe.reset()
                except RedisError:
                    pass

        raise PersistenceError(
            f"Video catalog for owner {owner_id} kept changing; gave up after {self.max_retries} attempts"
        )

    def append(self, owner_id: str, record: VideoRecord) -> List[VideoRecord]:
        """Append a record, creating the catalog if absent."""
        def apply(records: List[VideoRecord]) -> bool:
            records.append(record)
            return True

        return self._update_atomic(owner_id, apply)

    def remove(self, owner_id: str, title: str) -> Optional[VideoRecord]:
        """
        Remove exactly one record whose title matches.

        Returns the removed record, or None if none matched.
        """
        removed: List[VideoRecord] = []

        def apply(records: List[VideoRecord]) -> bool:
            removed.clear()
            for i, r in enumerate(records):
                if r.title == title:
                    removed.append(records.pop(i))
                    return True
            return False

        self._update_atomic(owner_id, apply)
        return removed[0] if removed else None
