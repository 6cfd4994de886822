import asyncio
from typing import List

from reelsynth.errors import StorageError, VideoNotFoundError
from reelsynth.models import VideoRecord
from reelsynth.services.capabilities import CatalogStore, ObjectStore


class VideoLibrary:
    """Owner-facing view of the catalog: list and delete published videos."""

    def __init__(self, storage: ObjectStore, catalog: CatalogStore):
        self.storage = storage
        self.catalog = catalog

    async def list_videos(self, owner_id: str) -> List[VideoRecord]:
        return await asyncio.to_thread(self.catalog.read, owner_id)

    async def delete_video(self, owner_id: str, video_key: str) -> List[VideoRecord]:
        """
        Delete one video: its stored object, then its catalog record.

        Raises VideoNotFoundError when the owner has no record with this key;
        in that case neither the store nor the catalog is touched.
        """
        records = await asyncio.to_thread(self.catalog.read, owner_id)
        if not any(r.title == video_key for r in records):
            raise VideoNotFoundError(f"Video not found: {video_key}")

        try:
            await asyncio.to_thread(self.storage.delete_object, video_key)
        except Exception as e:
            raise StorageError("Could not delete video from storage", diagnostic=str(e)) from e
        print(f"🗑️ Deleted object {video_key} for owner {owner_id}", flush=True)

        removed = await asyncio.to_thread(self.catalog.remove, owner_id, video_key)
        if removed is None:
            # A concurrent delete got there first; the catalog is already consistent.
            print(f"⚠️ Record {video_key} was already gone from catalog of {owner_id}", flush=True)

        return await asyncio.to_thread(self.catalog.read, owner_id)

