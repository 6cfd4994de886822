import asyncio
import os
import uuid
from typing import List

from reelsynth.config import get_settings
from reelsynth.errors import PipelineError, PublishError
from reelsynth.models import Job, VideoRecord
from reelsynth.services.capabilities import CatalogStore, ObjectStore
from reelsynth.services.workspace import WorkspaceManager


class Publisher:
    """
    Makes a finished video durable: uploads the video and its thumbnail under
    random keys, signs GET URLs, appends the record to the owner's catalog,
    and always releases the job's workspace.
    """

    def __init__(self, storage: ObjectStore, catalog: CatalogStore, workspace: WorkspaceManager):
        self.storage = storage
        self.catalog = catalog
        self.workspace = workspace
        self.settings = get_settings()

    @staticmethod
    def new_object_key(path: str) -> str:
        """Random object key keeping the file extension; never derived from user input."""
        ext = os.path.splitext(path)[1].lower()
        return f"{uuid.uuid4().hex}{ext}"

    async def _upload(self, key: str, path: str) -> None:
        await asyncio.to_thread(self.storage.upload_file, key, path)

    async def _sign(self, key: str) -> str:
        expires = self.settings.pipeline.signed_url_expiry_days * 86400
        return await asyncio.to_thread(self.storage.get_presigned_url, key, expires)

    async def _discard(self, keys: List[str]) -> None:
        for key in keys:
            try:
                await asyncio.to_thread(self.storage.delete_object, key)
                print(f"🗑️ Removed orphaned object {key}", flush=True)
            except Exception as e:
                print(f"⚠️ Could not remove orphaned object {key}: {e}", flush=True)

    async def publish(self, job: Job, final_video_path: str, thumbnail_path: str, owner_id: str) -> VideoRecord:
        uploaded: List[str] = []
        try:
            for path in (final_video_path, thumbnail_path):
                if not path or not os.path.exists(path):
                    raise PublishError(f"Nothing to publish: {os.path.basename(path or '') or 'missing path'}")

            video_key = self.new_object_key(final_video_path)
            thumb_key = self.new_object_key(thumbnail_path)

            try:
                await self._upload(video_key, final_video_path)
                uploaded.append(video_key)
                await self._upload(thumb_key, thumbnail_path)
                uploaded.append(thumb_key)
                print(f"📤 Job {job.job_id}: uploaded {video_key} and {thumb_key}", flush=True)

                url = await self._sign(video_key)
                thumbnail_url = await self._sign(thumb_key)
            except Exception as e:
                await self._discard(uploaded)
                raise PublishError("Upload to storage failed", diagnostic=str(e)) from e

            record = VideoRecord(title=video_key, url=url, thumbnail_url=thumbnail_url)

            try:
                await asyncio.to_thread(self.catalog.append, owner_id, record)
            except Exception as e:
                await self._discard(uploaded)
                diagnostic = e.diagnostic if isinstance(e, PipelineError) else str(e)
                raise PublishError("Could not save video to catalog", diagnostic=diagnostic) from e

            print(f"✅ Job {job.job_id}: published {video_key} for owner {owner_id}", flush=True)
            return record
        finally:
            self.workspace.release(job)
