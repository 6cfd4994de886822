"""Publisher and VideoLibrary."""

import os
import shutil
import tempfile
import unittest


from reelsynth.errors import PublishError, StorageError, VideoNotFoundError
from reelsynth.models import VideoRecord
from reelsynth.services.library import VideoLibrary
from reelsynth.services.publisher import Publisher
from reelsynth.services.workspace import WorkspaceManager

from fakes import FakeCatalog, FakeObjectStore
from test_stages import make_job


class TestPublisher(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.root = tempfile.mkdtemp()
        self.workspace = WorkspaceManager(root=self.root)
        self.job = make_job(self.root)
        self.video = os.path.join(self.job.workspace_path, "job1_final.mp4")
        self.thumb = WorkspaceManager.asset_path(self.job, 0, "png")
        for path, data in ((self.video, b"mp4"), (self.thumb, b"png")):
            with open(path, "wb") as f:
                f.write(data)

    def tearDown(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)

    async def test_publish_uploads_signs_and_records(self) -> None:
        store, catalog = FakeObjectStore(), FakeCatalog()
        record = await Publisher(store, catalog, self.workspace).publish(self.job, self.video, self.thumb, "owner-1")

        self.assertTrue(record.title.endswith(".mp4"))
        self.assertNotIn("job1", record.title)
        self.assertIn(record.title, store.objects)
        self.assertIn(record.title, record.url)
        self.assertIn(f"X-Amz-Expires={6 * 86400}", record.url)
        self.assertTrue(record.thumbnail_url.split("?")[0].endswith(".png"))
        self.assertEqual([r.title for r in catalog.read("owner-1")], [record.title])
        self.assertFalse(os.path.exists(self.job.workspace_path))

    async def test_missing_file_still_releases_workspace(self) -> None:
        os.remove(self.video)
        store = FakeObjectStore()
        with self.assertRaises(PublishError):
            await Publisher(store, FakeCatalog(), self.workspace).publish(self.job, self.video, self.thumb, "owner-1")
        self.assertEqual(store.objects, {})
        self.assertFalse(os.path.exists(self.job.workspace_path))

    async def test_upload_failure(self) -> None:
        store, catalog = FakeObjectStore(fail_upload_on=".png"), FakeCatalog()
        with self.assertRaises(PublishError) as ctx:
            await Publisher(store, catalog, self.workspace).publish(self.job, self.video, self.thumb, "owner-1")

        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertEqual(store.objects, {})
        self.assertEqual(catalog.read("owner-1"), [])

    async def test_catalog_failure_removes_uploaded_objects(self) -> None:
        store = FakeObjectStore()
        with self.assertRaises(PublishError):
            await Publisher(store, FakeCatalog(fail_append=True), self.workspace).publish(
                self.job, self.video, self.thumb, "owner-1"
            )
        self.assertEqual(len(store.deleted), 2)
        self.assertEqual(store.objects, {})
        self.assertFalse(os.path.exists(self.job.workspace_path))


class TestVideoLibrary(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = FakeObjectStore()
        self.catalog = FakeCatalog()
        for title in ("a.mp4", "b.mp4"):
            self.store.objects[title] = b"mp4"
            self.catalog.append("owner-1", VideoRecord(title=title, url=f"u/{title}", thumbnail_url="t"))
        self.library = VideoLibrary(self.store, self.catalog)

    async def test_list(self) -> None:
        videos = await self.library.list_videos("owner-1")
        self.assertEqual([v.title for v in videos], ["a.mp4", "b.mp4"])
        self.assertEqual(await self.library.list_videos("stranger"), [])

    async def test_delete_removes_one_record_and_one_object(self) -> None:
        remaining = await self.library.delete_video("owner-1", "a.mp4")

        self.assertEqual([v.title for v in remaining], ["b.mp4"])
        self.assertEqual(self.store.deleted, ["a.mp4"])

    async def test_delete_unknown_key(self) -> None:
        with self.assertRaises(VideoNotFoundError):
            await self.library.delete_video("owner-1", "nope.mp4")
        self.assertEqual(self.store.deleted, [])
        self.assertEqual(len(await self.library.list_videos("owner-1")), 2)

    async def test_delete_other_owners_video_is_not_found(self) -> None:
        with self.assertRaises(VideoNotFoundError):
            await self.library.delete_video("owner-2", "a.mp4")
        self.assertEqual(self.store.deleted, [])

    async def test_store_failure_keeps_record(self) -> None:
        self.store.fail_delete = True
        with self.assertRaises(StorageError):
            await self.library.delete_video("owner-1", "a.mp4")
        self.assertEqual(len(await self.library.list_videos("owner-1")), 2)


if __name__ == "__main__":
    unittest.main()
