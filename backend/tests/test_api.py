import unittest
from types import SimpleNamespace
from unittest import mock

from fastapi.testclient import TestClient


from reelsynth.config import get_settings
from reelsynth.errors import AssemblyError, PersistenceError, ValidationError, WorkspaceError
from reelsynth.main import app
from reelsynth.models import VideoRecord
from reelsynth.services.library import VideoLibrary

from fakes import FakeCatalog, FakeObjectStore


class StubOrchestrator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def create_video(self, subject, domain, owner_id):
        self.calls.append((subject, domain, owner_id))
        if self.error:
            raise self.error
        return VideoRecord(title="abc.mp4", url="https://s/abc.mp4", thumbnail_url="https://s/abc.png")


class TestVideosApi(unittest.TestCase):
    def setUp(self) -> None:
        # No `with TestClient(...)`: the lifespan (MinIO/Redis) is not started.
        self.client = TestClient(app)
        self.store = FakeObjectStore()
        self.catalog = FakeCatalog()
        self.catalog.append("owner-1", VideoRecord(title="a.mp4", url="u/a", thumbnail_url="t/a"))
        self.store.objects["a.mp4"] = b"mp4"
        app.state.services = SimpleNamespace(
            library=VideoLibrary(self.store, self.catalog),
            storage_ready=True,
        )
        self.orchestrator = StubOrchestrator()
        app.state.orchestrator = self.orchestrator

    def test_create_video(self) -> None:
        resp = self.client.post(
            "/api/videos",
            json={"subject": "Serena Williams", "domain": "tennis", "ownerId": "owner-1"},
        )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["title"], "abc.mp4")
        self.assertEqual(body["thumbnailUrl"], "https://s/abc.png")
        self.assertIn("createdAt", body)
        self.assertEqual(self.orchestrator.calls, [("Serena Williams", "tennis", "owner-1")])

    def test_create_video_missing_fields(self) -> None:
        resp = self.client.post("/api/videos", json={"subject": "Serena Williams"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.orchestrator.calls, [])

    def test_pipeline_errors_map_to_status(self) -> None:
        cases = [
            (ValidationError("Script has 2 scenes, expected 3"), 422),
            (AssemblyError("Video assembly failed", diagnostic="Non-monotonous DTS"), 502),
            (PersistenceError("Could not update video catalog"), 502),
            (WorkspaceError("Could not create workspace"), 500),
        ]
        for error, status in cases:
            app.state.orchestrator = StubOrchestrator(error=error)
            resp = self.client.post("/api/videos", json={"subject": "s", "domain": "d", "ownerId": "o"})
            self.assertEqual(resp.status_code, status)
            self.assertEqual(resp.json()["detail"]["message"], str(error))
            self.assertNotIn("diagnostic", resp.json()["detail"])

    def test_diagnostic_exposed_when_enabled(self) -> None:
        app.state.orchestrator = StubOrchestrator(
            error=AssemblyError("Video assembly failed", diagnostic="Non-monotonous DTS")
        )
        with mock.patch.object(get_settings().app, "expose_diagnostics", True):
            resp = self.client.post("/api/videos", json={"subject": "s", "domain": "d", "ownerId": "o"})
        self.assertEqual(resp.json()["detail"]["diagnostic"], "Non-monotonous DTS")

    def test_list_videos(self) -> None:
        resp = self.client.get("/api/videos", params={"ownerId": "owner-1"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual([v["title"] for v in body["videos"]], ["a.mp4"])

        empty = self.client.get("/api/videos", params={"ownerId": "stranger"}).json()
        self.assertEqual(empty["videos"], [])

    def test_list_requires_owner(self) -> None:
        self.assertEqual(self.client.get("/api/videos").status_code, 422)

    def test_delete_video(self) -> None:
        resp = self.client.delete("/api/videos/a.mp4", params={"ownerId": "owner-1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["videos"], [])
        self.assertEqual(self.store.deleted, ["a.mp4"])

    def test_delete_unknown_video(self) -> None:
        resp = self.client.delete("/api/videos/zzz.mp4", params={"ownerId": "owner-1"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.store.deleted, [])
        self.assertEqual(len(self.catalog.read("owner-1")), 1)

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/").json()["status"], "healthy")
        services = self.client.get("/health").json()["services"]
        self.assertIn("gemini_configured", services)
        self.assertTrue(services["storage_ready"])


if __name__ == "__main__":
    unittest.main()
