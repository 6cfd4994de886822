"""Capability adapters: HTTP clients against httpx.MockTransport, Gemini with the SDK patched, and the MinIO storage wrapper."""

import json
import os
import tempfile
import threading
import unittest
from types import SimpleNamespace
from unittest import mock

import httpx


from reelsynth.errors import GenerationError
from reelsynth.services import elevenlabs_client
from reelsynth.services.elevenlabs_client import ElevenLabsClient
from reelsynth.services.gemini_client import GeminiClient
from reelsynth.services.image_client import FalImageClient
from reelsynth.services.script_generator import SceneScriptGenerator
from reelsynth.services.storage import StorageService


class TestElevenLabsClient(unittest.IsolatedAsyncioTestCase):
    async def test_synthesize_posts_text_and_returns_audio(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["accept"] = request.headers.get("accept")
            return httpx.Response(200, content=b"ID3audio")

        client = ElevenLabsClient(transport=httpx.MockTransport(handler))
        audio = await client.synthesize("Hello world", voice_id="voice-1")

        self.assertEqual(audio, b"ID3audio")
        self.assertTrue(seen["url"].endswith("/text-to-speech/voice-1"))
        self.assertEqual(seen["body"]["text"], "Hello world")
        self.assertEqual(seen["accept"], "audio/mpeg")

    async def test_synthesize_raises_on_error_status(self) -> None:
        client = ElevenLabsClient(transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"detail": "bad key"})))
        with self.assertRaises(httpx.HTTPStatusError):
            await client.synthesize("Hello")

    async def test_transcribe_returns_word_timings(self) -> None:
        payload = {
            "text": "Hello world",
            "words": [
                {"text": "Hello", "start": 0.0, "end": 0.42, "type": "word"},
                {"text": " ", "start": 0.42, "end": 0.5, "type": "spacing"},
                {"text": "world", "start": 0.5, "end": 1.0049, "type": "word"},
                {"text": "(laughs)", "start": 1.1, "end": 1.4, "type": "audio_event"},
            ],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertTrue(str(request.url).endswith("/speech-to-text"))
            self.assertIn(b"scribe_v1", request.content)
            return httpx.Response(200, json=payload)

        fd, path = tempfile.mkstemp(suffix=".mp3")
        os.write(fd, b"mp3")
        os.close(fd)
        self.addCleanup(os.remove, path)

        words = await ElevenLabsClient(transport=httpx.MockTransport(handler)).transcribe(path)

        self.assertEqual([w.text for w in words], ["Hello", "world"])
        self.assertEqual((words[0].start_ms, words[0].end_ms), (0, 420))
        self.assertEqual((words[1].start_ms, words[1].end_ms), (500, 1005))

    def test_parse_words_handles_missing_payload(self) -> None:
        self.assertEqual(ElevenLabsClient.parse_words({}), [])
        self.assertEqual(ElevenLabsClient.parse_words({"words": [{"text": "x"}]}), [])

    async def test_transcribe_reads_audio_off_the_event_loop(self) -> None:
        loop_thread = threading.get_ident()
        reader_threads = []
        real_read = elevenlabs_client._read_bytes

        def read(path):
            reader_threads.append(threading.get_ident())
            return real_read(path)

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertIn(b"mp3-bytes", request.content)
            return httpx.Response(200, json={"words": []})

        fd, path = tempfile.mkstemp(suffix=".mp3")
        os.write(fd, b"mp3-bytes")
        os.close(fd)
        self.addCleanup(os.remove, path)

        with mock.patch("reelsynth.services.elevenlabs_client._read_bytes", side_effect=read):
            words = await ElevenLabsClient(transport=httpx.MockTransport(handler)).transcribe(path)

        self.assertEqual(words, [])
        self.assertEqual(len(reader_threads), 1)
        self.assertNotEqual(reader_threads[0], loop_thread)


class TestFalImageClient(unittest.IsolatedAsyncioTestCase):
    async def test_generates_and_downloads_first_image(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, str(request.url)))
            if request.method == "POST":
                body = json.loads(request.content)
                self.assertEqual(body["prompt"], "A stadium at night")
                self.assertEqual(body["num_images"], 1)
                self.assertTrue(request.headers["authorization"].startswith("Key "))
                return httpx.Response(200, json={"images": [{"url": "https://cdn.fal.test/img.png"}]})
            return httpx.Response(200, content=b"\x89PNG")

        image = await FalImageClient(transport=httpx.MockTransport(handler)).synthesize("A stadium at night")

        self.assertEqual(image, b"\x89PNG")
        self.assertTrue(calls[0][1].endswith("/fal-ai/flux/schnell"))
        self.assertEqual(calls[1], ("GET", "https://cdn.fal.test/img.png"))

    async def test_no_image_url(self) -> None:
        client = FalImageClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"images": []})))
        with self.assertRaises(ValueError):
            await client.synthesize("anything")


class _BlockedResponse:
    """Gemini response whose candidate was blocked: `.text` raises."""

    @property
    def text(self) -> str:
        raise ValueError("The candidate's safety ratings blocked the response")


class TestGeminiClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        patcher = mock.patch("reelsynth.services.gemini_client.genai")
        self.genai = patcher.start()
        self.addCleanup(patcher.stop)
        self.model = self.genai.GenerativeModel.return_value
        self.model.generate_content_async = mock.AsyncMock()

    async def test_generate_returns_stripped_text(self) -> None:
        self.model.generate_content_async.return_value = SimpleNamespace(text='  {"scenes": []}\n')

        reply = await GeminiClient().generate("write scenes")

        self.assertEqual(reply, '{"scenes": []}')
        args, kwargs = self.model.generate_content_async.call_args
        self.assertEqual(args[0], "write scenes")
        self.assertIn("timeout", kwargs["request_options"])

    async def test_blocked_candidate_returns_empty_text(self) -> None:
        self.model.generate_content_async.return_value = _BlockedResponse()
        self.assertEqual(await GeminiClient().generate("write scenes"), "")

    async def test_blocked_candidate_fails_script_generation(self) -> None:
        self.model.generate_content_async.return_value = _BlockedResponse()
        with self.assertRaises(GenerationError):
            await SceneScriptGenerator(GeminiClient(), scene_count=3).generate("Lionel Messi", "football")


class TestStorageService(unittest.TestCase):
    def setUp(self) -> None:
        self.minio = mock.MagicMock()
        self.storage = StorageService(client=self.minio)

    def test_upload_guesses_content_type(self) -> None:
        self.storage.upload_file("abc.mp4", "/tmp/final.mp4")
        self.minio.fput_object.assert_called_once_with(
            self.storage.bucket, "abc.mp4", "/tmp/final.mp4", content_type="video/mp4"
        )

    def test_presigned_url_expiry(self) -> None:
        self.minio.presigned_get_object.return_value = "http://minio:9000/output/abc.mp4?sig"
        url = self.storage.get_presigned_url("abc.mp4", expires_seconds=6 * 86400)

        self.assertEqual(url, "http://minio:9000/output/abc.mp4?sig")
        expires = self.minio.presigned_get_object.call_args.kwargs["expires"]
        self.assertEqual(expires.days, 6)

    def test_delete(self) -> None:
        self.storage.delete_object("abc.mp4")
        self.minio.remove_object.assert_called_once_with(self.storage.bucket, "abc.mp4")

    def test_ensure_buckets_reports_unreachable_storage(self) -> None:
        self.minio.bucket_exists.side_effect = ConnectionError("refused")
        self.assertFalse(self.storage.ensure_buckets())

    def test_ensure_buckets_creates_missing_bucket(self) -> None:
        self.minio.bucket_exists.return_value = False
        self.assertTrue(self.storage.ensure_buckets())
        self.minio.make_bucket.assert_called_once_with(self.storage.bucket)


if __name__ == "__main__":
    unittest.main()
