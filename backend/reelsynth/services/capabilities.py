"""
Interfaces of the external capabilities the pipeline consumes.

Concrete adapters (Gemini, ElevenLabs, fal.ai, MinIO, Redis) are built once at
startup and injected; tests substitute in-memory fakes.
"""

from typing import List, Optional, Protocol

from reelsynth.models import CaptionWord, VideoRecord


class ScriptModel(Protocol):
    async def generate(self, prompt: str) -> str: ...


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes: ...


class ImageSynthesizer(Protocol):
    async def synthesize(self, prompt: str) -> bytes: ...


class Transcriber(Protocol):
    async def transcribe(self, audio_path: str) -> List[CaptionWord]: ...


class ObjectStore(Protocol):
    def upload_file(self, object_name: str, file_path: str, content_type: Optional[str] = None) -> str: ...

    def get_presigned_url(self, object_name: str, expires_seconds: int) -> str: ...

    def delete_object(self, object_name: str) -> None: ...


class CatalogStore(Protocol):
    def read(self, owner_id: str) -> List[VideoRecord]: ...

    def append(self, owner_id: str, record: VideoRecord) -> List[VideoRecord]: ...

    def remove(self, owner_id: str, title: str) -> Optional[VideoRecord]: ...
