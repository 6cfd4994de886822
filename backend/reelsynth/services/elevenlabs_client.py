import asyncio
import os
from typing import Optional, List, Dict, Any

import httpx

from reelsynth.config import get_settings
from reelsynth.models import CaptionWord


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class ElevenLabsClient:
    """
    Client for the ElevenLabs speech APIs.

    Serves two capabilities:
    - text-to-speech: narration audio (mp3 bytes) for each scene
    - speech-to-text: word-level timings of that narration for subtitles
    Uses direct HTTP requests.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = get_settings()
        self.api_key = self.settings.elevenlabs.api_key
        self.base_url = self.settings.elevenlabs.base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.elevenlabs.request_timeout_seconds,
            transport=self._transport,
        )

    async def synthesize(
        self,
        text: str,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> bytes:
        """
        Generate narration audio for `text`.

        Returns:
            MP3 bytes (may be empty if the upstream returned no body; caller validates)
        """
        voice = voice_id or self.settings.elevenlabs.voice_id
        url = f"{self.base_url}/text-to-speech/{voice}"

        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        data = {
            "text": text,
            "model_id": model_id or self.settings.elevenlabs.model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
            },
        }

        async with self._client() as client:
            response = await client.post(url, json=data, headers=headers)
            response.raise_for_status()
            return response.content

    async def transcribe(self, audio_path: str) -> List[CaptionWord]:
        """
        Transcribe an audio file into word-level timings.

        Returns:
            Words in spoken order with start/end in milliseconds. Spacing and
            audio-event tokens are dropped. Empty list if the upstream had no words.
        """
        url = f"{self.base_url}/speech-to-text"
        headers = {"xi-api-key": self.api_key}
        form = {
            "model_id": self.settings.elevenlabs.stt_model_id,
            "timestamps_granularity": "word",
        }

        audio = await asyncio.to_thread(_read_bytes, audio_path)
        files = {"file": (os.path.basename(audio_path), audio, "audio/mpeg")}

        async with self._client() as client:
            response = await client.post(url, data=form, files=files, headers=headers)
            response.raise_for_status()
            result = response.json()

        return self.parse_words(result)

    @staticmethod
    def parse_words(result: Dict[str, Any]) -> List[CaptionWord]:
        words: List[CaptionWord] = []
        for item in (result or {}).get("words") or []:
            if item.get("type", "word") != "word":
                continue
            text = str(item.get("text") or "").strip()
            if not text or item.get("start") is None or item.get("end") is None:
                continue
            start_ms = int(round(float(item["start"]) * 1000))
            end_ms = int(round(float(item["end"]) * 1000))
            words.append(CaptionWord(text=text, start_ms=start_ms, end_ms=max(start_ms, end_ms)))
        return words
