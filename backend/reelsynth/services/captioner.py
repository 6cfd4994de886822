import asyncio
import json
import os
from typing import List, Tuple

from reelsynth.errors import PipelineError, TranscriptionError
from reelsynth.models import CaptionWord, Job, Scene
from reelsynth.services.capabilities import Transcriber
from reelsynth.services.fanout import gather_all_or_nothing
from reelsynth.services.workspace import WorkspaceManager


def _write_track(path: str, track: List[CaptionWord]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump([w.model_dump() for w in track], f)


class Captioner:
    """
    Transcribes each scene's narration into word-level timings (the CaptionTrack)
    and keeps a JSON copy of it in the workspace.
    """

    def __init__(self, transcriber: Transcriber):
        self.transcriber = transcriber

    async def transcribe_scene(self, job: Job, scene: Scene) -> Tuple[str, List[CaptionWord]]:
        audio = scene.audio_asset
        if not audio or not os.path.exists(audio):
            raise TranscriptionError("Narration audio is missing", scene_index=scene.index)

        try:
            words = await self.transcriber.transcribe(audio)
        except Exception as e:
            raise TranscriptionError("Transcription failed", diagnostic=str(e), scene_index=scene.index) from e

        track: List[CaptionWord] = sorted(
            (w for w in (words or []) if w.text.strip()),
            key=lambda w: w.start_ms,
        )
        if not track:
            raise TranscriptionError("Transcription returned no word timings", scene_index=scene.index)

        path = WorkspaceManager.asset_path(job, scene.index, "json")
        await asyncio.to_thread(_write_track, path, track)

        return path, track

    async def run(self, job: Job) -> None:
        def wrap(position: int, exc: Exception) -> Exception:
            if isinstance(exc, PipelineError):
                return exc
            return TranscriptionError(
                "Transcription failed", diagnostic=str(exc), scene_index=job.scenes[position].index
            )

        print(f"📝 Job {job.job_id}: transcribing {len(job.scenes)} narrations", flush=True)
        results = await gather_all_or_nothing(
            [self.transcribe_scene(job, scene) for scene in job.scenes],
            wrap,
        )

        for scene, (path, track) in zip(job.scenes, results):
            scene.caption_asset = path
            scene.captions = track
        print(f"✅ Job {job.job_id}: captions ready", flush=True)
