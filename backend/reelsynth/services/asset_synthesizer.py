import asyncio
from typing import List

from reelsynth.errors import PipelineError, SynthesisError
from reelsynth.models import Job
from reelsynth.services.capabilities import ImageSynthesizer, SpeechSynthesizer
from reelsynth.services.fanout import gather_all_or_nothing
from reelsynth.services.workspace import WorkspaceManager


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


class AssetSynthesizer:
    """
    Generates the narration audio and the still image of every scene.

    All 2 x N requests run concurrently. Scene asset fields are only set once
    every request has succeeded, so a failed stage leaves no partial scene.
    """

    def __init__(self, speech: SpeechSynthesizer, images: ImageSynthesizer):
        self.speech = speech
        self.images = images

    async def synthesize_narration(self, job: Job, index: int, text: str) -> str:
        if not text or not text.strip():
            raise SynthesisError("Narration text is empty", scene_index=index)
        try:
            audio = await self.speech.synthesize(text)
        except Exception as e:
            raise SynthesisError("Speech synthesis failed", diagnostic=str(e), scene_index=index) from e
        if not audio:
            raise SynthesisError("Speech synthesis returned no audio", scene_index=index)

        path = WorkspaceManager.asset_path(job, index, "mp3")
        await asyncio.to_thread(_write_bytes, path, audio)
        return path

    async def synthesize_image(self, job: Job, index: int, prompt: str) -> str:
        if not prompt or not prompt.strip():
            raise SynthesisError("Image prompt is empty", scene_index=index)
        try:
            image = await self.images.synthesize(prompt)
        except Exception as e:
            raise SynthesisError("Image synthesis failed", diagnostic=str(e), scene_index=index) from e
        if not image:
            raise SynthesisError("Image synthesis returned no data", scene_index=index)

        path = WorkspaceManager.asset_path(job, index, "png")
        await asyncio.to_thread(_write_bytes, path, image)
        return path

    async def run(self, job: Job) -> None:
        tasks = []
        for scene in job.scenes:
            tasks.append(self.synthesize_narration(job, scene.index, scene.narration_text))
            tasks.append(self.synthesize_image(job, scene.index, scene.image_prompt))

        def wrap(position: int, exc: Exception) -> Exception:
            if isinstance(exc, PipelineError):
                return exc
            return SynthesisError(
                "Asset synthesis failed",
                diagnostic=str(exc),
                scene_index=job.scenes[position // 2].index,
            )

        print(f"🎙️ Job {job.job_id}: synthesizing {len(tasks)} assets for {len(job.scenes)} scenes", flush=True)
        results: List[str] = await gather_all_or_nothing(tasks, wrap)

        for i, scene in enumerate(job.scenes):
            scene.audio_asset = results[2 * i]
            scene.image_asset = results[2 * i + 1]
        print(f"✅ Job {job.job_id}: all {len(results)} assets ready", flush=True)
