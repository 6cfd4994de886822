"""
Pipeline Worker - Scene-Based Video Synthesis

Turns a subject/domain brief into a published short-form video:
1. Generate the scene script (Gemini)
2. Synthesize narration (ElevenLabs) and a still image (fal.ai) per scene
3. Transcribe each narration into word timings (ElevenLabs speech-to-text)
4. Render each scene with burned-in subtitles (FFmpeg)
5. Concatenate the scene segments (FFmpeg concat demuxer)
6. Upload, sign and record the video in the owner's catalog

Each fan-out stage is all-or-nothing. The job's workspace is removed on
every outcome.
"""

import traceback as tb
import uuid
from dataclasses import dataclass
from typing import Optional

from reelsynth.errors import PipelineError
from reelsynth.models import TERMINAL_STAGES, Job, JobStage, VideoRecord
from reelsynth.services.assembler import Assembler
from reelsynth.services.asset_synthesizer import AssetSynthesizer
from reelsynth.services.captioner import Captioner
from reelsynth.services.capabilities import (
    CatalogStore,
    ImageSynthesizer,
    ObjectStore,
    ScriptModel,
    SpeechSynthesizer,
    Transcriber,
)
from reelsynth.services.library import VideoLibrary
from reelsynth.services.publisher import Publisher
from reelsynth.services.script_generator import SceneScriptGenerator
from reelsynth.services.segment_renderer import SegmentRenderer
from reelsynth.services.subtitles import scene_duration_seconds
from reelsynth.services.workspace import WorkspaceManager


@dataclass
class PipelineServices:
    """Capability adapters shared by every job, built once at startup."""
    script_model: ScriptModel
    speech: SpeechSynthesizer
    images: ImageSynthesizer
    transcriber: Transcriber
    storage: ObjectStore
    catalog: CatalogStore
    workspace: WorkspaceManager
    storage_ready: bool = False

    @property
    def library(self) -> VideoLibrary:
        return VideoLibrary(self.storage, self.catalog)


class PipelineOrchestrator:
    """
    Drives one job through the stage sequence.

    A stage is only entered after the previous one succeeded for every scene.
    Any failure moves the job to FAILED and surfaces exactly one PipelineError
    tagged with the stage it happened in.
    """

    def __init__(self, services: PipelineServices, scene_count: Optional[int] = None):
        self.services = services
        self.workspace = services.workspace
        self.script_generator = SceneScriptGenerator(services.script_model, scene_count=scene_count)
        self.asset_synthesizer = AssetSynthesizer(services.speech, services.images)
        self.captioner = Captioner(services.transcriber)
        self.segment_renderer = SegmentRenderer()
        self.assembler = Assembler()
        self.publisher = Publisher(services.storage, services.catalog, services.workspace)

    async def create_video(self, subject: str, domain: str, owner_id: str) -> VideoRecord:
        job = Job(job_id=uuid.uuid4().hex, owner_id=owner_id)
        print(f"🚀 Job {job.job_id}: starting video for '{subject}' ({domain}), owner {owner_id}", flush=True)

        try:
            job.workspace_path = self.workspace.create(job.job_id)

            job.scenes = await self.script_generator.generate(subject, domain)
            print(f"📜 Job {job.job_id}: script ready with {len(job.scenes)} scenes", flush=True)

            job.advance(JobStage.ASSET_GENERATION)
            await self.asset_synthesizer.run(job)

            job.advance(JobStage.CAPTIONING)
            await self.captioner.run(job)

            job.advance(JobStage.RENDERING)
            await self.segment_renderer.run(job)

            job.advance(JobStage.ASSEMBLING)
            expected = sum(scene_duration_seconds(s.captions) for s in job.scenes)
            final_path = await self.assembler.concatenate(
                job,
                [s.segment_asset for s in job.scenes],
                expected_duration=expected,
            )

            job.advance(JobStage.PUBLISHING)
            record = await self.publisher.publish(job, final_path, job.scenes[0].image_asset, owner_id)

            job.advance(JobStage.DONE)
            print(f"🎉 Job {job.job_id}: done -> {record.title}", flush=True)
            return record

        except PipelineError as e:
            if e.stage is None:
                e.stage = job.stage.value
            self._fail(job, e)
            raise

        except Exception as e:
            error = PipelineError("Video generation failed unexpectedly", diagnostic=str(e), stage=job.stage.value)
            print(tb.format_exc(), flush=True)
            self._fail(job, error)
            raise error from e

        finally:
            self.workspace.release(job)

    def _fail(self, job: Job, error: PipelineError) -> None:
        scene = f", scene {error.scene_index}" if error.scene_index is not None else ""
        print(f"❌ Job {job.job_id} failed at {error.stage}{scene}: {error.message}", flush=True)
        if error.diagnostic:
            print(f"   {error.diagnostic}", flush=True)
        if job.stage not in TERMINAL_STAGES:
            job.advance(JobStage.FAILED)
