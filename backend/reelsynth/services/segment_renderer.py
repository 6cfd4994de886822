import asyncio
import os
from typing import List, Optional

from reelsynth.config import get_settings
from reelsynth.errors import PipelineError, RenderError
from reelsynth.models import Job, Scene
from reelsynth.services.fanout import gather_all_or_nothing
from reelsynth.services.ffmpeg_utils import FFmpegError, escape_filter_path, run_ffmpeg_capture
from reelsynth.services.subtitles import build_srt, group_cues, scene_duration_seconds
from reelsynth.services.workspace import WorkspaceManager


class SegmentRenderer:
    """
    Renders one video segment per scene: the still image looped for the
    narration's duration, the narration audio, and burned-in subtitles.
    """

    def __init__(self, words_per_cue: Optional[int] = None) -> None:
        self.settings = get_settings()
        self.words_per_cue = words_per_cue or self.settings.pipeline.words_per_cue

    def write_subtitles(self, job: Job, scene: Scene) -> str:
        cues = group_cues(scene.captions, self.words_per_cue)
        path = WorkspaceManager.asset_path(job, scene.index, "srt")
        with open(path, "w", encoding="utf-8") as f:
            f.write(build_srt(cues))
        return path

    def build_command(self, *, image_path: str, audio_path: str, srt_path: str,
                      duration: float, output_path: str) -> List[str]:
        return [
            "ffmpeg",
            "-y",
            "-v",
            "error",
            "-loop",
            "1",
            "-i",
            image_path,
            "-i",
            audio_path,
            "-c:v",
            self.settings.ffmpeg.video_codec,
            "-tune",
            "stillimage",
            "-pix_fmt",
            "yuv420p",
            "-c:a",
            "copy",
            "-t",
            f"{duration:.2f}",
            "-vf",
            f"subtitles=filename={escape_filter_path(srt_path)}",
            output_path,
        ]

    def _require_file(self, path: str, scene_index: int) -> None:
        """ffmpeg can exit 0 and still write nothing; treat that as a failed render."""
        if not os.path.exists(path) or os.path.getsize(path) <= 0:
            raise RenderError(f"FFmpeg produced no segment file: {os.path.basename(path)}",
                              scene_index=scene_index)

    async def render_scene(self, job: Job, scene: Scene) -> str:
        if not scene.image_asset or not scene.audio_asset or not scene.captions:
            raise RenderError("Scene is missing image, audio or captions", scene_index=scene.index)

        duration = scene_duration_seconds(scene.captions)
        srt_path = await asyncio.to_thread(self.write_subtitles, job, scene)
        output_path = WorkspaceManager.asset_path(job, scene.index, "mp4", suffix="_segment")

        cmd = self.build_command(
            image_path=scene.image_asset,
            audio_path=scene.audio_asset,
            srt_path=srt_path,
            duration=duration,
            output_path=output_path,
        )
        print(f"🎬 Job {job.job_id}: rendering scene {scene.index} ({duration:.2f}s)", flush=True)

        try:
            await asyncio.to_thread(
                run_ffmpeg_capture,
                cmd,
                check=True,
                timeout=self.settings.ffmpeg.render_timeout_seconds,
            )
        except FFmpegError as e:
            if e.stderr:
                print(f"--- FFmpeg stderr (scene {scene.index}) ---\n{e.stderr}\n--- end ffmpeg stderr ---", flush=True)
            raise RenderError("Segment render failed", diagnostic=e.message, scene_index=scene.index) from e

        self._require_file(output_path, scene.index)
        return output_path

    async def run(self, job: Job) -> None:
        def wrap(position: int, exc: Exception) -> Exception:
            if isinstance(exc, PipelineError):
                return exc
            return RenderError("Segment render failed", diagnostic=str(exc),
                               scene_index=job.scenes[position].index)

        results = await gather_all_or_nothing(
            [self.render_scene(job, scene) for scene in job.scenes],
            wrap,
        )

        for scene, path in zip(job.scenes, results):
            scene.segment_asset = path
        print(f"✅ Job {job.job_id}: {len(results)} segments rendered", flush=True)
