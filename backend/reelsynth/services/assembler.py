import asyncio
import os
from typing import Iterable, List, Optional, Sequence

from reelsynth.config import get_settings
from reelsynth.errors import AssemblyError
from reelsynth.models import Job
from reelsynth.services.ffmpeg_utils import FFmpegError, media_duration, run_ffmpeg_capture


class Assembler:
    """Joins the rendered scene segments, in scene order, into the final video."""

    def __init__(self) -> None:
        self.settings = get_settings()

    @staticmethod
    def write_manifest(list_path: str, paths: Iterable[str]) -> str:
        with open(list_path, "w", encoding="utf-8") as f:
            for p in paths:
                # concat demuxer expects `file '...path...'`
                escaped = os.path.abspath(p).replace("'", "'\\''")
                f.write(f"file '{escaped}'\n")
        return list_path

    def build_command(self, list_path: str, output_path: str) -> List[str]:
        return [
            "ffmpeg",
            "-y",
            "-v",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            list_path,
            "-c",
            "copy",
            "-movflags",
            "+faststart",
            output_path,
        ]

    async def concatenate(
        self,
        job: Job,
        ordered_segment_paths: Sequence[str],
        expected_duration: Optional[float] = None,
    ) -> str:
        if not ordered_segment_paths:
            raise AssemblyError("No segments to concatenate")

        list_path = self.write_manifest(
            os.path.join(job.workspace_path, f"{job.job_id}_concat.txt"),
            ordered_segment_paths,
        )
        output_path = os.path.join(job.workspace_path, f"{job.job_id}_final.mp4")

        print(f"🧩 Job {job.job_id}: concatenating {len(ordered_segment_paths)} segments", flush=True)
        try:
            await asyncio.to_thread(
                run_ffmpeg_capture,
                self.build_command(list_path, output_path),
                check=True,
                timeout=self.settings.ffmpeg.concat_timeout_seconds,
            )
        except FFmpegError as e:
            if e.stderr:
                print(f"--- FFmpeg stderr (concat) ---\n{e.stderr}\n--- end ffmpeg stderr ---", flush=True)
            raise AssemblyError("Video assembly failed", diagnostic=e.message) from e

        if not os.path.exists(output_path) or os.path.getsize(output_path) <= 0:
            raise AssemblyError("FFmpeg produced no final video")

        if expected_duration is not None:
            await self._check_duration(job, output_path, expected_duration)

        return output_path

    async def _check_duration(self, job: Job, output_path: str, expected: float) -> None:
        """Stream-copy concat should preserve the summed scene durations (within ~1 frame)."""
        try:
            actual = await asyncio.to_thread(
                media_duration, output_path, timeout=self.settings.ffmpeg.duration_timeout_seconds
            )
        except FFmpegError as e:
            print(f"⚠️ Job {job.job_id}: could not read final duration: {e}", flush=True)
            return

        drift = abs(actual - expected)
        if drift > self.settings.ffmpeg.duration_tolerance_seconds:
            print(
                f"⚠️ Job {job.job_id}: final video is {actual:.2f}s, scenes sum to {expected:.2f}s "
                f"(drift {drift:.3f}s)",
                flush=True,
            )
        else:
            print(f"✅ Job {job.job_id}: final video {actual:.2f}s", flush=True)
