import os
import shutil
from typing import Optional

from reelsynth.config import get_settings
from reelsynth.errors import WorkspaceError
from reelsynth.models import Job


class WorkspaceManager:
    """
    Per-job staging directories for intermediate artifacts.

    Directories are keyed by job id, so concurrent jobs of the same owner
    never share files.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = os.path.abspath(root or get_settings().temp_dir)

    def create(self, job_id: str) -> str:
        """Create (or reuse) the workspace for `job_id` and return its absolute path."""
        path = os.path.join(self.root, job_id)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Could not create workspace for job {job_id}", diagnostic=str(e))
        return path

    def destroy(self, path: str) -> None:
        """
        Recursively remove a workspace. Never raises: an orphaned directory
        must not mask the error that triggered the cleanup.
        """
        if not path:
            return
        try:
            if os.path.exists(path):
                shutil.rmtree(path)
                print(f"🧹 Removed workspace {path}", flush=True)
        except Exception as e:
            print(f"⚠️ Failed to remove workspace {path}: {e}", flush=True)

    def release(self, job: Job) -> None:
        """Destroy the job's workspace once; later calls are no-ops."""
        if job.workspace_released:
            return
        job.workspace_released = True
        self.destroy(job.workspace_path)

    @staticmethod
    def asset_path(job: Job, index: int, ext: str, suffix: str = "") -> str:
        """Absolute path of a per-scene artifact, e.g. `{workspace}/{job_id}_0.mp3`."""
        name = f"{job.job_id}_{index}{suffix}.{ext}"
        return os.path.join(job.workspace_path, name)
