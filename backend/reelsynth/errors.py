"""
Error taxonomy for the video synthesis pipeline.

Every stage raises a subclass of PipelineError. The orchestrator tags the
error with the stage it failed in; stage components tag the scene index.
"""

from typing import Optional


class PipelineError(Exception):
    """
    Base pipeline failure.
    - message: short, user-facing text
    - diagnostic: sanitized upstream / ffmpeg output, only exposed when enabled
    """

    def __init__(
        self,
        message: str,
        *,
        diagnostic: Optional[str] = None,
        stage: Optional[str] = None,
        scene_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic
        self.stage = stage
        self.scene_index = scene_index

    def __str__(self) -> str:
        if self.scene_index is not None:
            return f"{self.message} (scene {self.scene_index})"
        return self.message


class ValidationError(PipelineError):
    """Input or generated content has the wrong shape."""


class ParseError(ValidationError):
    """Upstream text is not well-formed structured data."""


class UpstreamCapabilityError(PipelineError):
    """A generation capability failed or returned nothing usable."""


class GenerationError(UpstreamCapabilityError):
    pass


class SynthesisError(UpstreamCapabilityError):
    pass


class TranscriptionError(UpstreamCapabilityError):
    pass


class SubprocessError(PipelineError):
    """ffmpeg exited non-zero or produced no output."""


class RenderError(SubprocessError):
    pass


class AssemblyError(SubprocessError):
    pass


class StorageError(PipelineError):
    """Object store put/sign/delete failed."""


class PublishError(StorageError):
    pass


class PersistenceError(PipelineError):
    """Catalog read/write failed."""


class WorkspaceError(PipelineError):
    """Staging directory could not be created. Treated as process-fatal."""


class VideoNotFoundError(PipelineError):
    pass
