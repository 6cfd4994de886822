from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass, field


class JobStage(str, Enum):
    """Stage of a video synthesis job."""
    SCRIPTING = "scripting"
    ASSET_GENERATION = "asset_generation"
    CAPTIONING = "captioning"
    RENDERING = "rendering"
    ASSEMBLING = "assembling"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


# Forward-only stage order; FAILED is reachable from any non-terminal stage.
STAGE_ORDER = [
    JobStage.SCRIPTING,
    JobStage.ASSET_GENERATION,
    JobStage.CAPTIONING,
    JobStage.RENDERING,
    JobStage.ASSEMBLING,
    JobStage.PUBLISHING,
    JobStage.DONE,
]

TERMINAL_STAGES = {JobStage.DONE, JobStage.FAILED}


class CaptionWord(BaseModel):
    """One transcribed word with its timing in milliseconds."""
    text: str
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)


class SubtitleCue(BaseModel):
    """A group of words shown together on screen."""
    index: int
    start_ms: int
    end_ms: int
    text: str


class Scene(BaseModel):
    """One narrative unit rendered into one video segment."""
    index: int
    image_prompt: str
    narration_text: str
    audio_asset: Optional[str] = None
    image_asset: Optional[str] = None
    caption_asset: Optional[str] = None
    captions: List[CaptionWord] = []
    segment_asset: Optional[str] = None


class VideoRecord(BaseModel):
    """A published video as stored in the owner's catalog."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    url: str
    thumbnail_url: str = Field(alias="thumbnailUrl")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt",
    )


class CreateVideoRequest(BaseModel):
    """Request model for generating a video."""
    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(..., min_length=1, max_length=200)
    domain: str = Field(..., min_length=1, max_length=200)
    owner_id: str = Field(..., min_length=1, alias="ownerId")


class VideoListResponse(BaseModel):
    """Response for listing or deleting videos."""
    success: bool = True
    videos: List[VideoRecord]


@dataclass
class Job:
    """
    In-flight synthesis job. Owned exclusively by the orchestrator.
    """
    job_id: str
    owner_id: str
    workspace_path: str = ""
    scenes: List[Scene] = field(default_factory=list)
    stage: JobStage = JobStage.SCRIPTING
    workspace_released: bool = False

    def advance(self, next_stage: JobStage) -> None:
        """
        Move to the next stage. Only the immediate successor or FAILED is allowed.
        """
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Job {self.job_id} is already terminal ({self.stage.value})")
        if next_stage == JobStage.FAILED:
            self.stage = next_stage
            return
        expected = STAGE_ORDER[STAGE_ORDER.index(self.stage) + 1]
        if next_stage != expected:
            raise RuntimeError(
                f"Job {self.job_id}: illegal transition {self.stage.value} -> {next_stage.value}"
            )
        self.stage = next_stage
