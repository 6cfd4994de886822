"""
Video generation and library endpoints.

Callers identify the catalog owner with `ownerId`; authentication happens
upstream of this service.
"""

from fastapi import APIRouter, HTTPException, Query, Request

from reelsynth.config import get_settings
from reelsynth.errors import (
    PipelineError,
    ValidationError,
    VideoNotFoundError,
    WorkspaceError,
)
from reelsynth.models import CreateVideoRequest, VideoListResponse, VideoRecord
from reelsynth.services.library import VideoLibrary
from reelsynth.workers.pipeline import PipelineOrchestrator


router = APIRouter()


def status_for(error: PipelineError) -> int:
    if isinstance(error, VideoNotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, WorkspaceError):
        return 500
    # Upstream capability, ffmpeg, storage and catalog failures
    return 502


def to_http_exception(error: PipelineError) -> HTTPException:
    detail = {"message": str(error)}
    if error.diagnostic and get_settings().app.expose_diagnostics:
        detail["diagnostic"] = error.diagnostic
    return HTTPException(status_code=status_for(error), detail=detail)


def _orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


def _library(request: Request) -> VideoLibrary:
    return request.app.state.services.library


@router.post("", response_model=VideoRecord, response_model_by_alias=True)
async def create_video(body: CreateVideoRequest, request: Request):
    """
    Generate, render and publish a video for `subject` in `domain`.

    Runs the whole pipeline inline; expect the request to take minutes.
    """
    try:
        return await _orchestrator(request).create_video(body.subject, body.domain, body.owner_id)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("", response_model=VideoListResponse, response_model_by_alias=True)
async def list_videos(request: Request, owner_id: str = Query(..., alias="ownerId", min_length=1)):
    """List the owner's published videos (empty if they have none)."""
    try:
        videos = await _library(request).list_videos(owner_id)
    except PipelineError as e:
        raise to_http_exception(e)
    return VideoListResponse(success=True, videos=videos)


@router.delete("/{video_key}", response_model=VideoListResponse, response_model_by_alias=True)
async def delete_video(
    video_key: str,
    request: Request,
    owner_id: str = Query(..., alias="ownerId", min_length=1),
):
    """Delete a video from storage and from the owner's catalog; returns what's left."""
    try:
        videos = await _library(request).delete_video(owner_id, video_key)
    except PipelineError as e:
        raise to_http_exception(e)
    return VideoListResponse(success=True, videos=videos)
