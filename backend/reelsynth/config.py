from __future__ import annotations

import os
from typing import Any, Dict, Tuple

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class GeminiConfig(BaseModel):
    api_key: str = ""
    model: str = "gemini-2.0-flash"
    request_timeout_seconds: int = 90
    temperature: float = 0.7


class ElevenLabsConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.elevenlabs.io/v1"
    voice_id: str = "21m00Tcm4TlvDq8ikWAM"  # Default Rachel voice
    model_id: str = "eleven_multilingual_v2"
    stt_model_id: str = "scribe_v1"
    request_timeout_seconds: float = 120.0


class FalConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://fal.run"
    image_model: str = "fal-ai/flux/schnell"
    # Portrait frames for short-form video
    image_size: str = "portrait_16_9"
    request_timeout_seconds: float = 120.0


class MinioConfig(BaseModel):
    endpoint: str = "minio:9000"
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"
    bucket_output: str = "output"
    secure: bool = False
    # Hostname used in signed URLs handed to browsers (internal endpoint if empty)
    public_endpoint: str = ""


class RedisConfig(BaseModel):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    # Allow setting a full URL directly (takes precedence over individual fields)
    full_url: str = ""
    catalog_prefix: str = "catalog:"

    @property
    def url(self) -> str:
        if self.full_url:
            return self.full_url
        if self.password:
            return f"redis://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class StorageConfig(BaseModel):
    temp_storage_path: str = "./temp_storage"


class FFmpegConfig(BaseModel):
    threads: int = 0  # 0 = let ffmpeg decide
    video_codec: str = "libx264"
    render_timeout_seconds: int = 600
    concat_timeout_seconds: int = 600
    duration_timeout_seconds: int = 60
    # Allowed drift between the assembled video and the sum of its scenes (~1 frame at 25fps)
    duration_tolerance_seconds: float = 0.04


class PipelineConfig(BaseModel):
    scene_count: int = Field(default=3, ge=1)
    words_per_cue: int = Field(default=3, ge=1)
    signed_url_expiry_days: int = Field(default=6, ge=1, le=7)


class AppConfig(BaseModel):
    app_name: str = "Reel Synth"
    debug: bool = False
    # Attach the sanitized upstream/ffmpeg diagnostic to error responses
    expose_diagnostics: bool = False
    # Comma-separated list of allowed frontend origins for CORS.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
        env_nested_delimiter="__",
    )

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    elevenlabs: ElevenLabsConfig = Field(default_factory=ElevenLabsConfig)
    fal: FalConfig = Field(default_factory=FalConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[Any, ...]:
        """
        Support BOTH:
        - Nested env vars (e.g., REDIS__HOST) via env_nested_delimiter
        - Flat env vars (e.g., REDIS_HOST, GEMINI_API_KEY) via a legacy mapping source

        Priority: init > env > dotenv > legacy > secrets
        """

        def legacy_flat_env_source() -> Dict[str, Any]:
            # Flat keys may come from the real environment or from the .env file;
            # pydantic's dotenv loader only understands the nested form.
            env: Dict[str, str] = {}
            try:
                from dotenv import dotenv_values  # local import to avoid hard dependency at import-time

                env_file = cls.model_config.get("env_file", ".env")
                if env_file:
                    file_vals = {k: (v or "") for k, v in dotenv_values(env_file).items()}
                    env.update({k: v for k, v in file_vals.items() if k})
            except Exception:
                # If dotenv parsing fails, fall back to environment only.
                pass

            # Environment variables override .env values
            env.update({k: v for k, v in os.environ.items()})

            def get(var: str, default: str = "") -> str:
                v = env.get(var)
                return default if v is None else v

            def get_bool(var: str) -> Any:
                """
                Parse a boolean-like env var value.
                Returns None if missing or unparseable (caller should ignore).
                """
                if env.get(var) is None:
                    return None
                raw = get(var).strip().lower()
                if raw in ("true", "1", "yes", "y", "on"):
                    return True
                if raw in ("false", "0", "no", "n", "off"):
                    return False
                return None

            def get_int(var: str) -> Any:
                if env.get(var) is None:
                    return None
                try:
                    return int(get(var).strip())
                except ValueError:
                    return None

            out: Dict[str, Any] = {}

            def set_path(path: Tuple[str, ...], value: Any) -> None:
                d: Dict[str, Any] = out
                for key in path[:-1]:
                    d = d.setdefault(key, {})
                d[path[-1]] = value

            string_vars = {
                "GEMINI_API_KEY": ("gemini", "api_key"),
                "GEMINI_MODEL": ("gemini", "model"),
                "ELEVENLABS_API_KEY": ("elevenlabs", "api_key"),
                "ELEVENLABS_VOICE_ID": ("elevenlabs", "voice_id"),
                "ELEVENLABS_MODEL_ID": ("elevenlabs", "model_id"),
                "ELEVENLABS_STT_MODEL_ID": ("elevenlabs", "stt_model_id"),
                "FAL_KEY": ("fal", "api_key"),
                "FAL_IMAGE_MODEL": ("fal", "image_model"),
                "MINIO_ENDPOINT": ("minio", "endpoint"),
                "MINIO_ACCESS_KEY": ("minio", "access_key"),
                "MINIO_SECRET_KEY": ("minio", "secret_key"),
                "MINIO_BUCKET_OUTPUT": ("minio", "bucket_output"),
                "MINIO_PUBLIC_ENDPOINT": ("minio", "public_endpoint"),
                "REDIS_URL": ("redis", "full_url"),
                "REDIS_HOST": ("redis", "host"),
                "REDIS_PASSWORD": ("redis", "password"),
                "TEMP_STORAGE_PATH": ("storage", "temp_storage_path"),
                "VIDEO_CODEC": ("ffmpeg", "video_codec"),
                "APP_NAME": ("app", "app_name"),
                "CORS_ORIGINS": ("app", "cors_origins"),
            }
            for var, path in string_vars.items():
                if env.get(var) is not None:
                    set_path(path, get(var))

            int_vars = {
                "REDIS_PORT": ("redis", "port"),
                "REDIS_DB": ("redis", "db"),
                "FFMPEG_THREADS": ("ffmpeg", "threads"),
                "RENDER_TIMEOUT_SECONDS": ("ffmpeg", "render_timeout_seconds"),
                "SCENE_COUNT": ("pipeline", "scene_count"),
                "WORDS_PER_CUE": ("pipeline", "words_per_cue"),
                "SIGNED_URL_EXPIRY_DAYS": ("pipeline", "signed_url_expiry_days"),
            }
            for var, path in int_vars.items():
                v = get_int(var)
                if v is not None:
                    set_path(path, v)

            bool_vars = {
                "MINIO_SECURE": ("minio", "secure"),
                "DEBUG": ("app", "debug"),
                "EXPOSE_DIAGNOSTICS": ("app", "expose_diagnostics"),
            }
            for var, path in bool_vars.items():
                val = get_bool(var)
                if val is not None:
                    set_path(path, val)

            return out

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            legacy_flat_env_source,
            file_secret_settings,
        )

    @property
    def redis_url(self) -> str:
        return self.redis.url

    @property
    def temp_dir(self) -> str:
        return self.storage.temp_storage_path


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
