from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root: two levels up from this file (config/settings.py)
ROOT_DIR: Path = Path(__file__).resolve().parent.parent

# Default cosine similarity needed to treat two signatures as the same person
SIMILARITY_THRESHOLD: float = 0.85


class DetectorSettings(BaseSettings):
    """YOLOv8 face locator settings."""

    model_config = SettingsConfigDict(env_prefix="DETECTOR_", extra="ignore")

    # Model path or Ultralytics hub name
    model_path: str = Field(
        default="models/yolov8n-face.pt",
        description="Path to YOLOv8 face model weights (.pt file).",
    )
    confidence_threshold: float = Field(
        default=0.5,
        ge=0.01,
        le=1.0,
        description="Minimum confidence score to accept a detected face.",
    )
    iou_threshold: float = Field(
        default=0.45,
        ge=0.01,
        le=1.0,
        description="Intersection-over-Union threshold for Non-Maximum Suppression.",
    )
    max_faces: int = Field(
        default=10,
        ge=1,
        description="Maximum number of candidate faces returned per image.",
    )
    input_size: int = Field(
        default=640,
        description="Input resolution (square) for YOLOv8 inference.",
    )
    # Device: 'cpu', 'cuda', 'cuda:0', 'mps'
    device: str = Field(
        default="cpu",
        description="Inference device: 'cpu', 'cuda', 'cuda:0', or 'mps'.",
    )


class EmbedderSettings(BaseSettings):
    """ArcFace signature generator settings."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDER_", extra="ignore")

    model_path: str = Field(
        default="models/w600k_r50.onnx",
        description="Path to the ArcFace ONNX recognition model.",
    )
    # Face crops are stretched to input_size x input_size before embedding
    input_size: int = Field(
        default=112,
        ge=16,
        description="Square input resolution expected by the embedding model.",
    )
    providers: List[str] = Field(
        default=["CPUExecutionProvider"],
        description="ONNX Runtime execution providers in priority order.",
    )
    ctx_id: int = Field(
        default=-1,
        description="InsightFace context id. -1 = CPU, 0 = first GPU.",
    )


class MatcherSettings(BaseSettings):
    """Gallery matching settings."""

    model_config = SettingsConfigDict(env_prefix="MATCHER_", extra="ignore")

    similarity_threshold: float = Field(
        default=SIMILARITY_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Cosine similarity at or above which a gallery record is a match.",
    )


class QueueSettings(BaseSettings):
    """Background inference queue settings."""

    model_config = SettingsConfigDict(env_prefix="QUEUE_", extra="ignore")

    task_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Maximum seconds a single queued pipeline run may take.",
    )


class APISettings(BaseSettings):
    """FastAPI server settings."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = Field(default="0.0.0.0", description="API server bind host.")
    port: int = Field(default=5000, ge=1, le=65535, description="API server port.")
    reload: bool = Field(default=False, description="Enable hot-reload (development only).")

    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins.",
    )
    api_prefix: str = Field(default="/api", description="URL prefix for all API routes.")

    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum upload file size in bytes (default 10 MB).",
    )
    allowed_image_types: List[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "image/bmp"],
        description="Accepted MIME types for photo uploads.",
    )


class StorageSettings(BaseSettings):
    """File storage settings."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    upload_dir: Path = Field(
        default=ROOT_DIR / "uploads",
        description="Directory where uploaded photos are kept.",
    )
    data_dir: Path = Field(
        default=ROOT_DIR / "data",
        description="Directory holding the persisted gallery and activity logs.",
    )
    gallery_file: str = Field(
        default="gallery.pkl",
        description="File name (inside data_dir) of the pickled gallery.",
    )
    activity_log_file: str = Field(
        default="activity_logs.pkl",
        description="File name (inside data_dir) of the pickled activity logs.",
    )

    @field_validator("upload_dir", "data_dir", mode="before")
    @classmethod
    def create_dirs(cls, v: str | Path) -> Path:
        path = Path(v)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ValueError(f"Cannot create directory {path}: {exc}") from exc
        return path

    @property
    def gallery_path(self) -> Path:
        return self.data_dir / self.gallery_file

    @property
    def activity_log_path(self) -> Path:
        return self.data_dir / self.activity_log_file


class LoggingSettings(BaseSettings):
    """Logging settings (Loguru-based)."""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level to emit.",
    )
    file_path: Optional[Path] = Field(
        default=ROOT_DIR / "logs" / "app.log",
        description="Path to the application log file. Empty disables file logging.",
    )
    rotation: str = Field(default="10 MB", description="Loguru rotation threshold.")
    retention: str = Field(default="7 days", description="How long to retain rotated log files.")
    json_logs: bool = Field(default=False, description="Emit logs as JSON objects.")
    # Append-only pipeline failure log, one line per failure
    error_log_path: Path = Field(
        default=ROOT_DIR / "logs" / "error.log",
        description="Path of the append-only pipeline failure log.",
    )


class Settings(BaseSettings):
    """
    Master settings object.

    Priority (highest → lowest):
      1. Environment variables  (e.g. MATCHER_SIMILARITY_THRESHOLD=0.9)
      2. .env file              (loaded from project root)
      3. Default values below
    """

    model_config = SettingsConfigDict(
        env_file=str(ROOT_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: str = Field(default="Suspect Re-identification API", description="Application name.")
    app_version: str = Field(default="1.0.0", description="Application version string.")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment.",
    )

    detector: DetectorSettings = Field(default_factory=DetectorSettings)
    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    api: APISettings = Field(default_factory=APISettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
