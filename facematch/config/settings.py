"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _load_env_file(path: str = ".env") -> None:
    """Populate os.environ from the provided .env file if it exists."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """Centralised service settings based on OS environment variables."""

    environment: str = "dev"
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 3000

    match_threshold: float = 0.6
    embedding_dimension: int = 512
    max_upload_bytes: int = 10 * 1024 * 1024
    extraction_timeout: float = 30.0
    extraction_workers: int = 4

    model_name: str = "buffalo_l"
    model_root: str = "~/.insightface"
    model_ctx_id: int = -1
    detection_size: int = 640
    heif_jpeg_quality: int = 95

    def __post_init__(self) -> None:
        if self.match_threshold < 0:
            raise ValueError("match_threshold must be >= 0")
        if self.embedding_dimension <= 0:
            raise ValueError("embedding_dimension must be > 0")
        if self.max_upload_bytes <= 0:
            raise ValueError("max_upload_bytes must be > 0")
        if self.extraction_timeout <= 0:
            raise ValueError("extraction_timeout must be > 0")
        if self.extraction_workers <= 0:
            raise ValueError("extraction_workers must be > 0")


def _build_settings() -> Settings:
    _load_env_file()

    return Settings(
        environment=os.getenv("ENVIRONMENT", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        match_threshold=float(os.getenv("MATCH_THRESHOLD", "0.6")),
        embedding_dimension=int(os.getenv("EMBEDDING_DIMENSION", "512")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
        extraction_timeout=float(os.getenv("EXTRACTION_TIMEOUT", "30")),
        extraction_workers=int(os.getenv("EXTRACTION_WORKERS", "4")),
        model_name=os.getenv("FACE_MODEL_NAME", "buffalo_l"),
        model_root=os.getenv("FACE_MODEL_ROOT", "~/.insightface"),
        model_ctx_id=int(os.getenv("FACE_MODEL_CTX_ID", "-1")),
        detection_size=int(os.getenv("FACE_DETECTION_SIZE", "640")),
        heif_jpeg_quality=int(os.getenv("HEIF_JPEG_QUALITY", "95")),
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance to avoid re-reading configuration."""

    return _build_settings()
