"""Environment-based configuration for SnapClassify."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SNAPCLASSIFY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SNAPCLASSIFY_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # Bundled resources
    model_path: str = "models/resnet50.onnx"
    model_repo_id: str | None = None
    model_filename: str = "resnet50.onnx"
    labels_path: str = "models/labels.txt"

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Preprocessing
    input_size: int = Field(default=224, ge=1)
    normalize: bool = False

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)

    log_level: str = "INFO"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
