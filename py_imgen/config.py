"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env for local runs, without overriding values already in the environment
BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    for key, value in file_env.items():
        if key not in os.environ and value is not None:
            os.environ[key] = value


class Settings(BaseSettings):
    """Library settings pulled from environment variables."""

    model_config = SettingsConfigDict(env_prefix="PY_IMGEN_", extra="ignore")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Logging format (console or json)")

    # Hexagonal pupil vector export
    mask_level_file: str = Field(
        default="fpm_level.txt", description="Segment mask-level table for vector export"
    )
    index_map_name: str = Field(
        default="indexmap", description="Buffer holding the segment index map"
    )
    vector_export_dir: Optional[str] = Field(
        default=None, description="Directory receiving hexcoord.txt and hexcoord_pt.txt"
    )


settings = Settings()
