# /quickscan/config/settings.py

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Archive prefixes for uploads, keyed by the step that collected them
DEFAULT_FILE_CATEGORIES: Dict[str, str] = {
    "upload_archief": "03_Archieftekeningen",
    "upload_palenplan": "04_Palenplan",
    "upload_sondering": "05_Sonderingen",
    "upload_schadefotos": "06_Schadefotos",
    "upload_archieffotos": "07_Archief_Fotos",
    "upload_structuurtekening": "08_Structuurtekeningen",
}


class Settings(BaseSettings):
    """
    Quickscan configuration, read from the environment and an optional .env file.

    Collaborators receive a Settings instance explicitly; the flow engine
    itself reads no configuration.
    """
    # Deployment
    environment: str = Field(default="production", description="production | development")
    log_level: str = "INFO"

    # Flow
    flow_definition_path: Optional[Path] = None

    # Packaging
    package_output_dir: Path = Path("output")
    package_file_categories: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_FILE_CATEGORIES))
    address_step_id: str = "project_address"
    building_year_step_id: str = "project_bouwjaar"

    # ---------------- Validators ---------------- #

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("production", "development", "staging", "test"):
            raise ValueError("ENVIRONMENT must be one of production, development, staging, test")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
