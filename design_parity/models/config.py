"""Configuration models for the validation pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CDP_PORT = 9222


class Viewport(BaseModel):
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)
    name: str = "desktop"

    def as_dict(self) -> dict:
        return {"width": self.width, "height": self.height}


class CompareOptions(BaseModel):
    """Options recognised by the image comparator."""

    threshold: float = Field(default=0.1, ge=0.0, le=1.0)  # colour distance, lower = stricter
    include_aa: bool = False  # count anti-aliased pixels as mismatches
    alpha: float = Field(default=0.1, ge=0.0, le=1.0)  # opacity of the faded original in the diff
    include_diff_image: bool = True
    pass_threshold: float = Field(default=90.0, ge=0.0, le=100.0)


class BrowserConfig(BaseModel):
    port: int = DEFAULT_CDP_PORT
    host: str = "127.0.0.1"
    check_timeout_seconds: float = 2.0
    connect_timeout_seconds: float = 5.0
    launch_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 0.5
    navigation_timeout_seconds: float = 30.0
    settle_delay_ms: int = 500
    chrome_path: Optional[str] = None  # overrides the known install paths

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"


class TilingConfig(BaseModel):
    threshold_px: int = 4096
    chunk_size: int = 2048
    thumbnail_size: int = 512
    max_thumbnails: int = 6


class SectionConfig(BaseModel):
    gap_px: int = 50
    neutral_color: str = "#ffffff"


class ReferenceConfig(BaseModel):
    fetch_timeout_seconds: float = 60.0
    max_attempts: int = 3
    retry_delay_seconds: float = 1.0
    auth_header: Optional[str] = None
    auth_token: Optional[str] = None

    @field_validator("auth_token", mode="before")
    @classmethod
    def resolve_env_token(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v

    def headers(self) -> dict[str, str]:
        if self.auth_header and self.auth_token:
            return {self.auth_header: self.auth_token}
        return {}


class ValidatorConfig(BaseModel):
    # Browser
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    # Comparison
    compare: CompareOptions = Field(default_factory=CompareOptions)

    # Large targets
    tiling: TilingConfig = Field(default_factory=TilingConfig)

    # Section grouping
    sections: SectionConfig = Field(default_factory=SectionConfig)

    # Reference image download
    reference: ReferenceConfig = Field(default_factory=ReferenceConfig)

    # Responsive breakpoints for validate_breakpoints
    breakpoints: list[Viewport] = Field(
        default_factory=lambda: [
            Viewport(width=1280, height=720, name="desktop"),
            Viewport(width=768, height=1024, name="tablet"),
            Viewport(width=375, height=812, name="mobile"),
        ]
    )

    # Layout / dimension tolerances
    tolerance_px: int = 5
    tolerance_percent: float = 2.0

    # Reporting
    max_recommendations: int = 10
    report_output_dir: str = "./parity-reports"

    @classmethod
    def load(cls, path: str | Path) -> "ValidatorConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
