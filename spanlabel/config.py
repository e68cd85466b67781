# spanlabel/config.py
"""
spanlabel configuration: single source of truth via Pydantic Settings.

Resolution order: explicit arguments > env vars (SPANLABEL_*) > .env file > defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpanlabelConfig(BaseSettings):
    """Central configuration for the span labeling pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="SPANLABEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- LLM ---
    lm: str = "gpt-4o-mini"
    api_key: str = ""
    api_base: str | None = None
    provider: str = "openai"
    lm_temperature: float = 0.0
    # "auto" uses the reason-then-structure strategy for mini models only.
    lm_two_pass: Literal["auto", "always", "never"] = "auto"
    request_timeout_s: float = 30.0
    # SDK-level retries stay off; the repair loop owns retry policy.
    max_retries: int = 0
    stream: bool = False

    # --- Labeling defaults ---
    max_spans: int = Field(default=20, ge=1, le=50)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    template_version: str = "v1"
    non_technical_word_limit: int = 6
    allow_overlap: bool = False
    enable_repair: bool = True

    # --- Fast path ---
    fastpath_enabled: bool = True
    fastpath_min_words: int = 3
    # Long texts need an open-vocabulary classifier; none ships in-process.
    fastpath_require_classifier: bool = False

    # --- Critic ---
    # What happens to camera verbs labeled as actions without a nearby "camera".
    camera_review_mode: Literal["repair", "review", "ignore"] = "review"

    # --- Cache ---
    cache_ttl_s: int = 3600
    cache_short_ttl_s: int = 300
    cache_max_entries: int = 100

    # --- Chunking ---
    chunk_max_words: int = 400

    # --- Paths ---
    home_dir: Path = Field(default_factory=lambda: Path.home() / ".spanlabel")

    @property
    def log_dir(self) -> Path:
        return self.home_dir / "logs"


@lru_cache(maxsize=1)
def get_config() -> SpanlabelConfig:
    """Return the global config singleton."""
    return SpanlabelConfig()
