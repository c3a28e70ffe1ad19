"""Configuration helpers for the adaptive interview engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from importlib import import_module
from pathlib import Path
from typing import List, Optional

from .segments import (
    DEFAULT_SEGMENT_PLAN,
    SegmentDefinition,
    load_segment_plan,
    validate_segment_plan,
)


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


def _default_plan() -> List[SegmentDefinition]:
    return list(DEFAULT_SEGMENT_PLAN)


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    output_dir: Path
    redis_url: Optional[str]
    collaborator_timeout: float = 30.0
    autosave_interval: float = 30.0
    quality_max_passes: int = 2
    draft_max_age_days: int = 7
    segment_plan: List[SegmentDefinition] = field(default_factory=_default_plan)

    @property
    def drafts_dir(self) -> Path:
        return self.output_dir / "drafts"

    @property
    def submission_log(self) -> Path:
        return self.output_dir / "submissions.jsonl"

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("MAF_MODEL_PROVIDER", "azure-openai")
        model = os.getenv("MAF_MODEL")
        if not model:
            raise RuntimeError("MAF_MODEL environment variable is required.")
        endpoint = os.getenv("MAF_MODEL_ENDPOINT")
        api_key = os.getenv("MAF_MODEL_API_KEY")
        if not api_key:
            raise RuntimeError(
                "MAF_MODEL_API_KEY environment variable is required."
            )
        api_version = os.getenv("MAF_MODEL_API_VERSION")
        output_dir = Path(os.getenv("INTERVIEW_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        redis_url: Optional[str] = os.getenv(
            "INTERVIEW_REDIS_URL", "redis://localhost:6379/0"
        )
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        collaborator_timeout = _read_float(
            "INTERVIEW_COLLABORATOR_TIMEOUT", "30"
        )
        autosave_interval = _read_float("INTERVIEW_AUTOSAVE_INTERVAL", "30")
        quality_max_passes = _read_int("INTERVIEW_QUALITY_MAX_PASSES", "2")
        draft_max_age_days = _read_int("INTERVIEW_DRAFT_MAX_AGE_DAYS", "7")
        plan_path = os.getenv("INTERVIEW_SEGMENT_PLAN", "").strip()
        if plan_path:
            try:
                segment_plan = load_segment_plan(Path(plan_path))
            except ValueError as exc:
                raise RuntimeError(
                    f"INTERVIEW_SEGMENT_PLAN is invalid: {exc}"
                ) from exc
        else:
            segment_plan = _default_plan()
            validate_segment_plan(segment_plan)
        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
            ),
            output_dir=output_dir,
            redis_url=redis_url,
            collaborator_timeout=collaborator_timeout,
            autosave_interval=autosave_interval,
            quality_max_passes=quality_max_passes,
            draft_max_age_days=draft_max_age_days,
            segment_plan=segment_plan,
        )


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be at least 1")
    return value


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be greater than zero")
    return value


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
