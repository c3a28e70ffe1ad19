"""Tests for environment-driven settings."""

import json

import pytest

from adaptive_interview.config import AppSettings
from adaptive_interview.segments import DEFAULT_SEGMENT_PLAN

OPTIONAL_VARS = (
    "MAF_MODEL_PROVIDER",
    "MAF_MODEL_ENDPOINT",
    "MAF_MODEL_API_VERSION",
    "INTERVIEW_REDIS_URL",
    "INTERVIEW_COLLABORATOR_TIMEOUT",
    "INTERVIEW_AUTOSAVE_INTERVAL",
    "INTERVIEW_QUALITY_MAX_PASSES",
    "INTERVIEW_DRAFT_MAX_AGE_DAYS",
    "INTERVIEW_SEGMENT_PLAN",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in OPTIONAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MAF_MODEL", "gpt-test")
    monkeypatch.setenv("MAF_MODEL_API_KEY", "secret")
    monkeypatch.setenv("INTERVIEW_OUTPUT_DIR", str(tmp_path / "out"))
    return monkeypatch


class TestAppSettings:

    def test_defaults(self, env, tmp_path):
        settings = AppSettings.load()

        assert settings.model.provider == "azure-openai"
        assert settings.model.model == "gpt-test"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.collaborator_timeout == 30.0
        assert settings.autosave_interval == 30.0
        assert settings.quality_max_passes == 2
        assert settings.draft_max_age_days == 7
        assert settings.segment_plan == DEFAULT_SEGMENT_PLAN
        assert settings.drafts_dir == tmp_path / "out" / "drafts"
        assert (tmp_path / "out").is_dir()

    def test_requires_model(self, env):
        env.delenv("MAF_MODEL")
        with pytest.raises(RuntimeError, match="MAF_MODEL"):
            AppSettings.load()

    def test_blank_redis_url_disables_mirroring(self, env):
        env.setenv("INTERVIEW_REDIS_URL", "  ")
        assert AppSettings.load().redis_url is None

    def test_numeric_overrides(self, env):
        env.setenv("INTERVIEW_COLLABORATOR_TIMEOUT", "2.5")
        env.setenv("INTERVIEW_QUALITY_MAX_PASSES", "4")
        settings = AppSettings.load()
        assert settings.collaborator_timeout == 2.5
        assert settings.quality_max_passes == 4

    @pytest.mark.parametrize(
        "name, value",
        [
            ("INTERVIEW_QUALITY_MAX_PASSES", "many"),
            ("INTERVIEW_DRAFT_MAX_AGE_DAYS", "0"),
            ("INTERVIEW_AUTOSAVE_INTERVAL", "-1"),
        ],
    )
    def test_invalid_numbers(self, env, name, value):
        env.setenv(name, value)
        with pytest.raises(RuntimeError, match=name):
            AppSettings.load()

    def test_custom_segment_plan(self, env, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(
            json.dumps([{"id": "pitch", "initial_question": "Pitch it."}]),
            encoding="utf-8",
        )
        env.setenv("INTERVIEW_SEGMENT_PLAN", str(path))
        assert [d.id for d in AppSettings.load().segment_plan] == ["pitch"]

    def test_invalid_segment_plan(self, env, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(
            json.dumps([{"id": "a", "initial_question": "Q", "detail_threshold": 0}]),
            encoding="utf-8",
        )
        env.setenv("INTERVIEW_SEGMENT_PLAN", str(path))
        with pytest.raises(RuntimeError, match="INTERVIEW_SEGMENT_PLAN"):
            AppSettings.load()
