"""Tests for end-to-end session orchestration."""

import asyncio
import json
from dataclasses import replace

import pytest

from adaptive_interview.config import AppSettings, ModelSettings
from adaptive_interview.document_agent import DocumentGenerationError
from adaptive_interview.draft_store import DraftRepository
from adaptive_interview.drafts import DraftSnapshot
from adaptive_interview.interview_engine import EnginePhase
from adaptive_interview.sessions import InterviewSession

from .fakes import FakeChatClient, good_document

ANSWERS = [
    "We sell handmade leather shoes online to young professionals",
    "Our biggest problem is slow fulfilment from the workshop",
    "Double monthly orders within six months",
]
GOOD_EVALUATION = json.dumps(
    {"success": True, "evaluation": {"hasEnoughDetail": True, "detailScore": 9}}
)


def _settings(tmp_path, **overrides):
    settings = AppSettings(
        model=ModelSettings(
            provider="openai",
            model="test-model",
            endpoint=None,
            api_key="test-key",
            api_version=None,
        ),
        output_dir=tmp_path,
        redis_url=None,
        autosave_interval=60,
    )
    return replace(settings, **overrides)


def _document_reply(document=None):
    return json.dumps((document or good_document()).to_dict())


def _bad_document_reply():
    document = replace(good_document(), problem_statement="Slow checkout.")
    document.objectives = []
    return _document_reply(document)


async def _interview(session):
    session.start()
    for answer in ANSWERS:
        await session.handle_answer(answer)
    session.confirm_selection(["Marketing & Growth"])
    assert session.engine.phase is EnginePhase.REVIEW
    return await session.submit()


class TestInterviewSession:

    def test_full_run_produces_passing_document(self, tmp_path):
        client = FakeChatClient([GOOD_EVALUATION] * 3 + [_document_reply()])
        session = InterviewSession.create(_settings(tmp_path), "sess-1", chat_client=client)

        async def run():
            await _interview(session)
            return await session.finalize()

        result = asyncio.run(run())

        assert result.quality.passed
        assert result.passes == 1
        assert result.outstanding_issues == []
        archived = (tmp_path / "submissions.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(archived) == 2
        assert json.loads(archived[-1])["quality"]["passed"] is True
        assert not (tmp_path / "drafts" / "sess-1.json").exists()

    def test_failed_check_regenerates_with_corrections(self, tmp_path):
        client = FakeChatClient(
            [GOOD_EVALUATION] * 3 + [_bad_document_reply(), _document_reply()]
        )
        session = InterviewSession.create(_settings(tmp_path), "sess-2", chat_client=client)

        async def run():
            await _interview(session)
            return await session.finalize()

        result = asyncio.run(run())

        assert result.passes == 2
        assert result.quality.passed
        retry_prompt = client.calls[-1][-1].content
        assert "The previous draft was rejected" in retry_prompt
        assert "Too few objectives" in retry_prompt

    def test_repeated_issues_stop_regeneration(self, tmp_path):
        client = FakeChatClient([GOOD_EVALUATION] * 3 + [_bad_document_reply()] * 3)
        session = InterviewSession.create(
            _settings(tmp_path, quality_max_passes=5), "sess-3", chat_client=client
        )

        async def run():
            await _interview(session)
            return await session.finalize()

        result = asyncio.run(run())

        assert result.passes == 2
        assert not result.quality.passed
        assert result.outstanding_issues == list(result.quality.issues)

    def test_generation_failure_is_retryable(self, tmp_path):
        client = FakeChatClient(
            [GOOD_EVALUATION] * 3 + [ConnectionError("offline"), _document_reply()]
        )
        session = InterviewSession.create(_settings(tmp_path), "sess-4", chat_client=client)

        async def run():
            await _interview(session)
            with pytest.raises(DocumentGenerationError):
                await session.finalize()
            assert session.engine.phase is EnginePhase.SUBMITTED
            return await session.finalize()

        assert asyncio.run(run()).quality.passed

    def test_finalize_requires_submission(self, tmp_path):
        session = InterviewSession.create(
            _settings(tmp_path), "sess-5", chat_client=FakeChatClient()
        )
        with pytest.raises(RuntimeError):
            asyncio.run(session.finalize())


class TestResume:

    def test_saved_draft_is_resumed(self, tmp_path):
        settings = _settings(tmp_path)
        repository = DraftRepository(
            settings.drafts_dir, settings.submission_log, None
        )
        repository.save_snapshot(
            "sess-6",
            DraftSnapshot(
                per_segment_answers={
                    "business_idea": ANSWERS[0],
                    "current_challenges": ANSWERS[1],
                }
            ),
        )

        session = InterviewSession.create(
            settings, "sess-6", chat_client=FakeChatClient(), repository=repository
        )

        assert session.resumed
        assert session.engine.current_index == 2

    def test_close_saves_unfinished_interview_and_token_resumes_it(self, tmp_path):
        settings = _settings(tmp_path)
        client = FakeChatClient([GOOD_EVALUATION])
        session = InterviewSession.create(settings, "sess-7", chat_client=client)

        async def run():
            session.start()
            await session.handle_answer(ANSWERS[0])
            token = session.issue_resume_token()
            await session.close()
            return token

        token = asyncio.run(run())

        assert session.engine.is_closed
        resumed = InterviewSession.create(
            settings, resume_token=token, chat_client=FakeChatClient()
        )
        assert resumed.session_id == "sess-7"
        assert resumed.engine.current_index == 1
        assert resumed.engine.segments[0].final_answer == ANSWERS[0]
