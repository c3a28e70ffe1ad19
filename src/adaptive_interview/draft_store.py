"""Persistence utilities for interview drafts and submissions."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import redis
from redis import Redis
from redis.exceptions import RedisError

from .drafts import DraftSnapshot, parse_timestamp
from .interview_engine import InterviewSubmission

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 10
REDIS_SOCKET_TIMEOUT = 2.0


class ResumeTokenError(ValueError):
    """Raised when a resume token is malformed, unknown or expired."""


class DraftRepository:
    """Persists drafts as JSON files and mirrors them into Redis."""

    def __init__(
        self,
        drafts_dir: Path,
        submission_log: Path,
        redis_url: Optional[str],
        *,
        max_age_days: int = 7,
    ) -> None:
        self._drafts_dir = drafts_dir
        self._drafts_dir.mkdir(parents=True, exist_ok=True)
        self._submission_log = submission_log
        self._submission_log.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None
        self._max_age = timedelta(days=max_age_days)

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                    socket_timeout=REDIS_SOCKET_TIMEOUT,
                    socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    @property
    def drafts_dir(self) -> Path:
        return self._drafts_dir

    @property
    def submission_log(self) -> Path:
        return self._submission_log

    def _draft_path(self, session_id: str) -> Path:
        safe_id = "".join(
            char for char in session_id if char.isalnum() or char in "-_"
        )
        if not safe_id:
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._drafts_dir / f"{safe_id}.json"

    def save_snapshot(self, session_id: str, snapshot: DraftSnapshot) -> None:
        """Write ``snapshot`` to disk and, when configured, to Redis."""

        record = snapshot.to_dict()
        blob = json.dumps(record, ensure_ascii=False)
        path = self._draft_path(session_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(blob, encoding="utf-8")
        tmp_path.replace(path)

        client = self._get_redis()
        if client:
            key = f"draft:{session_id}"
            try:
                client.set(key, blob)
                client.zadd(
                    "drafts:index",
                    {session_id: datetime.now(timezone.utc).timestamp()},
                )
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis persistence failed for %s: %s", key, exc)

    def load_snapshot(self, session_id: str) -> Optional[DraftSnapshot]:
        """Return the stored draft, preferring Redis over the disk copy."""

        raw: Optional[str] = None
        client = self._get_redis()
        if client:
            key = f"draft:{session_id}"
            try:
                value = client.get(key)
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis lookup failed for %s: %s", key, exc)
                value = None
            if value:
                raw = value.decode("utf-8") if isinstance(value, bytes) else str(value)
        if raw is None:
            path = self._draft_path(session_id)
            if not path.exists():
                return None
            raw = path.read_text(encoding="utf-8")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable draft for session %s.", session_id)
            return DraftSnapshot()
        if not isinstance(payload, dict):
            return DraftSnapshot()
        return DraftSnapshot.from_dict(payload)

    def delete_snapshot(self, session_id: str) -> None:
        path = self._draft_path(session_id)
        if path.exists():
            path.unlink()
        client = self._get_redis()
        if client:
            try:
                client.delete(f"draft:{session_id}")
                client.zrem("drafts:index", session_id)
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis cleanup failed for %s: %s", session_id, exc)

    def issue_resume_token(self, session_id: str) -> str:
        """Create a token that lets the user resume ``session_id`` later."""

        if not self._draft_path(session_id).exists():
            raise ResumeTokenError(f"No saved draft for session {session_id}.")
        token = secrets.token_urlsafe(16)
        record = {
            "session_id": session_id,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
        blob = json.dumps(record, ensure_ascii=False)
        tokens_dir = self._drafts_dir / "tokens"
        tokens_dir.mkdir(parents=True, exist_ok=True)
        (tokens_dir / f"{token}.json").write_text(blob, encoding="utf-8")

        client = self._get_redis()
        if client:
            try:
                client.set(
                    f"resume:{token}",
                    blob,
                    ex=int(self._max_age.total_seconds()),
                )
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis persistence failed for token: %s", exc)
        return token

    def resolve_resume_token(
        self,
        token: str,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        """Return the session id for ``token`` or raise ResumeTokenError."""

        token = token.strip()
        if len(token) < MIN_TOKEN_LENGTH or not all(
            char.isalnum() or char in "-_" for char in token
        ):
            raise ResumeTokenError("Invalid resume token.")
        record = self._read_token(token)
        if record is None:
            raise ResumeTokenError("Unknown resume token.")
        session_id = record.get("session_id")
        issued_at = parse_timestamp(record.get("issued_at"))
        if not isinstance(session_id, str) or issued_at is None:
            raise ResumeTokenError("Invalid resume token.")
        current = now or datetime.now(timezone.utc)
        if current - issued_at > self._max_age:
            raise ResumeTokenError("Resume token has expired.")
        return session_id

    def _read_token(self, token: str) -> Optional[Dict[str, Any]]:
        raw: Optional[str] = None
        client = self._get_redis()
        if client:
            try:
                value = client.get(f"resume:{token}")
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis lookup failed for token: %s", exc)
                value = None
            if value:
                raw = value.decode("utf-8") if isinstance(value, bytes) else str(value)
        if raw is None:
            path = self._drafts_dir / "tokens" / f"{token}.json"
            if not path.exists():
                return None
            raw = path.read_text(encoding="utf-8")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return payload if isinstance(payload, dict) else None

    def archive_submission(
        self,
        session_id: str,
        submission: InterviewSubmission,
        *,
        document: Optional[Dict[str, Any]] = None,
        quality: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append a submitted interview to the JSONL archive."""

        record: Dict[str, Any] = {
            "session_id": session_id,
            "archived_at": datetime.now(timezone.utc).isoformat(),
            "submission": submission.to_dict(),
            "document": document,
            "quality": quality,
        }
        blob = json.dumps(record, ensure_ascii=False)
        with self._submission_log.open("a", encoding="utf-8") as handle:
            handle.write(blob + "\n")

        client = self._get_redis()
        if client:
            key = f"submission:{session_id}"
            try:
                client.set(key, blob)
                client.zadd(
                    "submissions:index",
                    {session_id: datetime.now(timezone.utc).timestamp()},
                )
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis persistence failed for %s: %s", key, exc)


class DraftAutoSaver:
    """Periodically persists the snapshot returned by ``capture``."""

    def __init__(
        self,
        repository: DraftRepository,
        session_id: str,
        capture: Callable[[], DraftSnapshot],
        *,
        interval: float = 30.0,
    ) -> None:
        self._repository = repository
        self._session_id = session_id
        self._capture = capture
        self._interval = interval
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def save_now(self) -> bool:
        """Persist one snapshot; failures are logged and reported as False."""

        try:
            snapshot = self._capture()
        except Exception as exc:  # noqa: BLE001 - auto-save must never raise
            logger.warning(
                "Auto-save failed for session %s: %s", self._session_id, exc
            )
            return False
        return self._persist(snapshot)

    async def save_in_background(self) -> bool:
        """Capture on the loop, then write from a worker thread."""

        try:
            snapshot = self._capture()
        except Exception as exc:  # noqa: BLE001 - auto-save must never raise
            logger.warning(
                "Auto-save failed for session %s: %s", self._session_id, exc
            )
            return False
        return await asyncio.to_thread(self._persist, snapshot)

    def _persist(self, snapshot: DraftSnapshot) -> bool:
        try:
            self._repository.save_snapshot(self._session_id, snapshot)
        except Exception as exc:  # noqa: BLE001 - auto-save must never raise
            logger.warning(
                "Auto-save failed for session %s: %s", self._session_id, exc
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.save_in_background()
