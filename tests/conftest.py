# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across unit and integration tests:
- Settings pointing at a temporary SQLite replica
- An opened LocalReplicaStore
- An in-memory PostgREST-style backend served through httpx.MockTransport
- A RemoteClient wired to that backend
- Builders for courses, lessons and progress documents
"""

import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from src.core.config.settings import (
    LocalStoreSettings,
    RemoteSettings,
    Settings,
    SyncSettings,
)
from src.infrastructure.database import LocalReplicaStore
from src.infrastructure.events import EventBus
from src.infrastructure.remote import REMOTE_TABLES, RemoteClient
from src.models.content import Course, CourseIcon, Lesson, QuizQuestion
from src.models.progress import CourseProgress, LessonStatus, StudentProgress

REMOTE_BASE_URL = "http://remote.test"
REST_PREFIX = "/rest/v1/"


# =============================================================================
# Fake Remote Backend
# =============================================================================


class FakeRemoteBackend:
    """In-memory stand-in for the remote table API.

    Supports ``select=*`` reads with ``eq.``/``in.`` filters, upserts keyed
    by the table's primary key and filtered deletes. Lessons reference
    courses: a lesson upsert for an unknown course and a course delete
    with remaining lessons are rejected with a foreign key error, like the
    real backend without server-side cascades.

    Attributes:
        tables: Rows per table, keyed by primary key.
        requests: Every request received, in order.
        media: Video payloads served by absolute URL.
        offline: When True every request fails with a connection error.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in REMOTE_TABLES}
        self.requests: list[httpx.Request] = []
        self.media: dict[str, bytes] = {}
        self.offline = False
        self._failures: list[dict[str, Any]] = []

    # -- test helpers ---------------------------------------------------------

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        key = REMOTE_TABLES[table]
        for row in rows:
            self.tables[table][str(row[key])] = dict(row)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    def row(self, table: str, key: str) -> dict[str, Any] | None:
        return self.tables[table].get(key)

    def fail(
        self,
        method: str,
        table: str,
        status: int = 400,
        message: str = "Bad Request",
        details: str | None = None,
        hint: str | None = None,
        code: str | None = None,
        times: int | None = None,
        row_id: str | None = None,
    ) -> None:
        """Make matching requests fail with a PostgREST error body.

        Args:
            row_id: Only fail writes touching this id.
            times: Number of failures before succeeding again, None for always.
        """
        self._failures.append(
            {
                "method": method,
                "table": table,
                "status": status,
                "body": {"message": message, "details": details, "hint": hint, "code": code},
                "times": times,
                "row_id": row_id,
            }
        )

    def clear_failures(self) -> None:
        self._failures.clear()

    def requests_for(self, method: str, table: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == f"{REST_PREFIX}{table}"
        ]

    # -- transport --------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("Network unreachable", request=request)

        path = request.url.path
        if not path.startswith(REST_PREFIX):
            data = self.media.get(str(request.url))
            if data is None:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, content=data)

        table = path[len(REST_PREFIX):]
        if table not in self.tables:
            return self._error(404, "relation does not exist", code="42P01")

        params = dict(request.url.params)
        filters = {k: v for k, v in params.items() if k not in ("select", "on_conflict")}
        body = json.loads(request.content) if request.content else None

        failure = self._match_failure(request.method, table, filters, body)
        if failure is not None:
            return httpx.Response(failure["status"], json=failure["body"])

        if request.method == "GET":
            return httpx.Response(200, json=self._select(table, filters))
        if request.method == "POST":
            return self._upsert(table, body or [])
        if request.method == "DELETE":
            return self._delete(table, filters)
        return self._error(405, "Method not allowed")

    @staticmethod
    def _error(status: int, message: str, **extra: Any) -> httpx.Response:
        return httpx.Response(
            status,
            json={"message": message, "details": extra.get("details"), "hint": extra.get("hint"), "code": extra.get("code")},
        )

    def _match_failure(
        self,
        method: str,
        table: str,
        filters: dict[str, str],
        body: Any,
    ) -> dict[str, Any] | None:
        for failure in self._failures:
            if failure["method"] != method or failure["table"] != table:
                continue
            if failure["row_id"] is not None and not self._touches(table, failure["row_id"], filters, body):
                continue
            if failure["times"] is not None:
                if failure["times"] <= 0:
                    continue
                failure["times"] -= 1
            return failure
        return None

    @staticmethod
    def _touches(table: str, row_id: str, filters: dict[str, str], body: Any) -> bool:
        key = REMOTE_TABLES[table]
        if isinstance(body, list):
            return any(str(row.get(key)) == row_id for row in body)
        return any(row_id in unquote(value) for value in filters.values())

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, str]) -> bool:
        for column, expression in filters.items():
            operator, _, operand = unquote(expression).partition(".")
            value = str(row.get(column))
            if operator == "eq" and value != operand:
                return False
            if operator == "in":
                options = [item.strip('"') for item in operand.strip("()").split(",")]
                if value not in options:
                    return False
        return True

    def _select(self, table: str, filters: dict[str, str]) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables[table].values() if self._matches(row, filters)]

    def _upsert(self, table: str, rows: list[dict[str, Any]]) -> httpx.Response:
        key = REMOTE_TABLES[table]
        if table == "lessons":
            for row in rows:
                if str(row.get("course_id")) not in self.tables["courses"]:
                    return self._error(
                        409,
                        'insert or update on table "lessons" violates foreign key constraint "lessons_course_id_fkey"',
                        details=f'Key (course_id)=({row.get("course_id")}) is not present in table "courses".',
                        code="23503",
                    )
        for row in rows:
            existing = self.tables[table].get(str(row[key]), {})
            self.tables[table][str(row[key])] = {**existing, **row}
        return httpx.Response(201)

    def _delete(self, table: str, filters: dict[str, str]) -> httpx.Response:
        doomed = [pk for pk, row in self.tables[table].items() if self._matches(row, filters)]
        if table == "courses":
            referenced = {str(row.get("course_id")) for row in self.tables["lessons"].values()}
            if referenced & set(doomed):
                return self._error(
                    409,
                    'update or delete on table "courses" violates foreign key constraint "lessons_course_id_fkey" on table "lessons"',
                    hint="Delete the referencing lessons first.",
                    code="23503",
                )
        for pk in doomed:
            del self.tables[table][pk]
        return httpx.Response(204)


# =============================================================================
# Settings and Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of the temporary replica database file."""
    return tmp_path / "replica.db"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    """Provide settings for a temporary replica and the fake remote."""
    return Settings(
        environment="development",
        debug=True,
        log_level="DEBUG",
        local_store=LocalStoreSettings(path=str(db_path)),
        remote=RemoteSettings(base_url=REMOTE_BASE_URL, api_key="test-anon-key"),  # type: ignore[arg-type]
        sync=SyncSettings(),
    )


@pytest_asyncio.fixture
async def store(settings: Settings) -> AsyncGenerator[LocalReplicaStore, None]:
    """Provide an opened local replica store."""
    replica = LocalReplicaStore.from_settings(settings.local_store)
    await replica.open()
    yield replica
    await replica.close()


@pytest.fixture
def fake_remote() -> FakeRemoteBackend:
    """Provide an empty fake remote backend."""
    return FakeRemoteBackend()


@pytest_asyncio.fixture
async def remote_client(
    settings: Settings,
    fake_remote: FakeRemoteBackend,
) -> AsyncGenerator[RemoteClient, None]:
    """Provide a RemoteClient talking to the fake backend."""
    client = RemoteClient(settings.remote, transport=httpx.MockTransport(fake_remote.handler))
    yield client
    await client.close()


@pytest.fixture
def event_bus() -> EventBus:
    """Provide a fresh event bus."""
    return EventBus()


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_lesson() -> Callable[..., Lesson]:
    """Build lessons with a one-question quiz."""

    def _make(lesson_id: str, **overrides: Any) -> Lesson:
        data: dict[str, Any] = {
            "id": lesson_id,
            "title": f"Lesson {lesson_id}",
            "content": f"<p>Content of {lesson_id}</p>",
            "quiz": [
                QuizQuestion(question="2 + 2?", options=["3", "4"], correct_answer_index=1)
            ],
        }
        data.update(overrides)
        return Lesson(**data)

    return _make


@pytest.fixture
def make_course(make_lesson: Callable[..., Lesson]) -> Callable[..., Course]:
    """Build courses; lesson ids given as strings become default lessons."""

    def _make(
        course_id: str,
        lessons: list[Lesson | str] | None = None,
        for_class: int = 5,
        author_id: str = "teacher_1",
        **overrides: Any,
    ) -> Course:
        data: dict[str, Any] = {
            "id": course_id,
            "title": f"Course {course_id}",
            "description": f"Description of {course_id}",
            "icon": CourseIcon.BOOK,
            "author_id": author_id,
            "for_class": for_class,
            "lessons": [
                make_lesson(item) if isinstance(item, str) else item for item in lessons or []
            ],
        }
        data.update(overrides)
        return Course(**data)

    return _make


@pytest.fixture
def make_progress() -> Callable[..., StudentProgress]:
    """Build a progress document from {course_id: {lesson_id: score}}."""

    def _make(
        student_id: str,
        scores: dict[str, dict[str, float]] | None = None,
        total_lessons: dict[str, int] | None = None,
        student_name: str | None = None,
    ) -> StudentProgress:
        course_progress = []
        for course_id, lessons in (scores or {}).items():
            statuses = [
                LessonStatus(lesson_id=lesson_id, attempts=1, final_score=score)
                for lesson_id, score in lessons.items()
            ]
            scored = [status.final_score for status in statuses if status.final_score > 0]
            course_progress.append(
                CourseProgress(
                    course_id=course_id,
                    completed_lessons=len(scored),
                    total_lessons=(total_lessons or {}).get(course_id, len(statuses)),
                    score=sum(scored) / len(scored) if scored else 0,
                    lesson_status=statuses,
                )
            )
        return StudentProgress(
            student_id=student_id,
            student_name=student_name or f"Student {student_id}",
            course_progress=course_progress,
        )

    return _make


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (local SQLite + fake remote)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")
