# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for the remote table backend.

The backend exposes a PostgREST-style API: one resource per table,
row filters as query parameters (``id=eq.course_1``), upserts as POST with
``Prefer: resolution=merge-duplicates`` keyed by the table's primary key,
and deletes as DELETE with filters. Writes are last-write-wins.

The client never caches state. Failures of any kind (transport errors,
4xx/5xx responses, rows that do not parse) surface as RemoteError carrying
the server-provided message, details and hint.

Example:
    >>> async with RemoteClient(settings.remote) as remote:
    ...     courses = await remote.fetch_courses()
    ...     await remote.upsert_course(courses[0])
"""

import logging
from typing import Any, Iterable

import httpx
from pydantic import ValidationError

from src.core.config.settings import RemoteSettings
from src.infrastructure.remote import wire
from src.models.content import CourseHeader, Lesson
from src.models.profile import Profile
from src.models.progress import StudentProgress
from src.models.sync import QueuedLesson

logger = logging.getLogger(__name__)

# Table name -> primary key column
REMOTE_TABLES: dict[str, str] = {
    "profiles": "id",
    "courses": "id",
    "lessons": "id",
    "student_progress": "student_id",
}


class RemoteError(Exception):
    """Raised when a remote operation fails.

    Attributes:
        message: Error description.
        table: Table the operation targeted.
        status_code: HTTP status, None for transport errors.
        details: Server-provided details.
        hint: Server-provided hint.
        code: Server-provided error code.
    """

    def __init__(
        self,
        message: str,
        table: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        hint: str | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.table = table
        self.status_code = status_code
        self.details = details
        self.hint = hint
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.code:
            parts.append(f"code={self.code}")
        if self.details:
            parts.append(f"details={self.details}")
        if self.hint:
            parts.append(f"hint={self.hint}")
        return " | ".join(parts)


def _error_from_response(response: httpx.Response, table: str) -> RemoteError:
    """Build a RemoteError from an error response body."""
    message = response.reason_phrase or "Remote request failed"
    details = hint = code = None
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or message
        details = body.get("details")
        hint = body.get("hint")
        code = body.get("code")
    elif response.text:
        details = response.text

    return RemoteError(
        message=str(message),
        table=table,
        status_code=response.status_code,
        details=str(details) if details is not None else None,
        hint=str(hint) if hint is not None else None,
        code=str(code) if code is not None else None,
    )


def _filter_params(filters: dict[str, Any]) -> dict[str, str]:
    """Encode equality / membership filters as PostgREST query parameters."""
    params: dict[str, str] = {}
    for column, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            quoted = ",".join(f'"{item}"' for item in value)
            params[column] = f"in.({quoted})"
        else:
            params[column] = f"eq.{value}"
    return params


class RemoteTable:
    """select/upsert/delete on one remote table.

    Attributes:
        name: Table name.
        primary_key: Primary key column used for upsert conflicts.
    """

    def __init__(self, client: "RemoteClient", name: str, primary_key: str) -> None:
        self._client = client
        self.name = name
        self.primary_key = primary_key

    async def select(self, **filters: Any) -> list[dict[str, Any]]:
        """Fetch rows matching all filters (all rows if none)."""
        params = {"select": "*", **_filter_params(filters)}
        response = await self._client._request("GET", self.name, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError(
                f"Malformed response from {self.name}",
                table=self.name,
                status_code=response.status_code,
                details=response.text[:500],
            ) from e
        if not isinstance(data, list):
            raise RemoteError(
                f"Expected a list of rows from {self.name}",
                table=self.name,
                status_code=response.status_code,
            )
        return data

    async def upsert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> None:
        """Insert or update rows keyed by the primary key."""
        payload = [rows] if isinstance(rows, dict) else list(rows)
        if not payload:
            return
        await self._client._request(
            "POST",
            self.name,
            params={"on_conflict": self.primary_key},
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def delete(self, **filters: Any) -> None:
        """Delete rows matching all filters.

        Raises:
            ValueError: If no filter is given.
        """
        if not filters:
            raise ValueError(f"Refusing to delete from {self.name} without a filter")
        await self._client._request("DELETE", self.name, params=_filter_params(filters))


class RemoteClient:
    """Typed gateway to the remote tables.

    Attributes:
        profiles: ``profiles`` table.
        courses: ``courses`` table.
        lessons: ``lessons`` table.
        student_progress: ``student_progress`` table.
    """

    def __init__(
        self,
        settings: RemoteSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Remote backend configuration.
            transport: Optional transport override (used by tests).
        """
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.rest_url,
            headers={**settings.auth_headers, "Content-Type": "application/json"},
            timeout=settings.timeout,
            transport=transport,
        )
        # Media URLs may point at other hosts; no backend credentials on them
        self._media_client = httpx.AsyncClient(
            timeout=settings.timeout,
            follow_redirects=True,
            transport=transport,
        )
        self.profiles = RemoteTable(self, "profiles", REMOTE_TABLES["profiles"])
        self.courses = RemoteTable(self, "courses", REMOTE_TABLES["courses"])
        self.lessons = RemoteTable(self, "lessons", REMOTE_TABLES["lessons"])
        self.student_progress = RemoteTable(
            self, "student_progress", REMOTE_TABLES["student_progress"]
        )

    async def close(self) -> None:
        """Close the HTTP clients."""
        await self._client.aclose()
        await self._media_client.aclose()

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def table(self, name: str) -> RemoteTable:
        """Get a table gateway by name.

        Raises:
            KeyError: If the table is not part of the remote schema.
        """
        return RemoteTable(self, name, REMOTE_TABLES[name])

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"/{table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.warning("Connection error on %s %s: %s", method, table, e)
            raise RemoteError(f"Request to {table} failed: {e}", table=table) from e

        if response.is_error:
            raise _error_from_response(response, table)
        return response

    # =========================================================================
    # Typed reads
    # =========================================================================

    async def fetch_courses(self) -> list[CourseHeader]:
        rows = await self.courses.select()
        return self._parse(rows, wire.course_from_row, "courses")

    async def fetch_lessons(self) -> list[QueuedLesson]:
        rows = await self.lessons.select()
        return self._parse(rows, wire.lesson_from_row, "lessons")

    async def fetch_progress(self) -> list[StudentProgress]:
        rows = await self.student_progress.select()
        return self._parse(rows, wire.progress_from_row, "student_progress")

    async def fetch_profiles(self) -> list[Profile]:
        rows = await self.profiles.select()
        return self._parse(rows, wire.profile_from_row, "profiles")

    @staticmethod
    def _parse(rows: list[dict[str, Any]], parse: Any, table: str) -> list[Any]:
        try:
            return [parse(row) for row in rows]
        except (ValidationError, KeyError, TypeError) as e:
            raise RemoteError(f"Malformed rows from {table}", table=table, details=str(e)) from e

    # =========================================================================
    # Typed writes
    # =========================================================================

    async def upsert_course(self, course: CourseHeader) -> None:
        await self.courses.upsert(wire.course_to_row(course))

    async def upsert_lesson(self, lesson: Lesson, course_id: str) -> None:
        await self.lessons.upsert(wire.lesson_to_row(lesson, course_id))

    async def upsert_progress(self, progress: StudentProgress | Iterable[StudentProgress]) -> None:
        documents = [progress] if isinstance(progress, StudentProgress) else list(progress)
        await self.student_progress.upsert([wire.progress_to_row(doc) for doc in documents])

    async def delete_course(self, course_id: str) -> None:
        await self.courses.delete(id=course_id)

    async def delete_lesson(self, lesson_id: str) -> None:
        await self.lessons.delete(id=lesson_id)

    async def delete_lessons_of_course(self, course_id: str) -> None:
        await self.lessons.delete(course_id=course_id)

    # =========================================================================
    # Media
    # =========================================================================

    async def fetch_media(self, url: str) -> bytes:
        """Download a video payload from its URL.

        Raises:
            RemoteError: If the download fails.
        """
        try:
            response = await self._media_client.get(url)
        except httpx.RequestError as e:
            raise RemoteError(f"Media download failed: {e}") from e
        if response.is_error:
            raise RemoteError(
                f"Media download failed: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content
