"""
Async client for the Canvas LMS REST API.

Every request carries the bearer token. Failures of any kind (timeouts,
connection errors, non-2xx responses) surface as ``CanvasError``; there are
no retries.
"""
from __future__ import annotations

import logging
import typing as t

import httpx

from calendar_core.models import Course
from services.shared import config

logger = logging.getLogger(__name__)


class CanvasError(RuntimeError):
    """A Canvas request failed. ``status_code`` is set for HTTP error responses."""

    def __init__(self, message: str, status_code: t.Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CanvasClient:
    """Thin wrapper around ``httpx.AsyncClient`` bound to one Canvas instance."""

    def __init__(
        self,
        base_url: str = config.CANVAS_API_BASE,
        access_token: str = config.CANVAS_ACCESS_TOKEN,
        timeout: float = config.CANVAS_TIMEOUT,
        transport: t.Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "CanvasClient":
        return self

    async def __aexit__(self, *exc_info: t.Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: t.Any = None) -> t.Any:
        """
        GET a Canvas endpoint relative to the API base and return decoded JSON.

        ``params`` is anything httpx accepts as query params, so a list of
        pairs keeps repeated keys such as ``include[]``.

        Raises:
            CanvasError: On timeouts, transport errors and non-2xx responses.
        """
        endpoint = path.lstrip("/")
        logger.debug("Fetching Canvas endpoint: %s %s", endpoint, params)
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.TimeoutException as e:
            raise CanvasError(f"Canvas request timed out on {endpoint}") from e
        except httpx.HTTPError as e:
            raise CanvasError(f"Error contacting Canvas on {endpoint}: {e}") from e

        if response.is_error:
            logger.error("Canvas API returned %s on %s", response.status_code, endpoint)
            raise CanvasError(
                f"Canvas API returned {response.status_code} on {endpoint}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CanvasError(f"Canvas returned invalid JSON on {endpoint}") from e

    async def get_active_courses(self) -> list[Course]:
        courses = await self.get(
            "courses",
            params={"enrollment_state": "active", "per_page": config.COURSES_PAGE_SIZE},
        )
        logger.info("Found %d active courses", len(courses))
        return [Course.model_validate(course) for course in courses]

    async def get_course_assignments(self, course_id: int) -> list[dict[str, t.Any]]:
        assignments = await self.get(
            f"courses/{course_id}/assignments",
            params={"per_page": config.ASSIGNMENTS_PAGE_SIZE},
        )
        logger.info("Found %d assignments for course %s", len(assignments), course_id)
        return assignments
