"""
Survey API transport layer

Wraps the three network calls the session engine depends on with httpx and
translates transport failures into the session error taxonomy. Nothing here
retries: the only retry in the engine is a candidate re-requesting questions.
"""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from assessment_session.constants import (
    SURVEY_API_BASE_URL,
    SURVEY_API_COMPANY_SLUG,
    SURVEY_API_TIMEOUT,
    api_path,
)
from assessment_session.error_utils import QuestionsUnavailable, SubmissionFailed, SurveyNotFound, safe_log
from assessment_session.models import QuestionsEnvelope, QuestionUnion, ResponsePayload, Survey

logger = logging.getLogger(__name__)


class SurveyApiClient:
    """Async client for the survey API"""

    def __init__(
        self,
        base_url: str = SURVEY_API_BASE_URL,
        company_slug: str = SURVEY_API_COMPANY_SLUG,
        timeout: float = SURVEY_API_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.company_slug = company_slug
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def __aenter__(self) -> "SurveyApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _path(self, path: str) -> str:
        return api_path(path, self.company_slug)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        start = time.time()
        response = await self._client.request(method, self._path(path), **kwargs)
        logger.debug(f"{method} {path} -> {response.status_code} in {(time.time() - start) * 1000:.1f}ms")
        response.raise_for_status()
        return response

    async def get_survey(self, slug: str) -> Survey:
        """GET /survey/{slug}"""
        try:
            response = await self._request("GET", f"/survey/{quote(slug, safe='')}")
            return Survey.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise SurveyNotFound(f"Assessment '{slug}' not found", cause=e) from e
            safe_log(f"Survey fetch for {slug} failed with status {e.response.status_code}", e)
            raise SurveyNotFound(f"Assessment '{slug}' could not be loaded", cause=e) from e
        except httpx.HTTPError as e:
            safe_log(f"Survey fetch for {slug} failed", e)
            raise SurveyNotFound(f"Assessment '{slug}' could not be loaded", cause=e) from e
        except (ValidationError, ValueError) as e:
            safe_log(f"Survey payload for {slug} is malformed", e)
            raise SurveyNotFound(f"Assessment '{slug}' could not be loaded", cause=e) from e

    async def get_questions(self, slug: str, email: str) -> List[QuestionUnion]:
        """GET /survey/{slug}/questions?email={email}"""
        try:
            response = await self._request(
                "GET", f"/survey/{quote(slug, safe='')}/questions", params={"email": email}
            )
            return QuestionsEnvelope.model_validate(response.json()).questions
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            safe_log(f"Question fetch for {slug} failed", e)
            raise QuestionsUnavailable(
                "Failed to load questions. Check your email address and try again.", cause=e
            ) from e

    async def submit_response(self, survey_id: str, payload: ResponsePayload) -> Dict[str, Any]:
        """POST /surveys/{surveyId}/responses"""
        try:
            response = await self._request(
                "POST",
                f"/surveys/{quote(survey_id, safe='')}/responses",
                json=payload.model_dump(by_alias=True, mode="json"),
            )
        except httpx.HTTPError as e:
            safe_log(f"Response submission for survey {survey_id} failed", e)
            raise SubmissionFailed("Failed to submit assessment. Please try again.", cause=e) from e
        try:
            return response.json() or {}
        except ValueError:
            return {}
