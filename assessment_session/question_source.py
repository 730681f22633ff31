"""Resolution of the effective, ordered question list of a session."""

import asyncio
import logging
from typing import List, Optional, Protocol

from assessment_session.error_utils import QuestionsUnavailable
from assessment_session.models import QuestionUnion, Survey

logger = logging.getLogger(__name__)


class QuestionFetcher(Protocol):
    async def get_questions(self, slug: str, email: str) -> List[QuestionUnion]:
        ...


class QuestionSource:
    """Effective question list for one session.

    Manual surveys expose their embedded questions as soon as the survey is
    loaded. Bank-based surveys draw a personalized list server-side, so the
    list stays empty until ``resolve(email)`` succeeds. The fetched list is
    cached for the session; overlapping calls for the same email share a
    single request.
    """

    def __init__(self, survey: Survey, fetcher: Optional[QuestionFetcher] = None):
        if survey.is_bank_based and fetcher is None:
            raise ValueError(f"Survey {survey.slug} draws from a question bank and needs a fetcher")
        self.survey = survey
        self._fetcher = fetcher
        self._questions: List[QuestionUnion] = [] if survey.is_bank_based else list(survey.questions)
        self._loaded = not survey.is_bank_based
        self._email: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None
        self._pending_email: Optional[str] = None
        self._generation = 0
        self.fetch_count = 0

    @property
    def requires_email(self) -> bool:
        return self.survey.is_bank_based

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def questions(self) -> List[QuestionUnion]:
        return list(self._questions)

    async def resolve(self, email: Optional[str] = None) -> List[QuestionUnion]:
        if not self.survey.is_bank_based:
            return self.questions

        email = (email or "").strip()
        if not email:
            raise QuestionsUnavailable("An email address is required to load the questions")

        if self._loaded and email == self._email:
            return self.questions

        if self._pending is not None and email == self._pending_email:
            return await self._await_fetch(self._pending, email, self._generation)

        self._generation += 1
        generation = self._generation
        self.fetch_count += 1
        logger.info(f"Fetching questions for survey {self.survey.slug} (fetch #{self.fetch_count})")
        future = asyncio.ensure_future(self._fetcher.get_questions(self.survey.slug, email))
        self._pending, self._pending_email = future, email
        return await self._await_fetch(future, email, generation)

    async def _await_fetch(self, future: asyncio.Future, email: str, generation: int) -> List[QuestionUnion]:
        try:
            questions = await asyncio.shield(future)
        except QuestionsUnavailable:
            if generation == self._generation:
                self._questions, self._loaded, self._email = [], False, None
            raise
        finally:
            if self._pending is future and future.done():
                self._pending, self._pending_email = None, None

        if generation != self._generation:
            logger.warning(f"Discarding stale question list for survey {self.survey.slug}")
            return self.questions

        if not self._loaded or self._email != email:
            self._questions, self._loaded, self._email = list(questions), True, email
            logger.info(f"Loaded {len(self._questions)} questions for survey {self.survey.slug}")
        return self.questions

    def discard_pending(self) -> None:
        """Drop the result of any fetch still in flight"""
        if self._pending is not None:
            logger.debug(f"Discarding in-flight question fetch for survey {self.survey.slug}")
        self._generation += 1
        self._pending, self._pending_email = None, None
