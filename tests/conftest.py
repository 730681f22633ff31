import asyncio
from typing import Any, Dict, List, Optional

import pytest
from pydantic import TypeAdapter

from assessment_session.error_utils import QuestionsUnavailable, SubmissionFailed, SurveyNotFound
from assessment_session.models import QuestionUnion, ResponsePayload, Survey

_questions_adapter = TypeAdapter(List[QuestionUnion])


def make_questions(raw: List[Dict[str, Any]]) -> List[QuestionUnion]:
    return _questions_adapter.validate_python(raw)


def sample_questions() -> List[Dict[str, Any]]:
    return [
        {"_id": "q1", "type": "single_choice", "text": "Pick B", "options": ["A", "B", "C"], "correctAnswer": 1},
        {"_id": "q2", "type": "multiple_choice", "text": "Pick A and C", "options": ["A", "B", "C", "D"], "correctAnswer": [0, 2]},
        {"_id": "q3", "type": "short_text", "text": "Capital of France", "correctAnswer": "Paris"},
    ]


def make_survey(**overrides) -> Survey:
    data: Dict[str, Any] = {
        "_id": "survey-1",
        "slug": "intro-quiz",
        "title": "Intro Quiz",
        "type": "assessment",
        "status": "active",
        "sourceType": "manual",
        "questions": sample_questions(),
        "scoringSettings": {"scoringMode": "percentage", "passingThreshold": 60},
    }
    data.update(overrides)
    return Survey.model_validate(data)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """In-memory stand-in for the survey API"""

    def __init__(
        self,
        survey: Optional[Survey] = None,
        bank: Optional[List[Dict[str, Any]]] = None,
        fail_questions: bool = False,
        fail_submit: bool = False,
    ):
        self.survey = survey
        self.bank = make_questions(bank or [])
        self.fail_questions = fail_questions
        self.fail_submit = fail_submit
        self.questions_gate: Optional[asyncio.Event] = None
        self.question_calls: List[tuple] = []
        self.submissions: List[ResponsePayload] = []

    async def get_survey(self, slug: str) -> Survey:
        if self.survey is None or self.survey.slug != slug:
            raise SurveyNotFound(f"Assessment '{slug}' not found")
        return self.survey

    async def get_questions(self, slug: str, email: str) -> List[QuestionUnion]:
        self.question_calls.append((slug, email))
        if self.questions_gate is not None:
            await self.questions_gate.wait()
        if self.fail_questions:
            raise QuestionsUnavailable("Failed to load questions")
        return list(self.bank)

    async def submit_response(self, survey_id: str, payload: ResponsePayload) -> Dict[str, Any]:
        self.submissions.append(payload)
        await asyncio.sleep(0)
        if self.fail_submit:
            raise SubmissionFailed("Failed to submit assessment. Please try again.")
        return {"success": True}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def survey() -> Survey:
    return make_survey()
