"""
Assessment session state machine

A session moves instructions -> questions -> results and never leaves
results. All mutation goes through SessionController methods; the timer
callback and the Submit action meet only at the SubmissionGuard latch.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

from assessment_session.answers import AnswerStore
from assessment_session.constants import ASSESSMENT_SURVEY_TYPES, TIMER_TICK_SECONDS
from assessment_session.datetime_utils import Clock, monotonic
from assessment_session.error_utils import (
    InvalidSessionState,
    MissingCandidateInfo,
    QuestionsUnavailable,
    SubmissionFailed,
    SurveyUnavailable,
    SurveyWrongType,
    UnknownQuestion,
)
from assessment_session.guard import SubmissionGuard
from assessment_session.models import (
    AnswerValue,
    QuestionUnion,
    ResponsePayload,
    ScoringOutcome,
    SessionPhase,
    SessionView,
    SubmitTrigger,
    Survey,
    SurveyStatus,
    TimerView,
)
from assessment_session.question_source import QuestionSource
from assessment_session.scoring import ScoringEngine
from assessment_session.timer import TimerService
from assessment_session.timing import QuestionTimingTracker

logger = logging.getLogger(__name__)


class SurveyGateway(Protocol):
    """Network collaborators of a session (see api_client.SurveyApiClient)"""

    async def get_survey(self, slug: str) -> Survey:
        ...

    async def get_questions(self, slug: str, email: str) -> List[QuestionUnion]:
        ...

    async def submit_response(self, survey_id: str, payload: ResponsePayload) -> Dict[str, Any]:
        ...


class SessionController:
    """Drives one candidate through one assessment"""

    def __init__(
        self,
        survey: Survey,
        gateway: SurveyGateway,
        *,
        clock: Clock = monotonic,
        tick_interval: float = TIMER_TICK_SECONDS,
        run_timer: bool = True,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.survey = survey
        self._gateway = gateway
        self._clock = clock
        self._run_timer = run_timer

        self.source = QuestionSource(survey, gateway)
        self.answers = AnswerStore()
        self.timing = QuestionTimingTracker(clock)
        self.engine = ScoringEngine(survey.scoring_settings)
        self.guard = SubmissionGuard(self._submit_sequence, self._resubmit_sequence)
        self.timer: Optional[TimerService] = None
        if survey.time_limit_seconds > 0:
            self.timer = TimerService(survey.time_limit_seconds, self._on_timer_expired, tick_interval)

        self._phase = SessionPhase.INSTRUCTIONS
        self._index = 0
        self._questions: List[QuestionUnion] = []
        self._started_at: Optional[float] = None
        self._starting = False
        self._closed = False

        self.candidate_name = ""
        self.candidate_email = ""
        self.outcome: Optional[ScoringOutcome] = None
        self.payload: Optional[ResponsePayload] = None
        self.submit_response: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def questions(self) -> List[QuestionUnion]:
        if self._phase == SessionPhase.INSTRUCTIONS:
            return self.source.questions
        return list(self._questions)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[QuestionUnion]:
        if self._phase != SessionPhase.QUESTIONS or not self._questions:
            return None
        return self._questions[self._index]

    @property
    def progress(self) -> float:
        if not self._questions:
            return 0.0
        return round((self._index + 1) / len(self._questions) * 100, 2)

    def _require_open(self) -> None:
        if self._closed:
            raise InvalidSessionState("Session is closed")

    def _require_phase(self, phase: SessionPhase, operation: str) -> None:
        self._require_open()
        if self._phase != phase:
            raise InvalidSessionState(f"Cannot {operation} while in {self._phase.value}")

    def _require_editable(self, operation: str) -> None:
        self._require_phase(SessionPhase.QUESTIONS, operation)
        if self.guard.latched:
            raise InvalidSessionState(f"Cannot {operation} after the assessment was submitted")

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    async def prepare_questions(self, email: str) -> List[QuestionUnion]:
        """Resolve questions ahead of start, e.g. when the email field changes"""
        self._require_phase(SessionPhase.INSTRUCTIONS, "load questions")
        try:
            return await self.source.resolve(email)
        except QuestionsUnavailable as e:
            self.error = e.message
            raise

    async def start(self, candidate_name: str, candidate_email: str) -> None:
        self._require_phase(SessionPhase.INSTRUCTIONS, "start")
        if self._starting:
            raise InvalidSessionState("Session start already in progress")
        name = (candidate_name or "").strip()
        email = (candidate_email or "").strip()
        if not name or not email:
            raise MissingCandidateInfo("Name and email are required to start the assessment")

        self._starting = True
        try:
            questions = await self.source.resolve(email)
        except QuestionsUnavailable as e:
            self.error = e.message
            raise
        finally:
            self._starting = False

        if self._closed or self._phase != SessionPhase.INSTRUCTIONS:
            logger.warning(f"Session {self.session_id} moved on while questions loaded; discarding them")
            return
        if not questions:
            self.error = "This assessment has no questions yet"
            raise QuestionsUnavailable(self.error)

        self._questions = list(questions)
        self.candidate_name, self.candidate_email = name, email
        self._started_at = self._clock()
        self._index = 0
        self.error = None
        self._phase = SessionPhase.QUESTIONS
        self.timing.open(self._questions[0].id)
        if self.timer is not None:
            self.timer.arm(run_loop=self._run_timer)
        logger.info(
            f"Session {self.session_id} started for survey {self.survey.slug} "
            f"with {len(self._questions)} questions"
        )

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def _question(self, question_id: str) -> QuestionUnion:
        for question in self._questions:
            if question.id == question_id:
                return question
        raise UnknownQuestion(f"Question {question_id} is not part of this session")

    def set_answer(self, question_id: str, value: AnswerValue) -> None:
        self._require_editable("answer")
        self._question(question_id)
        self.answers.set_answer(question_id, value)

    def toggle_choice(self, question_id: str, label: str) -> List[str]:
        self._require_editable("answer")
        self._question(question_id)
        return self.answers.toggle_choice(question_id, label)

    def _move_to(self, index: int) -> None:
        self.timing.close(self._questions[self._index].id)
        self._index = index
        self.timing.open(self._questions[index].id)
        logger.debug(f"Session {self.session_id} moved to question {index + 1}/{len(self._questions)}")

    def next(self) -> bool:
        self._require_editable("move to the next question")
        if self._index >= len(self._questions) - 1:
            return False
        self._move_to(self._index + 1)
        return True

    def previous(self) -> bool:
        self._require_editable("move to the previous question")
        if self._index <= 0:
            return False
        self._move_to(self._index - 1)
        return True

    def skip(self) -> bool:
        self._require_editable("skip")
        self.answers.mark_skipped_if_unset(self._questions[self._index].id)
        if self._index >= len(self._questions) - 1:
            return False
        self._move_to(self._index + 1)
        return True

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> Optional[ScoringOutcome]:
        """Manual submit. Returns None when a submission was already dispatched"""
        self._require_open()
        if self.guard.latched:
            logger.warning(f"Session {self.session_id}: submit ignored, already submitted")
            return None
        self._require_phase(SessionPhase.QUESTIONS, "submit")
        task = self.guard.trigger(SubmitTrigger.MANUAL)
        if task is None:
            return None
        return await asyncio.shield(task)

    async def retry_submit(self) -> Optional[ScoringOutcome]:
        """Candidate-initiated retry after SubmissionFailed"""
        self._require_open()
        task = self.guard.retry()
        return await asyncio.shield(task)

    def _on_timer_expired(self) -> None:
        if self._closed or self._phase != SessionPhase.QUESTIONS:
            return
        logger.info(f"Session {self.session_id}: time is up, auto-submitting")
        self.guard.trigger(SubmitTrigger.TIMER)

    async def _submit_sequence(self, trigger: SubmitTrigger) -> ScoringOutcome:
        try:
            self.timing.close_current()
            self.outcome = self.engine.score(self._questions, self.answers.snapshot())
            self.payload = self._build_payload(trigger)
            await self._deliver()
        finally:
            if self.timer is not None:
                self.timer.cancel()
        return self.outcome

    async def _resubmit_sequence(self, trigger: SubmitTrigger) -> ScoringOutcome:
        # Scoring is already final; only the delivery is repeated
        await self._deliver()
        return self.outcome

    async def _deliver(self) -> None:
        try:
            self.submit_response = await self._gateway.submit_response(self.survey.id, self.payload)
        except SubmissionFailed as e:
            self.error = e.message
            raise
        self.error = None
        self._phase = SessionPhase.RESULTS
        logger.info(
            f"Session {self.session_id} submitted "
            f"({'auto' if self.payload.is_auto_submit else 'manual'}, "
            f"score={self.outcome.score.display_score:g}, passed={self.outcome.score.passed})"
        )

    def _build_payload(self, trigger: SubmitTrigger) -> ResponsePayload:
        started = self._started_at if self._started_at is not None else self._clock()
        return ResponsePayload(
            name=self.candidate_name,
            email=self.candidate_email,
            survey_id=self.survey.id,
            answers=self.answers.ordered(self._questions),
            time_spent=int(max(0.0, self._clock() - started)),
            is_auto_submit=trigger == SubmitTrigger.TIMER,
            answer_durations={
                str(index): round(self.timing.duration(q.id)) for index, q in enumerate(self._questions)
            },
        )

    # ------------------------------------------------------------------
    # Teardown & views
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Tear the session down: stop the timer and drop pending fetches"""
        if self._closed:
            return
        self._closed = True
        if self.timer is not None:
            self.timer.cancel()
        self.source.discard_pending()
        if self._phase == SessionPhase.QUESTIONS and not self.guard.latched:
            self.timing.close_current()
        logger.info(f"Session {self.session_id} closed in phase {self._phase.value}")

    def view(self) -> SessionView:
        question = self.current_question
        timer = None
        if self.timer is not None:
            timer = TimerView(
                remaining_seconds=self.timer.remaining_seconds,
                display=self.timer.format_remaining(),
                is_active=self.timer.is_active,
                is_expired=self.timer.is_expired,
            )
        score, results = None, []
        if self._phase == SessionPhase.RESULTS and self.outcome is not None:
            score, results = self.engine.visible(self.outcome)
        return SessionView(
            session_id=self.session_id,
            survey_id=self.survey.id,
            title=self.survey.title,
            phase=self._phase,
            current_index=self._index,
            total_questions=self.total_questions,
            progress=self.progress,
            current_question=question.masked() if question is not None else None,
            answers={q.id: self.answers.get(q.id) for q in self._questions},
            timer=timer,
            score=score,
            question_results=results,
            error=self.error,
        )


async def load_session(slug: str, gateway: SurveyGateway, **kwargs) -> SessionController:
    """Fetch a survey and open a session on it"""
    survey = await gateway.get_survey(slug)
    if (survey.type or "").lower() not in ASSESSMENT_SURVEY_TYPES:
        raise SurveyWrongType(f"'{slug}' is a {survey.type}, not an assessment. Please use the survey interface instead.")
    if survey.status and survey.status != SurveyStatus.ACTIVE.value:
        raise SurveyUnavailable(f"Assessment '{slug}' is {survey.status}")
    session = SessionController(survey, gateway, **kwargs)
    logger.info(
        f"Loaded survey {survey.slug} ({survey.source_type.value}, "
        f"time limit {survey.time_limit_minutes or 'none'}) into session {session.session_id}"
    )
    return session
