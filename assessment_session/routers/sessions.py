from fastapi import APIRouter, HTTPException, Depends, Request
from typing import Dict, Optional
import logging

from assessment_session.constants import SESSION_IDLE_TTL_SECONDS, SESSION_REGISTRY_LIMIT
from assessment_session.datetime_utils import Clock, monotonic
from assessment_session.error_utils import AssessmentError, raise_for_assessment_error, safe_raise_http
from assessment_session.models import (
    CreateSessionRequest,
    SessionPhase,
    ResolveQuestionsRequest,
    SessionView,
    SetAnswerRequest,
    StartSessionRequest,
)
from assessment_session.session import SessionController, SurveyGateway, load_session

router = APIRouter()
logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory home of the sessions hosted by this process.

    Each session remembers when it was last used. When the registry is full,
    finished sessions are dropped first, then sessions idle for longer than
    ``idle_ttl`` seconds (plus the time limit for a session still in
    progress, so a running countdown is never cut short).
    """

    def __init__(
        self,
        limit: int = SESSION_REGISTRY_LIMIT,
        idle_ttl: float = SESSION_IDLE_TTL_SECONDS,
        clock: Clock = monotonic,
    ):
        self.limit = limit
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: Dict[str, SessionController] = {}
        self._last_seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: SessionController) -> None:
        if len(self._sessions) >= self.limit:
            self._evict_stale()
        if len(self._sessions) >= self.limit:
            raise HTTPException(status_code=503, detail="Too many active assessment sessions")
        self._sessions[session.session_id] = session
        self._last_seen[session.session_id] = self._clock()

    def get(self, session_id: str) -> Optional[SessionController]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def remove(self, session_id: str) -> Optional[SessionController]:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is not None:
            session.close()
        return session

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)

    def _is_stale(self, session_id: str, session: SessionController, now: float) -> bool:
        if session.closed or session.phase == SessionPhase.RESULTS:
            return True
        allowed = self.idle_ttl
        if session.phase == SessionPhase.QUESTIONS and session.timer is not None:
            allowed += session.timer.total_seconds
        return now - self._last_seen.get(session_id, now) > allowed

    def _evict_stale(self) -> None:
        now = self._clock()
        stale = [sid for sid, s in self._sessions.items() if self._is_stale(sid, s, now)]
        for session_id in stale:
            self.remove(session_id)
        if stale:
            logger.info(f"Evicted {len(stale)} finished or idle sessions")


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> SurveyGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Survey API client not available")
    return gateway


def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionController:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=SessionView, response_model_by_alias=True)
async def create_session(
    request: CreateSessionRequest,
    registry: SessionRegistry = Depends(get_registry),
    gateway: SurveyGateway = Depends(get_gateway),
):
    """Load an assessment by slug and open a session on it"""
    try:
        session = await load_session(request.slug, gateway)
    except AssessmentError as e:
        raise_for_assessment_error(e)
    registry.add(session)
    return session.view()


@router.get("/{session_id}", response_model=SessionView, response_model_by_alias=True)
async def get_session_view(session: SessionController = Depends(get_session)):
    return session.view()


@router.post("/{session_id}/questions")
async def resolve_questions(request: ResolveQuestionsRequest, session: SessionController = Depends(get_session)):
    """Draw the candidate's questions before start (bank-based assessments)"""
    try:
        questions = await session.prepare_questions(request.email)
    except AssessmentError as e:
        raise_for_assessment_error(e)
    return {"totalQuestions": len(questions)}


@router.post("/{session_id}/start", response_model=SessionView, response_model_by_alias=True)
async def start_session(request: StartSessionRequest, session: SessionController = Depends(get_session)):
    try:
        await session.start(request.name, request.email)
    except AssessmentError as e:
        raise_for_assessment_error(e)
    return session.view()


@router.put("/{session_id}/answers/{question_id}", response_model=SessionView, response_model_by_alias=True)
async def set_answer(
    question_id: str,
    request: SetAnswerRequest,
    session: SessionController = Depends(get_session),
):
    try:
        session.set_answer(question_id, request.value)
    except AssessmentError as e:
        raise_for_assessment_error(e)
    return session.view()


@router.post("/{session_id}/submit", response_model=SessionView, response_model_by_alias=True)
async def submit_session(session: SessionController = Depends(get_session)):
    """Submit answers. A second submit is accepted and ignored."""
    try:
        await session.submit()
    except AssessmentError as e:
        raise_for_assessment_error(e)
    except Exception as e:
        safe_raise_http("Failed to submit assessment", e)
    return session.view()


@router.post("/{session_id}/submit/retry", response_model=SessionView, response_model_by_alias=True)
async def retry_submission(session: SessionController = Depends(get_session)):
    try:
        await session.retry_submit()
    except AssessmentError as e:
        raise_for_assessment_error(e)
    return session.view()


@router.post("/{session_id}/{action}", response_model=SessionView, response_model_by_alias=True)
async def navigate(action: str, session: SessionController = Depends(get_session)):
    """next / previous / skip"""
    moves = {"next": session.next, "previous": session.previous, "skip": session.skip}
    move = moves.get(action)
    if move is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    try:
        move()
    except AssessmentError as e:
        raise_for_assessment_error(e)
    return session.view()


@router.delete("/{session_id}")
async def close_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.remove(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"success": True, "sessionId": session_id, "phase": session.phase.value}
