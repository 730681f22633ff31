import logging
from fastapi import HTTPException
from typing import Optional

logger = logging.getLogger(__name__)


class AssessmentError(Exception):
    """Base class for errors surfaced by an assessment session"""
    status_code = 500
    error_code = "assessment_error"

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.cause = cause


class SurveyNotFound(AssessmentError):
    status_code = 404
    error_code = "survey_not_found"


class SurveyWrongType(AssessmentError):
    status_code = 409
    error_code = "survey_wrong_type"


class SurveyUnavailable(AssessmentError):
    """Survey exists but is not active"""
    status_code = 409
    error_code = "survey_unavailable"


class QuestionsUnavailable(AssessmentError):
    """Bank-based question fetch failed; the candidate may retry"""
    status_code = 503
    error_code = "questions_unavailable"


class SubmissionFailed(AssessmentError):
    status_code = 502
    error_code = "submission_failed"


class InvalidSessionState(AssessmentError):
    status_code = 409
    error_code = "invalid_session_state"


class MissingCandidateInfo(AssessmentError):
    status_code = 422
    error_code = "missing_candidate_info"


class UnknownQuestion(AssessmentError):
    status_code = 404
    error_code = "unknown_question"


def safe_raise_http(user_message: str, exc: Optional[Exception] = None, status_code: int = 500) -> None:
    """
    Log the full exception server-side and raise a generic HTTPException for clients.

    - user_message: short, non-sensitive message returned to client
    - exc: optional exception instance; full details are logged with stack trace
    - status_code: HTTP status code to raise
    """
    if exc is not None and status_code >= 500:
        logger.exception("%s: %s", user_message, exc)
    elif exc is not None:
        logger.warning("%s: %s", user_message, exc)
    else:
        logger.error(user_message)
    raise HTTPException(status_code=status_code, detail=user_message)


def raise_for_assessment_error(exc: AssessmentError) -> None:
    """Translate a session error into the matching HTTP error"""
    safe_raise_http(exc.message, exc, status_code=exc.status_code)


def safe_log(user_message: str, exc: Optional[Exception] = None) -> None:
    """
    Log exceptions safely on the server. Prefer logger.exception to capture stack traces.
    """
    if exc is not None:
        logger.error("%s: %s", user_message, exc, exc_info=exc)
    else:
        logger.error(user_message)
