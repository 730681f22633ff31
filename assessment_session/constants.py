"""Centralized configuration for the assessment session engine."""
from typing import FrozenSet
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ===== Survey API Settings =====
# The engine talks to the survey API for survey metadata, bank questions and responses

# SURVEY_API_BASE_URL: Origin of the survey API (no trailing /api)
SURVEY_API_BASE_URL = os.getenv("SURVEY_API_BASE_URL", "http://localhost:5000")

# SURVEY_API_COMPANY_SLUG: Multi-tenant prefix; paths become /{company}/api/... when set
SURVEY_API_COMPANY_SLUG = os.getenv("SURVEY_API_COMPANY_SLUG", "").strip()

# SURVEY_API_TIMEOUT: Timeout in seconds for survey API calls
SURVEY_API_TIMEOUT = float(os.getenv("SURVEY_API_TIMEOUT", "10"))

# ===== Timer Settings =====

# TIMER_TICK_SECONDS: Wall-clock interval between countdown ticks
TIMER_TICK_SECONDS = float(os.getenv("TIMER_TICK_SECONDS", "1.0"))

# ===== Scoring Settings =====

# DEFAULT_PASSING_THRESHOLD: Used when a survey does not configure passingThreshold
DEFAULT_PASSING_THRESHOLD = float(os.getenv("DEFAULT_PASSING_THRESHOLD", "60"))

# DEFAULT_QUESTION_POINTS: Final fallback for questions without points
DEFAULT_QUESTION_POINTS = float(os.getenv("DEFAULT_QUESTION_POINTS", "1"))

# ===== Session Settings =====

# ASSESSMENT_SURVEY_TYPES: Survey types accepted by the timed assessment flow
ASSESSMENT_SURVEY_TYPES: FrozenSet[str] = frozenset(
    t.strip().lower()
    for t in os.getenv("ASSESSMENT_SURVEY_TYPES", "assessment,quiz,iq,onboarding,live_quiz").split(",")
    if t.strip()
)

# SESSION_REGISTRY_LIMIT: Maximum number of sessions hosted in memory by the HTTP surface
SESSION_REGISTRY_LIMIT = int(os.getenv("SESSION_REGISTRY_LIMIT", "1000"))

# SESSION_IDLE_TTL_SECONDS: Idle time after which an unfinished session may be evicted
# (sessions in progress also get their time limit on top of this)
SESSION_IDLE_TTL_SECONDS = float(os.getenv("SESSION_IDLE_TTL_SECONDS", "3600"))

# LOG_LEVEL: Application log level
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def api_path(path: str, company_slug: str = SURVEY_API_COMPANY_SLUG) -> str:
    """Prefix an API path with the tenant segment when one is configured.

    >>> api_path("/survey/intro", "acme")
    '/acme/api/survey/intro'
    """
    if not path.startswith("/"):
        path = "/" + path
    if company_slug:
        return f"/{company_slug.strip('/')}/api{path}"
    return f"/api{path}"
