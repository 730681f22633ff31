import logging
from typing import Dict, Optional, Tuple

from assessment_session.datetime_utils import Clock, monotonic
from assessment_session.models import QuestionTiming

logger = logging.getLogger(__name__)


class QuestionTimingTracker:
    """Per-question dwell time across next/previous/skip navigation.

    At most one entry is open at a time. Closing an entry adds the elapsed
    time to whatever the question has accumulated on earlier visits.
    """

    def __init__(self, clock: Clock = monotonic):
        self._clock = clock
        self._open: Optional[Tuple[str, float]] = None
        self._timings: Dict[str, QuestionTiming] = {}

    @property
    def current_question_id(self) -> Optional[str]:
        return self._open[0] if self._open else None

    def open(self, question_id: str) -> None:
        if self._open is not None:
            logger.warning(f"Opening {question_id} while {self._open[0]} is still open; closing it first")
            self.close(self._open[0])
        now = self._clock()
        self._open = (question_id, now)
        previous = self._timings.get(question_id)
        if previous is None:
            self._timings[question_id] = QuestionTiming(start_time=now, visits=1)
        else:
            self._timings[question_id] = previous.model_copy(
                update={"start_time": now, "end_time": None, "visits": previous.visits + 1}
            )

    def close(self, question_id: str) -> Optional[QuestionTiming]:
        if self._open is None or self._open[0] != question_id:
            logger.debug(f"close({question_id}) ignored; open entry is {self.current_question_id}")
            return None
        now = self._clock()
        _, started = self._open
        self._open = None
        entry = self._timings[question_id]
        closed = entry.model_copy(update={
            "end_time": now,
            "duration_seconds": entry.duration_seconds + max(0.0, now - started),
        })
        self._timings[question_id] = closed
        return closed

    def close_current(self) -> Optional[QuestionTiming]:
        if self._open is None:
            return None
        return self.close(self._open[0])

    def get(self, question_id: str) -> Optional[QuestionTiming]:
        return self._timings.get(question_id)

    def duration(self, question_id: str) -> float:
        entry = self._timings.get(question_id)
        return entry.duration_seconds if entry else 0.0

    def snapshot(self) -> Dict[str, QuestionTiming]:
        return dict(self._timings)
