import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from assessment_session.error_utils import InvalidSessionState, safe_log
from assessment_session.models import SubmitTrigger

logger = logging.getLogger(__name__)

SubmitSequence = Callable[[SubmitTrigger], Awaitable[Any]]


class GuardState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SubmissionGuard:
    """One-shot latch shared by the Submit button and the timer expiry.

    ``trigger()`` checks and sets the latch synchronously, before anything
    is awaited, and schedules the submit sequence as a task. Every later
    trigger, from either path, returns None. A failed submission keeps the
    latch closed; only an explicit ``retry()`` can run it again.
    """

    def __init__(self, sequence: SubmitSequence, retry_sequence: Optional[SubmitSequence] = None):
        self._sequence = sequence
        self._retry_sequence = retry_sequence or sequence
        self._state = GuardState.IDLE
        self.trigger_source: Optional[SubmitTrigger] = None
        self.task: Optional[asyncio.Task] = None
        self.last_error: Optional[BaseException] = None
        self.dispatch_count = 0

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def latched(self) -> bool:
        return self._state != GuardState.IDLE

    def trigger(self, source: SubmitTrigger) -> Optional[asyncio.Task]:
        if self._state != GuardState.IDLE:
            logger.warning(f"Submission already dispatched by {self.trigger_source.value}; ignoring {source.value} trigger")
            return None
        self._state = GuardState.IN_FLIGHT
        self.trigger_source = source
        logger.info(f"Submission triggered by {source.value}")
        return self._dispatch(self._sequence, source)

    def retry(self) -> asyncio.Task:
        """Re-run a failed submission on an explicit candidate request"""
        if self._state != GuardState.FAILED:
            raise InvalidSessionState(f"Cannot retry a submission in state {self._state.value}")
        self._state = GuardState.IN_FLIGHT
        logger.info("Retrying failed submission")
        return self._dispatch(self._retry_sequence, SubmitTrigger.MANUAL)

    def _dispatch(self, sequence: SubmitSequence, source: SubmitTrigger) -> asyncio.Task:
        self.dispatch_count += 1
        self.task = asyncio.get_running_loop().create_task(sequence(source))
        self.task.add_done_callback(self._settle)
        return self.task

    def _settle(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self._state = GuardState.FAILED
            return
        error = task.exception()
        if error is None:
            self._state = GuardState.SUCCEEDED
            self.last_error = None
            return
        self._state = GuardState.FAILED
        self.last_error = error
        if self.trigger_source == SubmitTrigger.TIMER:
            # Nobody awaits the timer path; record the failure here
            safe_log("Automatic submission failed", error)
