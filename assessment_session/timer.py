import asyncio
import logging
from typing import Callable, Optional

from assessment_session.constants import TIMER_TICK_SECONDS
from assessment_session.datetime_utils import format_clock

logger = logging.getLogger(__name__)


class TimerService:
    """Single countdown for a whole assessment.

    ``arm()`` starts a background task that calls ``tick()`` once per
    interval. When the remaining time reaches zero the ``on_expired``
    callback fires exactly once and the timer stops itself. ``cancel()`` is
    idempotent and a no-op after expiry.
    """

    def __init__(
        self,
        total_seconds: int,
        on_expired: Optional[Callable[[], None]] = None,
        tick_interval: float = TIMER_TICK_SECONDS,
    ):
        if total_seconds <= 0:
            raise ValueError("total_seconds must be positive")
        self.total_seconds = int(total_seconds)
        self.remaining_seconds = int(total_seconds)
        self.tick_interval = tick_interval
        self._on_expired = on_expired
        self._armed = False
        self._active = False
        self._expired = False
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_expired(self) -> bool:
        return self._expired

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def format_remaining(self) -> str:
        return format_clock(self.remaining_seconds)

    def arm(self, run_loop: bool = True) -> None:
        """Begin the countdown. Only the first call has any effect.

        With ``run_loop=False`` the caller drives ``tick()`` itself.
        """
        if self._armed:
            logger.warning("Timer already armed; ignoring")
            return
        self._armed = True
        if self._cancelled:
            return
        self._active = True
        logger.info(f"Timer armed for {self.total_seconds}s")
        if run_loop:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self._active:
            await asyncio.sleep(self.tick_interval)
            self.tick()

    def tick(self) -> None:
        if not self._active:
            return
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds > 0:
            return
        self._active = False
        self._expired = True
        logger.info("Timer expired")
        if self._on_expired is not None:
            self._on_expired()

    def cancel(self) -> None:
        if self._expired or self._cancelled:
            return
        self._cancelled = True
        self._active = False
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        logger.debug(f"Timer cancelled with {self.remaining_seconds}s left")
