"""Poll cluster validation until health is sustained or a timeout elapses."""

import logging
from typing import List, Optional

from .clock import CancelToken, Clock
from .errors import OperationCancelledError, ValidationCancelledError, ValidationTimedOutError
from .interfaces import ClusterValidator
from .models import CloudInstanceGroup

logger = logging.getLogger(__name__)


class ValidationPoller:
    """Require ``validate_count`` consecutive healthy results.

    A healthy result schedules a re-check after ``success_duration`` and an
    unhealthy one resets the streak and re-checks after ``poll_interval``. The
    streak is accepted once it is long enough and has lasted at least
    ``success_duration``.
    """

    def __init__(
        self,
        validator: ClusterValidator,
        clock: Clock,
        token: CancelToken,
        *,
        validate_count: int,
        poll_interval: float,
        success_duration: float,
        timeout: float,
        group: Optional[CloudInstanceGroup] = None,
    ) -> None:
        self.validator = validator
        self.clock = clock
        self.token = token
        self.validate_count = validate_count
        self.poll_interval = poll_interval
        self.success_duration = success_duration
        self.timeout = timeout
        self.group = group
        self.polls = 0

    def _check(self) -> List[str]:
        """Run one validation; return the relevant failure messages."""
        self.polls += 1
        try:
            result = self.validator.validate()
        except OperationCancelledError:
            raise
        except Exception as exc:
            return [f"validation error: {exc}"]
        return [failure.message for failure in result.relevant_failures(self.group)]

    def _wait(self, seconds: float) -> None:
        try:
            self.clock.sleep(seconds, self.token)
        except OperationCancelledError as exc:
            raise ValidationCancelledError(exc.reason) from exc

    def wait_until_healthy(self) -> None:
        if self.validate_count == 0:
            logger.warning("Skipping cluster validation because validate-count was 0")
            return

        started = self.clock.now()
        deadline = started + self.timeout
        streak = 0
        streak_started: Optional[float] = None
        failures: List[str] = []

        while True:
            if self.token.cancelled:
                raise ValidationCancelledError(self.token.reason or "validation cancelled")

            failures = self._check()
            now = self.clock.now()

            if not failures:
                streak += 1
                if streak_started is None:
                    streak_started = now
                if streak >= self.validate_count and now - streak_started >= self.success_duration:
                    logger.info("Cluster validated.")
                    return
                interval = self.success_duration
                logger.info(
                    "Cluster validated (%d/%d); revalidating in %gs to make sure it does not flap.",
                    streak,
                    self.validate_count,
                    interval,
                )
            else:
                streak = 0
                streak_started = None
                interval = self.poll_interval
                logger.info(
                    "Cluster did not pass validation, will retry in %gs: %s.",
                    interval,
                    ", ".join(failures),
                )

            # a check landing exactly on the deadline is still in time
            if now > deadline:
                logger.info("Cluster did not validate within deadline.")
                raise ValidationTimedOutError(self.timeout, failures)

            self._wait(interval)
