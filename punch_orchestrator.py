"""
Runs one punch for one PunchIntent.

    INIT -> LOGGED_IN -> ON_TIMESHEET_PAGE -> FIELDS_SET -> SUBMITTED -> DONE

Any step may end the run in FAILED. Retries follow punch_errors.RETRY_POLICY,
and the session is closed exactly once however the run ends.
"""

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from selenium.common.exceptions import WebDriverException

from punch_config import Credentials
from punch_actions import SessionDriver, SubmitStatus
from punch_errors import EXIT_CODES, EXIT_OK, ErrorKind, PunchError, is_retryable
from punch_schedule import PunchIntent

logger = logging.getLogger(__name__)


class PunchState(Enum):
    INIT = "Init"
    LOGGED_IN = "LoggedIn"
    ON_TIMESHEET_PAGE = "OnTimesheetPage"
    FIELDS_SET = "FieldsSet"
    SUBMITTED = "Submitted"
    DONE = "Done"
    FAILED = "Failed"


class Outcome(Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True)
class PunchResult:
    outcome: Outcome
    intent: PunchIntent
    attempts: int
    error_kind: Optional[ErrorKind] = None
    state: PunchState = PunchState.DONE
    already_punched: bool = False
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def exit_code(self) -> int:
        if self.ok:
            return EXIT_OK
        return EXIT_CODES[self.error_kind]


class PunchOrchestrator:
    def __init__(self, driver: SessionDriver, credentials: Credentials, max_retries: int = 2,
                 retry_delay: float = 0.0, notifier=None, sleep=time.sleep):
        self.driver = driver
        self.credentials = credentials
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.notifier = notifier
        self._sleep = sleep
        self.state = PunchState.INIT
        self.retries = 0

    def _step(self, name: str, verb, *args):
        """Run one verb, retrying retryable failures up to max_retries extra times."""
        tries = 0
        while True:
            tries += 1
            try:
                return verb(*args)
            except WebDriverException as e:
                error = PunchError(ErrorKind.NETWORK, f"{name}: {e.msg or e}")
            except PunchError as e:
                error = e

            if not is_retryable(error.kind):
                logger.debug(f"{name} failed with fatal {error.kind.value}")
                raise error
            if tries > self.max_retries:
                logger.warning(f"{name} still failing after {tries} attempts: {error}")
                raise error

            self.retries += 1
            logger.info(f"{name} failed ({error}); retrying {tries}/{self.max_retries}")
            if self.retry_delay:
                self._sleep(self.retry_delay)

    def _advance(self, state: PunchState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def run(self, intent: PunchIntent) -> PunchResult:
        self.state = PunchState.INIT
        self.retries = 0
        already_punched = False
        try:
            self._step("login", self.driver.login, self.credentials)
            self._advance(PunchState.LOGGED_IN)

            self._step("navigate_to_timesheet", self.driver.navigate_to_timesheet, intent.date)
            self._advance(PunchState.ON_TIMESHEET_PAGE)

            self._step("set clock_in", self.driver.set_time_field, "clock_in", intent.clock_in)
            if intent.clock_out is not None:
                self._step("set clock_out", self.driver.set_time_field, "clock_out", intent.clock_out)
            self._advance(PunchState.FIELDS_SET)

            status = self._step("submit", self.driver.submit, intent)
            already_punched = status is SubmitStatus.ALREADY_PUNCHED
            self._advance(PunchState.SUBMITTED)
            self._advance(PunchState.DONE)
            result = PunchResult(
                outcome=Outcome.SUCCESS,
                intent=intent,
                attempts=self.retries + 1,
                state=PunchState.DONE,
                already_punched=already_punched,
                message="already punched" if already_punched else "punched",
            )
        except PunchError as e:
            failed_in = self.state
            self._advance(PunchState.FAILED)
            result = PunchResult(
                outcome=Outcome.FAILED,
                intent=intent,
                attempts=self.retries + 1,
                error_kind=e.kind,
                state=failed_in,
                message=e.message,
            )
        finally:
            self.driver.close()

        self._notify(result)
        return result

    def _notify(self, result: PunchResult) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(result)
        except PunchError as e:
            logger.warning(f"Notification failed: {e}")
