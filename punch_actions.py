import re
import time
import logging
from abc import ABC, abstractmethod
from datetime import date, time as dtime
from enum import Enum
from typing import Callable, Optional

from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import (
    ElementNotInteractableException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)

from browser_utils import AppContext
import browser_utils
import selector_defs as selectors
from punch_config import Credentials
from punch_errors import ErrorKind, PunchError
from punch_report import AttendanceSheet
from punch_schedule import PunchIntent

logger = logging.getLogger(__name__)


class SubmitStatus(Enum):
    CONFIRMED = "confirmed"
    ALREADY_PUNCHED = "already_punched"


def _time_pattern(value: dtime):
    return re.compile(r"(?<!\d)0?" + re.escape(f"{value.hour}:{value.minute:02d}") + r"(?!\d)")


def times_listed(log_text: str, intent: PunchIntent) -> bool:
    """True when every time of the intent shows up in the day's punch log."""
    if not log_text:
        return False
    wanted = [intent.clock_in] + ([intent.clock_out] if intent.clock_out else [])
    return all(_time_pattern(t).search(log_text) for t in wanted)


def has_already_punched_banner(text: str) -> bool:
    return any(p.search(text or "") for p in selectors.ALREADY_PUNCHED_PATTERNS)


def is_already_punched(intent: PunchIntent, log_text: str = "", page_text: str = "") -> bool:
    """The one place that decides whether the date is already punched.

    Jobcan answers a duplicate with a notice somewhere on the page, and a day
    punched earlier lists the same times in its punch log. Times elsewhere on
    the page (shift plan, input hints) do not count.
    """
    return has_already_punched_banner(page_text) or times_listed(log_text, intent)


def _table_cells(table) -> list:
    return [
        [td.text.strip() for td in tr.find_elements(By.TAG_NAME, "td")]
        for tr in table.find_elements(By.CSS_SELECTOR, "tbody tr")
    ]


class SessionDriver(ABC):
    """Verbs the orchestrator needs from a browser backend. No verb retries on its own."""

    @abstractmethod
    def login(self, credentials: Credentials) -> None:
        ...

    @abstractmethod
    def navigate_to_timesheet(self, day: date) -> None:
        ...

    @abstractmethod
    def set_time_field(self, field: str, value: dtime) -> None:
        ...

    @abstractmethod
    def submit(self, intent: PunchIntent) -> SubmitStatus:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class SeleniumSessionDriver(SessionDriver):
    """SessionDriver for Jobcan over a Selenium WebDriver session.

    The WebDriver is started by the first verb that needs it and quit by close().
    """

    def __init__(
        self,
        endpoint: str,
        headless: bool = True,
        timeout: float = 15.0,
        settle_seconds: float = 3.0,
        dump_dir: Optional[str] = None,
        linger_seconds: float = 0,
        browser_factory: Optional[Callable[[str, bool], WebDriver]] = None,
    ):
        self.endpoint = endpoint
        self.headless = headless
        self.settle_seconds = settle_seconds
        # Keep the browser open this long before quitting; for debugging with a visible window.
        self.linger_seconds = linger_seconds
        self._browser_factory = browser_factory or browser_utils.start_browser
        self.ctx = AppContext(driver=None, timeout=timeout, dump_dir=dump_dir, logger=logger)

    @property
    def driver(self) -> Optional[WebDriver]:
        return self.ctx.driver

    def _ensure_session(self) -> WebDriver:
        if self.ctx.driver is None:
            logger.debug(f"Starting WebDriver session (endpoint={self.endpoint or 'local'}, headless={self.headless})")
            try:
                self.ctx.driver = self._browser_factory(self.endpoint, self.headless)
            except WebDriverException as e:
                raise PunchError(ErrorKind.NETWORK, f"Could not start a browser session: {e.msg or e}") from e
        return self.ctx.driver

    def _fail(self, kind: ErrorKind, message: str) -> PunchError:
        browser_utils.dump_artifacts(self.ctx, kind.value, message)
        return PunchError(kind, message)

    def login(self, credentials: Credentials) -> None:
        driver = self._ensure_session()
        try:
            driver.get(selectors.SIGN_IN_URL)
            try:
                form = browser_utils.find_first(self.ctx, selectors.LOGIN_FORM_SELECTORS)
            except TimeoutException:
                raise self._fail(ErrorKind.NETWORK, "Sign-in page did not load") from None

            email = browser_utils.find_first(self.ctx, selectors.LOGIN_EMAIL_SELECTORS, timeout=0)
            email.send_keys(credentials.login)
            password = browser_utils.find_first(self.ctx, selectors.LOGIN_PASSWORD_SELECTORS, timeout=0)
            password.send_keys(credentials.password)
            button = browser_utils.find_first(self.ctx, selectors.LOGIN_BUTTON_SELECTORS, timeout=0, clickable=True)
            browser_utils.safe_click(self.ctx, button)
            logger.debug(f"Submitted sign-in form {form.get_attribute('class')!r} as {credentials.login}")

            time.sleep(self.settle_seconds)
            if browser_utils.find_present(self.ctx, selectors.LOGIN_ERROR_SELECTORS) is not None:
                raise self._fail(ErrorKind.AUTH_FAILED, "Jobcan rejected the login")

            driver.get(selectors.ATTENDANCE_LOGIN_URL)
            if not browser_utils.wait_for_any(self.ctx, selectors.POST_LOGIN_MARKERS):
                raise self._fail(ErrorKind.AUTH_FAILED, "Post-login page did not appear")
        except TimeoutException as e:
            raise self._fail(ErrorKind.AUTH_FAILED, f"Sign-in form incomplete: {e.msg or e}") from e
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error during login: {e.msg or e}") from e
        logger.debug("Logged in to Jobcan")

    def _load(self, url: str) -> None:
        driver = self.ctx.driver
        driver.get(url)
        if selectors.RATE_LIMIT_URL_FRAGMENT in (driver.current_url or ""):
            logger.debug("Redirected to the rate limit page, stepping back")
            driver.back()
            time.sleep(self.settle_seconds)
            driver.get(url)

    def navigate_to_timesheet(self, day: date) -> None:
        self._ensure_session()
        url = selectors.MODIFY_URL.format(year=day.year, month=day.month, day=day.day)
        try:
            self._load(url)
            if not browser_utils.wait_for_any(self.ctx, selectors.TIMESHEET_MARKERS):
                raise self._fail(ErrorKind.NAVIGATION_FAILED, f"Timesheet page for {day} did not load")
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error opening the timesheet: {e.msg or e}") from e
        logger.debug(f"On timesheet page for {day}")

    def open_modify_page(self) -> None:
        """Leave the browser on the revise-clocking page, for manual work in a visible window."""
        self._ensure_session()
        try:
            self._load(selectors.MODIFY_PAGE_URL)
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error opening the modify page: {e.msg or e}") from e

    def read_month(self, year: Optional[int] = None, month: Optional[int] = None) -> AttendanceSheet:
        """Scrape the monthly attendance tables. Read-only; the current month when year is None."""
        driver = self._ensure_session()
        if year is None:
            url = selectors.ATTENDANCE_URL
        else:
            url = selectors.ATTENDANCE_MONTH_URL.format(year=year, month=month)
        try:
            self._load(url)
            if not browser_utils.wait_for_any(self.ctx, selectors.ATTENDANCE_MARKERS):
                raise self._fail(ErrorKind.NAVIGATION_FAILED, f"Attendance page {url} did not load")

            tables = driver.find_elements(By.TAG_NAME, "table")
            if len(tables) <= selectors.PUNCHED_DATA_TABLE_INDEX:
                raise self._fail(ErrorKind.ELEMENT_NOT_FOUND, f"Punched data table missing ({len(tables)} tables on the page)")
            title = browser_utils.find_present(self.ctx, selectors.MONTH_TITLE_SELECTORS)
            sheet = AttendanceSheet(
                title=(title.text or "").strip() if title is not None else "",
                day_rows=_table_cells(tables[selectors.PUNCHED_DATA_TABLE_INDEX]),
                total_rows=_table_cells(tables[selectors.TOTALS_TABLE_INDEX]),
            )
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error reading the attendance page: {e.msg or e}") from e
        logger.debug(f"Read {len(sheet.day_rows)} day row(s) for {sheet.title or url}")
        return sheet

    def set_time_field(self, field: str, value: dtime) -> None:
        if field not in selectors.TIME_FIELD_SELECTORS:
            raise PunchError(ErrorKind.ELEMENT_NOT_FOUND, f"Unknown time field {field!r}")
        self._ensure_session()
        text = value.strftime("%H%M")
        try:
            el = browser_utils.find_first(self.ctx, selectors.TIME_FIELD_SELECTORS[field], clickable=True)
        except TimeoutException:
            raise self._fail(ErrorKind.ELEMENT_NOT_FOUND, f"Input for {field} not found") from None
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error locating {field}: {e.msg or e}") from e
        try:
            if not browser_utils.set_input_value(self.ctx, el, text):
                raise self._fail(ErrorKind.INTERACTION_FAILED, f"Value for {field} did not stick")
        except (ElementNotInteractableException, StaleElementReferenceException) as e:
            raise self._fail(ErrorKind.INTERACTION_FAILED, f"Could not type into {field}: {e.msg or e}") from e
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error setting {field}: {e.msg or e}") from e
        logger.debug(f"Set {field} to {text}")

    def _punch_log_text(self) -> str:
        log = browser_utils.find_present(self.ctx, selectors.PUNCH_LOG_SELECTORS)
        return (log.text or "") if log is not None else ""

    def _already_punched(self, intent: PunchIntent) -> bool:
        return is_already_punched(intent, self._punch_log_text(), browser_utils.page_text(self.ctx))

    def _confirmation(self, intent: PunchIntent) -> Optional[SubmitStatus]:
        if browser_utils.find_present(self.ctx, selectors.TIME_ERROR_SELECTORS) is not None:
            raise self._fail(ErrorKind.SUBMIT_REJECTED, "Jobcan rejected the time format (expected hhmm)")
        if has_already_punched_banner(browser_utils.page_text(self.ctx)):
            return SubmitStatus.ALREADY_PUNCHED
        if times_listed(self._punch_log_text(), intent):
            return SubmitStatus.CONFIRMED
        return None

    def submit(self, intent: PunchIntent) -> SubmitStatus:
        self._ensure_session()
        try:
            if self._already_punched(intent):
                logger.info(f"{intent.date} is already punched; not submitting again")
                return SubmitStatus.ALREADY_PUNCHED

            if intent.note:
                note = browser_utils.find_present(self.ctx, selectors.NOTE_FIELD_SELECTORS)
                if note is not None:
                    note.send_keys(intent.note)

            try:
                button = browser_utils.find_first(self.ctx, selectors.INSERT_BUTTON_SELECTORS, clickable=True)
            except TimeoutException:
                raise self._fail(ErrorKind.SUBMIT_REJECTED, "Insert button not available") from None
            if not browser_utils.safe_click(self.ctx, button):
                raise self._fail(ErrorKind.SUBMIT_REJECTED, "Insert button could not be clicked")

            try:
                status = WebDriverWait(self.ctx.driver, self.ctx.timeout).until(lambda d: self._confirmation(intent))
            except TimeoutException:
                raise self._fail(ErrorKind.SUBMIT_REJECTED, "No confirmation after submitting") from None
        except WebDriverException as e:
            raise PunchError(ErrorKind.NETWORK, f"WebDriver error during submit: {e.msg or e}") from e

        logger.debug(f"Submit finished: {status.value}")
        return status

    def close(self) -> None:
        driver, self.ctx.driver = self.ctx.driver, None
        if driver is None:
            return
        if self.linger_seconds > 0:
            logger.debug(f"Sleeping for {self.linger_seconds} seconds before closing the browser...")
            time.sleep(self.linger_seconds)
        try:
            driver.quit()
        except WebDriverException as e:
            logger.debug(f"Error while closing the browser: {e}")
