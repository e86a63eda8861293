import re
import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import chromedriver_autoinstaller
from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import TimeoutException, WebDriverException


@dataclass
class AppContext:
    driver: Optional[WebDriver]
    timeout: float
    dump_dir: Optional[str]
    logger: Optional[logging.Logger]


def start_browser(endpoint: str, headless: bool = True) -> WebDriver:
    """Open a Chrome session on the remote endpoint, or a local chromedriver when endpoint is empty."""
    chrome_options = webdriver.ChromeOptions()
    if headless:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--window-size=1280,900")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_experimental_option("prefs", {
        "credentials_enable_service": False,
        "profile.password_manager_enabled": False,
    })

    if endpoint:
        return webdriver.Remote(command_executor=endpoint, options=chrome_options)

    chromedriver_autoinstaller.install()
    return webdriver.Chrome(options=chrome_options)


def find_first(ctx: AppContext, locators, timeout=None, clickable=False):
    """Return the first element matched by any of the (by, value) locators."""
    last_error = None
    timeout = ctx.timeout if timeout is None else timeout
    for by, value in locators:
        try:
            element = WebDriverWait(ctx.driver, timeout).until(EC.presence_of_element_located((by, value)))
            if element is not None:
                if not clickable:
                    return element
                if element.is_displayed() and element.is_enabled():
                    return element
        except TimeoutException as e:
            last_error = e
            continue
    raise last_error or TimeoutException("Timed out finding element")


def find_present(ctx: AppContext, locators):
    """Like find_first but without waiting; None when nothing matches."""
    for by, value in locators:
        found = ctx.driver.find_elements(by, value)
        if found:
            return found[0]
    return None


def wait_for_any(ctx: AppContext, locators, timeout=None) -> bool:
    timeout = ctx.timeout if timeout is None else timeout
    try:
        WebDriverWait(ctx.driver, timeout).until(
            lambda d: any(d.find_elements(by, value) for by, value in locators)
        )
        return True
    except TimeoutException:
        return False


def safe_click(ctx: AppContext, element):
    try:
        element.click()
        return True
    except WebDriverException:
        try:
            ctx.driver.execute_script("arguments[0].click();", element)
            return True
        except WebDriverException:
            return False


def set_input_value(ctx: AppContext, el, value: str) -> bool:
    """Type value into el, falling back to a JS setter. True when the value stuck."""
    try:
        el.click()
    except WebDriverException:
        pass

    try:
        el.send_keys(Keys.CONTROL, "a")
        el.send_keys(Keys.BACKSPACE)
    except WebDriverException:
        try:
            el.clear()
        except WebDriverException:
            pass

    try:
        el.send_keys(value)
    except WebDriverException as e:
        if ctx.logger:
            ctx.logger.debug(f"send_keys failed: {e}")

    current_value = el.get_attribute("value") or ""
    if current_value.strip() == value.strip():
        return True

    if ctx.logger:
        ctx.logger.debug(f"Value didn't stick ('{current_value}'), trying JS approach")
    ctx.driver.execute_script(
        """
        const el = arguments[0];
        el.focus();
        el.value = arguments[1];
        el.dispatchEvent(new Event('input', { bubbles: true }));
        el.dispatchEvent(new Event('change', { bubbles: true }));
        el.blur();
        """,
        el,
        value,
    )
    return (el.get_attribute("value") or "").strip() == value.strip()


def page_text(ctx: AppContext) -> str:
    try:
        return ctx.driver.find_element(By.TAG_NAME, "body").text or ""
    except WebDriverException:
        return ""


def dump_artifacts(ctx: AppContext, tag: str, message: str = "") -> Optional[Path]:
    """Save screenshot, page source and a short report for a failed step.

    Returns the common path prefix of the written files, or None when dumping
    is disabled or nothing could be written.
    """
    if not ctx.dump_dir or ctx.driver is None:
        return None
    stem = re.sub(r"[^\w-]", "_", tag or "failure")
    base = Path(ctx.dump_dir) / f"{time.strftime('%Y%m%d_%H%M%S')}_{stem}"
    try:
        base.parent.mkdir(parents=True, exist_ok=True)
        report = [f"url: {getattr(ctx.driver, 'current_url', '')}", f"error: {tag}"]
        if message:
            report.append(f"message: {message}")
        base.with_suffix(".txt").write_text("\n".join(report) + "\n", encoding="utf-8")
    except OSError as e:
        if ctx.logger:
            ctx.logger.debug(f"Could not write artifacts to {ctx.dump_dir}: {e}")
        return None

    # Screenshot and source are best effort; the browser may already be gone.
    grabs = (
        (".png", ctx.driver.get_screenshot_as_png),
        (".html", lambda: ctx.driver.page_source.encode("utf-8")),
    )
    for suffix, grab in grabs:
        try:
            base.with_suffix(suffix).write_bytes(grab())
        except (OSError, WebDriverException) as e:
            if ctx.logger:
                ctx.logger.debug(f"Skipped {suffix} artifact: {e}")
    if ctx.logger:
        ctx.logger.debug(f"Wrote artifacts: {base}(.txt/.png/.html)")
    return base
