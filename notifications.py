import sys
import logging
import subprocess
from typing import Optional

import requests
from plyer import notification as plyer_notification

from punch_config import SlackSettings
from punch_errors import ErrorKind

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api/chat.postMessage"
SLACK_TIMEOUT_SECONDS = 10


def format_summary(result) -> str:
    """One line for the terminal and for Slack: date, outcome, attempts."""
    intent = result.intent
    times = f"{intent.clock_in:%H:%M}"
    if intent.clock_out is not None:
        times += f"-{intent.clock_out:%H:%M}"
    if result.ok:
        outcome = "already punched" if result.already_punched else "Success"
    else:
        outcome = f"Failed ({result.error_kind.value}: {result.message})"
    return f"{intent.date:%Y-%m-%d} {times}: {outcome}, attempts: {result.attempts}"


def _escape_osascript(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\"", "\\\"")


def notify_user_with_ack(title: str, message: str, require_ack: bool = False, echo: bool = True) -> None:
    """Desktop alert (modal on macOS when require_ack), echoed to the terminal unless echo is False."""
    if require_ack and sys.platform == "darwin":
        script = f'display alert "{_escape_osascript(title)}" message "{_escape_osascript(message)}" buttons {{"OK"}} default button "OK"'
        try:
            result = subprocess.run(["osascript", "-e", script], check=False,
                                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            if result.returncode == 0:
                return
        except OSError as e:
            logger.debug(f"osascript alert failed: {e}")
    try:
        plyer_notification.notify(
            title=title,
            message=message,
            app_name="jobcan-punch",
            timeout=10,
        )
    except Exception as e:
        # plyer raises whatever its platform backend raises (NotImplementedError on headless boxes).
        logger.debug(f"Desktop notification failed: {e}")
    if echo:
        print(message)


def post_to_slack(settings: SlackSettings, channel: str, message: str) -> None:
    """Post message to channel. Raises requests.RequestException or ValueError on failure."""
    payload = {"channel": channel, "text": message}
    if settings.username:
        payload["username"] = settings.username

    logger.debug(f"Posting message to Slack channel '{channel}' as user '{settings.username or '(token owner)'}'.")
    response = requests.post(
        SLACK_API_URL,
        headers={"Authorization": f"Bearer {settings.token}"},
        json=payload,
        timeout=SLACK_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    body = response.json()
    if not body.get("ok"):
        raise ValueError(f"Slack returned an error: {body.get('error', 'unknown')}")


class SlackNotifier:
    """Best-effort reporter: never raises, never changes the punch result."""

    def __init__(self, settings: SlackSettings, channel: Optional[str] = None, message: Optional[str] = None,
                 desktop_alerts: bool = True):
        self.settings = settings
        self.channel = channel or settings.channel
        self.message = message or settings.message
        self.desktop_alerts = desktop_alerts
        self.last_error: Optional[str] = None

    def notify(self, result) -> bool:
        summary = format_summary(result)
        if not result.ok and self.desktop_alerts:
            notify_user_with_ack(
                "Jobcan punch failed",
                f"{summary}. Please verify your timesheet.",
                require_ack=True,
                # The caller prints the summary line itself.
                echo=False,
            )

        if not self.settings.token or not self.channel:
            logger.debug("No Slack token/channel configured -> not posting to Slack")
            return False
        if not self.channel.startswith("#"):
            return self._failed(f"The Slack channel name must start with '#', got {self.channel!r}")

        try:
            post_to_slack(self.settings, self.channel, self.message or summary)
        except (requests.RequestException, ValueError) as e:
            return self._failed(str(e))
        logger.info(f"Posted to Slack channel {self.channel}")
        return True

    def _failed(self, reason: str) -> bool:
        self.last_error = reason
        logger.warning(f"{ErrorKind.NOTIFICATION_FAILED.value}: {reason}")
        return False
