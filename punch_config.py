"""
Configuration for the Jobcan punch tool.

Values come from a TOML file (``--config``). Credentials and Slack settings can
also be supplied through environment variables, which are loaded from a
``.env`` file when one is present and take precedence over the TOML values.
"""

import os
import logging
import tomllib
from dataclasses import dataclass, field
from datetime import time as dtime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from punch_errors import ConfigError

logger = logging.getLogger(__name__)

ENVVAR_NAME_LOGIN = "JC_LOGIN"
ENVVAR_NAME_PASSWORD = "JC_PASSWORD"
ENVVAR_SLACK_USER_TOKEN = "SLACK_USER_TOKEN"
ENVVAR_SLACK_USER_NAME = "SLACK_USER_NAME"

DEFAULT_ENDPOINT = "http://localhost:4444"
DEFAULT_SLACK_CHANNEL = "#standup"
DEFAULT_NOTE = "work start"


@dataclass
class Credentials:
    login: str
    password: str

    def __repr__(self):
        return f"Credentials(login={self.login!r}, password='******')"


@dataclass
class ScheduleSettings:
    file: Optional[Path] = None
    interactive: bool = False
    require_schedule: bool = True
    default_clock_in: Optional[str] = None
    default_clock_out: Optional[str] = None
    note: str = DEFAULT_NOTE


@dataclass
class RetrySettings:
    # Extra attempts per verb, on top of the first one.
    max_retries: int = 2
    delay_seconds: float = 2.0


@dataclass
class TimeoutSettings:
    wait_seconds: float = 15.0
    # Pause after login before hopping to the attendance site (rate limit).
    settle_seconds: float = 3.0


@dataclass
class SlackSettings:
    token: str = ""
    username: str = ""
    channel: str = DEFAULT_SLACK_CHANNEL
    message: str = ""

    def __repr__(self):
        token = "******" if self.token else ""
        return (
            f"SlackSettings(token={token!r}, username={self.username!r}, "
            f"channel={self.channel!r}, message={self.message!r})"
        )


@dataclass
class Configuration:
    credentials: Credentials
    endpoint: str = DEFAULT_ENDPOINT
    headless: bool = True
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    slack: SlackSettings = field(default_factory=SlackSettings)
    dump_dir: Optional[Path] = None


def _table(data: dict, name: str) -> dict:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def _as_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{name} must not be negative")
    return number


def _as_float(value, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{name} must not be negative")
    return number


def _as_clock(value, name: str) -> Optional[str]:
    """Default punch times as ``HH:MM`` text; TOML local times (09:00:00) are accepted too."""
    if value is None or value == "":
        return None
    if isinstance(value, dtime):
        return value.strftime("%H:%M")
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a time like \"09:00\", got {value!r}")
    return value


def _resolve_path(value, base: Path) -> Optional[Path]:
    if not value:
        return None
    path = Path(os.path.expanduser(str(value)))
    if not path.is_absolute():
        path = base / path
    return path


def parse_config(data: dict, base_dir: Path, environ=None) -> Configuration:
    """Build a validated Configuration from parsed TOML data and the environment."""
    env = os.environ if environ is None else environ

    jobcan = _table(data, "jobcan")
    schedule = _table(data, "schedule")
    retry = _table(data, "retry")
    timeouts = _table(data, "timeouts")
    slack = _table(data, "slack")
    debug = _table(data, "debug")

    login = env.get(ENVVAR_NAME_LOGIN) or jobcan.get("login", "")
    password = env.get(ENVVAR_NAME_PASSWORD) or jobcan.get("password", "")
    if not login or not password:
        raise ConfigError(
            f"You must set both {ENVVAR_NAME_LOGIN} and {ENVVAR_NAME_PASSWORD} "
            "(or [jobcan] login/password in the config file)."
        )

    return Configuration(
        credentials=Credentials(login=str(login), password=str(password)),
        endpoint=str(jobcan.get("endpoint", DEFAULT_ENDPOINT) or ""),
        headless=bool(jobcan.get("headless", True)),
        schedule=ScheduleSettings(
            file=_resolve_path(schedule.get("file"), base_dir),
            interactive=bool(schedule.get("interactive", False)),
            require_schedule=bool(schedule.get("require_schedule", True)),
            default_clock_in=_as_clock(schedule.get("default_clock_in"), "schedule.default_clock_in"),
            default_clock_out=_as_clock(schedule.get("default_clock_out"), "schedule.default_clock_out"),
            note=str(schedule.get("note", DEFAULT_NOTE)),
        ),
        retry=RetrySettings(
            max_retries=_as_int(retry.get("max_retries", 2), "retry.max_retries"),
            delay_seconds=_as_float(retry.get("delay_seconds", 2.0), "retry.delay_seconds"),
        ),
        timeouts=TimeoutSettings(
            wait_seconds=_as_float(timeouts.get("wait_seconds", 15.0), "timeouts.wait_seconds"),
            settle_seconds=_as_float(timeouts.get("settle_seconds", 3.0), "timeouts.settle_seconds"),
        ),
        slack=SlackSettings(
            token=env.get(ENVVAR_SLACK_USER_TOKEN) or str(slack.get("token", "")),
            username=env.get(ENVVAR_SLACK_USER_NAME) or str(slack.get("username", "")),
            channel=str(slack.get("channel", DEFAULT_SLACK_CHANNEL)),
            message=str(slack.get("message", "")),
        ),
        dump_dir=_resolve_path(debug.get("dump_dir"), base_dir),
    )


def load_config(path, environ=None) -> Configuration:
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    # Same directory as the config first, then the usual cwd lookup.
    load_dotenv(config_path.parent / ".env")
    load_dotenv()

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

    config = parse_config(data, config_path.parent, environ=environ)
    logger.debug(f"Loaded config from {config_path}: {config.credentials!r}")
    return config
