from enum import Enum


class ErrorKind(Enum):
    NO_SCHEDULE_DATA = "NoScheduleData"
    INVALID_SCHEDULE = "InvalidSchedule"
    AUTH_FAILED = "AuthFailed"
    NAVIGATION_FAILED = "NavigationFailed"
    ELEMENT_NOT_FOUND = "ElementNotFound"
    INTERACTION_FAILED = "InteractionFailed"
    SUBMIT_REJECTED = "SubmitRejected"
    NOTIFICATION_FAILED = "NotificationFailed"
    # WebDriver transport trouble: endpoint unreachable, session dropped, etc.
    NETWORK = "NetworkError"


RETRYABLE = "retryable"
FATAL = "fatal"

# Fixed lookup used by the orchestrator. Keep every ErrorKind listed here.
RETRY_POLICY = {
    ErrorKind.NO_SCHEDULE_DATA: FATAL,
    ErrorKind.INVALID_SCHEDULE: FATAL,
    ErrorKind.AUTH_FAILED: FATAL,
    ErrorKind.NAVIGATION_FAILED: RETRYABLE,
    ErrorKind.ELEMENT_NOT_FOUND: RETRYABLE,
    ErrorKind.INTERACTION_FAILED: RETRYABLE,
    ErrorKind.SUBMIT_REJECTED: FATAL,
    ErrorKind.NOTIFICATION_FAILED: FATAL,
    ErrorKind.NETWORK: RETRYABLE,
}

EXIT_OK = 0
EXIT_CONFIG = 1

EXIT_CODES = {
    ErrorKind.AUTH_FAILED: 2,
    ErrorKind.NAVIGATION_FAILED: 3,
    ErrorKind.ELEMENT_NOT_FOUND: 3,
    ErrorKind.INTERACTION_FAILED: 3,
    ErrorKind.NO_SCHEDULE_DATA: 4,
    ErrorKind.INVALID_SCHEDULE: 4,
    ErrorKind.SUBMIT_REJECTED: 5,
    ErrorKind.NETWORK: 6,
    # Notification problems never decide the exit status.
    ErrorKind.NOTIFICATION_FAILED: EXIT_OK,
}


def is_retryable(kind: ErrorKind) -> bool:
    return RETRY_POLICY[kind] == RETRYABLE


class PunchError(Exception):
    """Raised by the resolver, session verbs and notifier with a classified kind."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    def __str__(self):
        return f"{self.kind.value}: {self.message}"


class ConfigError(Exception):
    pass
