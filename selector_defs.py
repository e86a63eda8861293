import re

from selenium.webdriver.common.by import By

SIGN_IN_URL = "https://id.jobcan.jp/users/sign_in"
# Opening the attendance pages directly asks for a login again; go through here first.
ATTENDANCE_LOGIN_URL = "https://ssl.jobcan.jp/jbcoauth/login"
MODIFY_PAGE_URL = "https://ssl.jobcan.jp/employee/adit/modify/"
MODIFY_URL = "https://ssl.jobcan.jp/employee/adit/modify?year={year}&month={month}&day={day}"
ATTENDANCE_URL = "https://ssl.jobcan.jp/employee/attendance"
ATTENDANCE_MONTH_URL = (
    "https://ssl.jobcan.jp/employee/attendance?list_type=normal&search_type=month&year={year}&month={month}"
)

RATE_LIMIT_URL_FRAGMENT = "error/partial-rate-limit"

LOGIN_FORM_SELECTORS = [
    (By.CLASS_NAME, "form"),
    (By.CSS_SELECTOR, "form#new_user"),
]

LOGIN_EMAIL_SELECTORS = [
    (By.ID, "user_email"),
    (By.NAME, "user[email]"),
]

LOGIN_PASSWORD_SELECTORS = [
    (By.ID, "user_password"),
    (By.NAME, "user[password]"),
]

LOGIN_BUTTON_SELECTORS = [
    (By.CLASS_NAME, "form__login"),
    (By.CSS_SELECTOR, "input[type='submit']"),
    (By.CSS_SELECTOR, "button[type='submit']"),
]

LOGIN_ERROR_SELECTORS = [
    (By.CSS_SELECTOR, ".flash-alert"),
    (By.CSS_SELECTOR, ".alert-danger"),
]

# Present once the attendance site accepted the session.
POST_LOGIN_MARKERS = [
    (By.ID, "adit-button-push"),
    (By.ID, "header"),
    (By.CSS_SELECTOR, "a[href*='/employee/logout']"),
]

# Elements of the "revise clocking data" page.
TIMESHEET_MARKERS = [
    (By.ID, "ter_time"),
    (By.ID, "insert_button"),
]

TIME_FIELD_SELECTORS = {
    "clock_in": [
        (By.ID, "ter_time"),
        (By.CSS_SELECTOR, "input[name='time']"),
    ],
    "clock_out": [
        (By.ID, "ter_time_out"),
        (By.CSS_SELECTOR, "input[name='time_out']"),
    ],
}

NOTE_FIELD_SELECTORS = [
    (By.CSS_SELECTOR, "textarea[name='notice']"),
    (By.ID, "notice_value"),
]

INSERT_BUTTON_SELECTORS = [
    (By.ID, "insert_button"),
    (By.CSS_SELECTOR, "input[value='Insert']"),
]

TIME_ERROR_SELECTORS = [
    (By.CSS_SELECTOR, "#time_error .alert"),
]

# Table listing the punches already stored for the day.
PUNCH_LOG_SELECTORS = [
    (By.CSS_SELECTOR, "#logs-table"),
]

ALREADY_PUNCHED_PATTERNS = [
    re.compile(r"already\s+punched", re.IGNORECASE),
    re.compile(r"already\s+(been\s+)?(registered|recorded)", re.IGNORECASE),
    re.compile(r"既に打刻"),
    re.compile(r"打刻済"),
]

# Monthly attendance page. The tables carry no ids; they are picked by position.
MONTH_TITLE_SELECTORS = [
    (By.CLASS_NAME, "card-title"),
]
TOTALS_TABLE_INDEX = 3
PUNCHED_DATA_TABLE_INDEX = 6
ATTENDANCE_MARKERS = [
    (By.TAG_NAME, "table"),
]
