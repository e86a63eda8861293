import sys
import logging
import argparse
import warnings
from datetime import date, datetime

# Set up logging
logger = logging.getLogger("punch_manager")

# Suppress verbose selenium/urllib3 logging
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("selenium").setLevel(logging.WARNING)
logging.getLogger("selenium.webdriver.remote.remote_connection").setLevel(logging.WARNING)

warnings.filterwarnings(
    "ignore",
    message=r".*only supports OpenSSL.*",
    category=Warning,
    module=r"urllib3",
)

from punch_config import load_config
from notifications import SlackNotifier, format_summary, notify_user_with_ack
from punch_actions import SeleniumSessionDriver
from punch_errors import EXIT_CODES, EXIT_CONFIG, EXIT_OK, ConfigError, PunchError
from punch_orchestrator import PunchOrchestrator
from punch_report import build_month_report, format_report, write_csv
from punch_schedule import parse_date, resolve_intent


def parse_month(text: str) -> date:
    try:
        return datetime.strptime(f"{text}01", "%Y%m%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYYMM, got {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobcan-punch",
        description="Punch one day's clock-in/clock-out on Jobcan.",
    )
    parser.add_argument('--config', required=True, help="Path to the TOML configuration file")
    parser.add_argument('--date', help="Date to punch, YYYY-MM-DD. Defaults to today")
    parser.add_argument('--message', help="Memo/note for the punch. Defaults to [schedule] note ('work start')")
    parser.add_argument('--slack-channel', help="Slack channel to post the result to, e.g. '#standup'")
    parser.add_argument('--slack-message', help="Text to post to Slack instead of the punch summary")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--list', nargs='?', const=True, type=parse_month, metavar='YYYYMM',
                      help="List logged hours for the current month, or YYYYMM, instead of punching")
    mode.add_argument('--login', action='store_true',
                      help="Only log in and open the modify page. Needs --visible and --sleep > 0")
    parser.add_argument('--csv', action='store_true', help="With --list: print date;start;end;break;worked rows")
    visibility = parser.add_mutually_exclusive_group()
    visibility.add_argument('--headless', dest='headless', action='store_true', default=None, help='Hide the browser window')
    visibility.add_argument('--visible', dest='headless', action='store_false', help='Show the browser window')
    parser.add_argument('--debug', action='store_true', help='Verbose debug output and artifact dumps on failure')
    parser.add_argument('--dump-dir', help='Directory to write debug artifacts (png/html/url)')
    parser.add_argument('--sleep', type=float, default=0, help='Seconds to keep the browser open after the run (debugging)')
    return parser


def setup_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(message)s')
        logger.setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format='%(message)s')
        logger.setLevel(logging.INFO)


def build_driver(args, config) -> SeleniumSessionDriver:
    headless = config.headless if args.headless is None else args.headless
    dump_dir = args.dump_dir or (str(config.dump_dir) if config.dump_dir else None)
    logger.debug(f"endpoint={config.endpoint or '(local)'} headless={headless} dump_dir={dump_dir or '(disabled)'}")
    return SeleniumSessionDriver(
        endpoint=config.endpoint,
        headless=headless,
        timeout=config.timeouts.wait_seconds,
        settle_seconds=config.timeouts.settle_seconds,
        dump_dir=dump_dir,
        linger_seconds=args.sleep,
    )


def run_list(args, config) -> int:
    """Print the month's punches and totals; nothing on Jobcan is changed."""
    month = None if args.list is True else args.list
    driver = build_driver(args, config)
    try:
        driver.login(config.credentials)
        if month is None:
            sheet = driver.read_month()
        else:
            sheet = driver.read_month(month.year, month.month)
    except PunchError as e:
        print(f"List failed ({e})")
        return EXIT_CODES[e.kind]
    finally:
        driver.close()

    report = build_month_report(sheet)
    if args.csv:
        write_csv(report, sys.stdout)
    else:
        for line in format_report(report):
            print(line)
    return EXIT_OK


def run_login(args, config) -> int:
    """Log in and leave the modify page open for --sleep seconds."""
    headless = config.headless if args.headless is None else args.headless
    if headless or args.sleep <= 0:
        print("--login only works together with --visible and --sleep greater than 0.")
        return EXIT_CONFIG
    driver = build_driver(args, config)
    try:
        driver.login(config.credentials)
        driver.open_modify_page()
        print(f"Logged in. Keeping the browser open for {args.sleep:g} seconds...")
    except PunchError as e:
        print(f"Login failed ({e})")
        return EXIT_CODES[e.kind]
    finally:
        driver.close()
    return EXIT_OK


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG

    if args.list is not None:
        return run_list(args, config)
    if args.login:
        return run_login(args, config)

    # Schedule problems end the run here, before any browser is started.
    try:
        target = parse_date(args.date) if args.date else date.today()
        intent = resolve_intent(target, config, note=args.message)
    except PunchError as e:
        print(f"{args.date or date.today().isoformat()}: Failed ({e}), attempts: 0")
        return EXIT_CODES[e.kind]

    driver = build_driver(args, config)
    notifier = SlackNotifier(config.slack, channel=args.slack_channel, message=args.slack_message)
    orchestrator = PunchOrchestrator(
        driver,
        config.credentials,
        max_retries=config.retry.max_retries,
        retry_delay=config.retry.delay_seconds,
        notifier=notifier,
    )

    print(f"\nPunching {intent.date:%Y-%m-%d} ...\n")
    logger.debug(f"intent={intent}")

    try:
        result = orchestrator.run(intent)
    except Exception as e:
        if args.debug:
            raise
        print("...")
        print("Unexpected error. Re-run with --debug to see details and save a screenshot/HTML.")
        print(str(e))
        notify_user_with_ack(
            "Jobcan punch error",
            "Unexpected error occurred. Please check the terminal output and verify your timesheet.",
            require_ack=True,
        )
        return 1

    print(format_summary(result))
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
