import logging
import os
import sys
import traceback
import pendulum

LOG_FORMAT = "%(levelname)s %(name)s %(message)s"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """
    Configure logging for applications embedding the policy engine.

    Rule diagnostics (disabled rules, configuration errors and violations)
    are emitted through the package loggers. Messages already carry their
    own pendulum timestamp, so the format stays short.

    Args:
        level: Minimum level written. INFO shows disabled rules,
            WARNING only configuration errors and violations.
        log_file: Append to this file instead of stderr.
    """
    if logging.getLogger().handlers:
        return  # already configured

    if log_file:
        logging.basicConfig(
            filename=log_file,
            filemode="a",
            level=level,
            format=LOG_FORMAT,
        )
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    sys.excepthook = log_uncaught_exceptions


def log_uncaught_exceptions(exctype, value, tb):
    now = pendulum.now().to_iso8601_string()

    lines = []
    for frame in traceback.extract_tb(tb):
        filename = os.path.basename(frame.filename)
        lines.append(
            f'  File "{filename}", line {frame.lineno}, in {frame.name}'
        )

    trace_summary = "\n".join(reversed(lines)) if lines else "  <no traceback>"
    error_msg = f"{exctype.__name__}: {value}"

    logging.error(
        f"[{now}] Uncaught exception: {error_msg}\n"
        f"Traceback (most recent call last):\n"
        f"{trace_summary}\n"
        f"{error_msg}\n"
    )

    print("\nError! Something went wrong.", file=sys.stderr)
    print("Details were written to the log.\n", file=sys.stderr)


def timestamped(msg: str) -> str:
    """Prefix a log message with the current ISO-8601 time."""
    return f"[{pendulum.now().to_iso8601_string()}] {msg}"
