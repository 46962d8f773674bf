"""
Logging configuration for the prediction pool

Console output for development, rotating files for the application, for
errors, and for the ledger (one line per scored, corrected or reversed
fixture, which is the trail to read when a user's total looks wrong).
"""

import logging
import logging.handlers
import os

from flask import has_request_context, request

LEDGER_LOGGERS = ("app.services.ledger", "app.services.seasons", "app.services.batch")

FILE_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
    "[%(method)s %(url)s] [%(remote_addr)s]"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RequestContextFilter(logging.Filter):
    """Attach the current request (or N/A outside one) to every record"""

    def filter(self, record):
        in_request = has_request_context()
        record.url = request.url if in_request else "N/A"
        record.method = request.method if in_request else "N/A"
        record.remote_addr = request.remote_addr if in_request else "N/A"
        return True


class ColoredFormatter(logging.Formatter):
    """Colour the level name on the console"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)

        # Other handlers see the same record object
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _rotating_handler(path, level, fmt, max_mb, backups):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    handler.addFilter(RequestContextFilter())
    return handler


def _console_handler(app, level):
    handler = logging.StreamHandler()
    handler.setLevel(level)
    if app.debug:
        handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s "
                "[%(filename)s:%(lineno)d]",
                datefmt="%H:%M:%S",
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", DATE_FORMAT)
        )
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(app):
    """
    Configure the root logger for the application

    Reads LOG_LEVEL, LOG_TO_CONSOLE, LOG_TO_FILE and LOG_DIR from the app
    config. Existing root handlers are replaced so repeated app creation
    (tests, the CLI) does not duplicate output.
    """
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if app.config.get("LOG_TO_CONSOLE", True):
        root.addHandler(_console_handler(app, level))

    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)

        root.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "prediction_pool.log"), level, FILE_FORMAT, 10, 5
            )
        )
        root.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "errors.log"),
                logging.ERROR,
                FILE_FORMAT + " [%(pathname)s:%(lineno)d]",
                5,
                3,
            )
        )

        ledger_handler = _rotating_handler(
            os.path.join(log_dir, "ledger.log"), logging.INFO, FILE_FORMAT, 10, 10
        )
        for name in LEDGER_LOGGERS:
            ledger_logger = logging.getLogger(name)
            for handler in ledger_logger.handlers[:]:
                ledger_logger.removeHandler(handler)
            ledger_logger.addHandler(ledger_handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    app.logger.info(f"Logging configured - Level: {logging.getLevelName(level)}")
