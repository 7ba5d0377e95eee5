"""Logging configuration for the delimited writer CLI and its tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Final, TextIO

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
PACKAGE_LOGGER: Final[str] = "delimited_writer"


def configure_logging(
    verbose: bool = False,
    stream: TextIO | None = None,
    log_file: Path | None = None,
) -> None:
    """Configure root logging for a CLI run.

    Handlers installed by an earlier call are replaced, never stacked. Only
    ``delimited_writer`` loggers drop to ``DEBUG`` in verbose mode, so
    third-party loggers stay at ``INFO``.

    :param verbose: If ``True``, log package messages at ``DEBUG``.
    :type verbose: bool
    :param stream: Stream for console output; ``sys.stderr`` when omitted.
    :type stream: TextIO | None
    :param log_file: Optional file that receives a copy of every record.
    :type log_file: Path | None
    :return: None
    :rtype: None
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    _clear_handlers(root_logger)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(stream if stream is not None else sys.stderr)
    ]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def _clear_handlers(logger: logging.Logger) -> None:
    """Detach every handler from ``logger`` and close it.

    :param logger: Logger to strip.
    :type logger: logging.Logger
    :return: None
    :rtype: None
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        try:
            handler.close()
        except (OSError, ValueError) as exc:
            print(f"Could not close log handler {handler!r}: {exc}", file=sys.stderr)
