"""
Logging capability injected into the scan engine and the result cache.

The process entry point builds one AppLogger, hands it to the services and
owns its flush/close lifecycle. Tests substitute a MagicMock.
"""

import logging
import sys
from abc import ABC, abstractmethod
from logging.handlers import RotatingFileHandler
from typing import Optional

from common.config.config import (
    APPINSIGHTS_INSTRUMENTATIONKEY,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_LOCATION,
    LOG_FILE_MAX_BYTES,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppLogger(ABC):
    """Abstract logging/telemetry sink."""

    @abstractmethod
    def log_info(self, msg: str) -> None:
        pass

    @abstractmethod
    def log_warning(self, msg: str) -> None:
        pass

    @abstractmethod
    def log_error(self, error: BaseException) -> None:
        pass

    @abstractmethod
    def log_fatal(self, error: BaseException) -> None:
        pass

    def flush(self) -> None:
        """Push buffered records to their destination."""

    def close(self) -> None:
        """Release sink resources."""


class StandardAppLogger(AppLogger):
    """AppLogger backed by the standard logging module.

    When an instrumentation key is configured it is attached to every record
    as ``instrumentation_key`` so a telemetry handler can route on it.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        instrumentation_key: str = APPINSIGHTS_INSTRUMENTATIONKEY,
    ):
        self._logger = logger or logging.getLogger("scanner.telemetry")
        self._extra = (
            {"instrumentation_key": instrumentation_key} if instrumentation_key else {}
        )

    def log_info(self, msg: str) -> None:
        self._logger.info(msg, extra=self._extra)

    def log_warning(self, msg: str) -> None:
        self._logger.warning(msg, extra=self._extra)

    def log_error(self, error: BaseException) -> None:
        self._logger.error(
            f"{type(error).__name__}: {error}", exc_info=error, extra=self._extra
        )

    def log_fatal(self, error: BaseException) -> None:
        self._logger.critical(
            f"{type(error).__name__}: {error}", exc_info=error, extra=self._extra
        )

    def flush(self) -> None:
        for handler in self._iter_handlers():
            handler.flush()

    def close(self) -> None:
        self.flush()

    def _iter_handlers(self):
        logger: Optional[logging.Logger] = self._logger
        while logger is not None:
            yield from logger.handlers
            logger = logger.parent if logger.propagate else None


def configure_logging(
    log_file: str = LOG_FILE_LOCATION, level: int = logging.INFO
) -> None:
    """Configure root logging to stdout, plus a rotating file when log_file is set."""
    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
            )
        )

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
