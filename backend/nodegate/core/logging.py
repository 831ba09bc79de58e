import logging
import sys
from enum import StrEnum

from pythonjsonlogger import jsonlogger


class LogSubsystem(StrEnum):
    nodes = "nodes"
    participants = "participants"


class SubsystemFilter(logging.Filter):
    """Tags every record of a logger with its subsystem unless the call set one."""

    def __init__(self, subsystem: LogSubsystem) -> None:
        super().__init__()
        self.subsystem = subsystem

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "subsystem"):
            record.subsystem = self.subsystem.value
        return True


def configure_logging(level: str = "INFO") -> None:
    logger = logging.getLogger()
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    # Fields passed through `extra` are appended by the formatter as-is.
    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.setLevel(level.upper())


def get_logger(name: str, subsystem: LogSubsystem | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if subsystem is not None and not any(isinstance(item, SubsystemFilter) for item in logger.filters):
        logger.addFilter(SubsystemFilter(subsystem))
    return logger
