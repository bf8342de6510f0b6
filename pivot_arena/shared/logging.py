import logging
import os
from logging.handlers import RotatingFileHandler

EVENTS_LEVEL_NUM = 38
DEFAULT_LOG_BACKUP_COUNT = 10
DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package root logger once."""
    root = logging.getLogger("pivot_arena")
    root.setLevel(level.upper())
    if any(getattr(h, "_arena_stream", False) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._arena_stream = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def setup_events_logger(full_path, events_retention_size):
    """Route EVENT records to ``<full_path>/events.log``.

    Safe to call repeatedly: a handler already writing to the same file is
    reused, and handlers for any other file are closed and removed.
    """
    logging.addLevelName(EVENTS_LEVEL_NUM, "EVENT")

    logger = logging.getLogger("arena.event")
    logger.setLevel(EVENTS_LEVEL_NUM)

    def event(self, message, *args, **kws):
        if self.isEnabledFor(EVENTS_LEVEL_NUM):
            self._log(EVENTS_LEVEL_NUM, message, args, **kws)

    logging.Logger.event = event

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_file = os.path.abspath(os.path.join(full_path, "events.log"))
    for handler in list(logger.handlers):
        if not isinstance(handler, RotatingFileHandler):
            continue
        if handler.baseFilename == log_file:
            return logger
        logger.removeHandler(handler)
        handler.close()

    os.makedirs(full_path, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=events_retention_size,
        backupCount=DEFAULT_LOG_BACKUP_COUNT,
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(EVENTS_LEVEL_NUM)
    logger.addHandler(file_handler)

    return logger
