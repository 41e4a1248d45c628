"""Plain-text logger for session events, for hosts without a rich terminal."""
import logging

# Extra fields the session attaches to its events, in display order
EVENT_FIELDS = ("stage_id", "cell_index", "mode", "success", "passed", "strategy", "error")


class EventFormatter(logging.Formatter):
    """
    One line per event with its details appended:

        [INFO] cell_validated stage_id=2 cell_index=1 passed=False strategy=none
    """

    def __init__(self):
        super().__init__("[%(levelname)s] %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        details = [
            f"{name}={getattr(record, name)}"
            for name in EVENT_FIELDS
            if getattr(record, name, None) is not None
        ]
        return " ".join([line, *details])


def create_logger(name: str = "codepedagogy", silent: bool = False, level: int = logging.INFO) -> logging.Logger:
    """
    Create a logger for non-interactive runs (CI, piped output, `play --plain`).

    Args:
        name: Logger name
        silent: If True, use NullHandler (no output)
        level: Logging level
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    if silent:
        logger.addHandler(logging.NullHandler())
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(EventFormatter())
        logger.addHandler(handler)

    logger.propagate = False
    return logger
