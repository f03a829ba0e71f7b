import logging
from typing import Callable

logger = logging.getLogger(__name__)

SayFunc = Callable[[str], None]
ErrorFunc = Callable[[BaseException], None]


class LoggingDiagnostics:
    """Progress and error sink that writes to the armpiper logger."""

    def __init__(self, log: logging.Logger = logger) -> None:
        self._log = log

    def say(self, message: str) -> None:
        self._log.info(message)

    def error(self, err: BaseException) -> None:
        self._log.error("%s", err, extra={"error_type": type(err).__name__})
