"""Error reporting for cache and sync failures."""

import logging
from typing import Callable, Optional

from typing_extensions import Protocol

logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    """Fire-and-forget sink for error messages. Must never raise."""

    def report(self, message: str) -> None: ...


class LoggingErrorReporter:
    """Logs errors locally and optionally forwards them to a remote sink.

    Examples:
        >>> reporter = LoggingErrorReporter(verbose_logging_enabled=True,
        ...                                 sink=errors_collection.append)
        >>> reporter.report("remote fetch failed for race")
    """

    def __init__(
        self,
        verbose_logging_enabled: bool = False,
        sink: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose_logging_enabled: Forward messages to the sink
            sink: Callable persisting a message remotely (e.g. an error
                collection writer)
        """
        self.verbose_logging_enabled = verbose_logging_enabled
        self.sink = sink

    def report(self, message: str) -> None:
        logger.error(message)

        if not self.verbose_logging_enabled or self.sink is None:
            return

        try:
            self.sink(message)
        except Exception as e:
            logger.warning(f"Failed to forward error report: {e}")
