"""Central error reporting: log, publish, and notify the UI."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from inkbook.events.bus import Event, EventBus


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(kw_only=True)
class ErrorOccurredEvent(Event):
    error: Exception
    severity: ErrorSeverity
    context: dict = field(default_factory=dict)


class ErrorHandler:
    """Route errors to the log, the event bus and an optional UI callback.

    The UI callback is the toast/error-boundary hook; it only fires for
    ``ERROR`` and ``CRITICAL`` so warnings stay in the log and on the bus.
    """

    def __init__(self, logger: logging.Logger, event_bus: EventBus):
        self._logger = logger
        self._events = event_bus
        self._ui_callback: Optional[Callable[[str, ErrorSeverity], None]] = None

    def register_ui_callback(self, callback: Optional[Callable[[str, ErrorSeverity], None]]):
        self._ui_callback = callback

    def handle(self, error: Exception, severity: ErrorSeverity = ErrorSeverity.ERROR, context: dict = None):
        context = dict(context or {})
        log_method = getattr(self._logger, severity.value, self._logger.error)
        log_method("%s: %s", error.__class__.__name__, error, extra={"inkbook_context": context})

        self._events.publish(ErrorOccurredEvent(
            error=error,
            severity=severity,
            context=context,
        ))

        if self._ui_callback and severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
            try:
                self._ui_callback(str(error), severity)
            except Exception as exc:
                self._logger.error("UI error callback failed: %s", exc)
